"""Utility functions for the condor encoding orchestrator"""

import logging
import shutil
import subprocess
import time
from datetime import datetime
from pathlib import Path
from typing import List, Union

logger = logging.getLogger(__name__)

def epoch_millis() -> int:
    """Milliseconds since the Unix epoch"""
    return int(time.time() * 1000)

def get_timestamp() -> str:
    """Get current timestamp in YYYYMMDD_HHMMSS format"""
    return datetime.now().strftime("%Y%m%d_%H%M%S")

def get_file_size(path: Union[str, Path]) -> int:
    """Get file size in bytes"""
    return Path(path).stat().st_size

def format_size(size: float) -> str:
    """Format file size for display"""
    for unit in ['B', 'KiB', 'MiB', 'GiB']:
        if size < 1024:
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}TiB"

def format_duration(millis: int) -> str:
    """Format a millisecond duration as H:MM:SS"""
    seconds = max(int(millis // 1000), 0)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    return f"{hours}:{minutes:02}:{seconds:02}"

def scene_file_name(index: int, extension: str, temporary: bool = False) -> str:
    """File name of an encoded scene, zero padded so names sort in scene order"""
    if temporary:
        return f"{index:05}.temp.{extension}"
    return f"{index:05}.{extension}"

def run_cmd(cmd: List[str], capture_output: bool = True, check: bool = True,
            input: bytes = None) -> subprocess.CompletedProcess:
    """Run a command and handle errors"""
    logger.debug("Running command: %s", " ".join(cmd))
    try:
        result = subprocess.run(
            cmd,
            capture_output=capture_output,
            check=check,
            input=input,
        )
        if result.stderr:
            logger.debug("Command stderr: %s", result.stderr.decode(errors="replace"))
        return result
    except subprocess.CalledProcessError as e:
        logger.error("Command failed: %s", " ".join(cmd))
        if e.stderr:
            logger.error("Error output: %s", e.stderr.decode(errors="replace"))
        raise

def check_dependencies(required: List[str]) -> List[str]:
    """Return the required executables that cannot be found on PATH"""
    missing = [cmd for cmd in required if shutil.which(cmd) is None]
    for cmd in missing:
        logger.error("Required dependency not found: %s", cmd)
    return missing
