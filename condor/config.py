"""Configuration settings for the condor encoding orchestrator

This module centralizes the default settings used by the stages:
- Working directory paths and file locations
- Scene length limits for scene detection
- Target quality search defaults
- Worker pool and benchmark settings

User-configurable values come from environment variables, everything
else is a plain module constant.
"""

import os
from pathlib import Path

# Working root directory in /tmp
WORKING_ROOT = Path(os.environ.get("CONDOR_WORKDIR", "/tmp/condor"))

# LOG_DIR: user definable with default of "$HOME/condor_logs"
LOG_DIR = Path(os.environ.get("CONDOR_LOG_DIR", str(Path.home() / "condor_logs")))

# Logging configuration
LOG_LEVEL = os.environ.get("CONDOR_LOG_LEVEL", "INFO")

# Per-stage directories below the working root of a run
SCENES_DIRECTORY = "scenes"
PROBES_DIRECTORY = "probes"
BENCHMARK_DIRECTORY = "benchmark"
STATE_FILE = "condor.json"

# Scene detection settings
DEFAULT_MIN_SCENE_LENGTH = 24  # frames
DEFAULT_MAX_SCENE_LENGTH_SECONDS = 10.0
DEFAULT_SCENECUT_THRESHOLD = 27.0  # ContentDetector content_val threshold

# Target quality settings
DEFAULT_TARGET_RANGE = (94.0, 96.0)
DEFAULT_MAXIMUM_PROBES = 4
RECOMMENDED_MINIMUM_PROBES = 4
DEFAULT_SUBSET_FRAMES = 11

# Worker pool settings
DEFAULT_BUFFER_EXTRA = 1

# Benchmark settings
BENCHMARK_THRESHOLD = 5.0  # minimum throughput gain in percent
BENCHMARK_SCENES = 8
BENCHMARK_MIN_SCENE_FRAMES = 24
