"""Default decode, encode, probe and concatenation through ffmpeg

Decoding, frame selection, metric measurement and concatenation are built
as ffmpeg-python graphs. Encoders run as their own executables reading
y4m frames on stdin.
"""

import json
import logging
import re
import subprocess
import tempfile
import threading
from fractions import Fraction
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import ffmpeg

from .collaborators import ClipInfo, Collaborators, EncodeProgress, ProbeMeasurement, ProgressCallback
from .config import PROBES_DIRECTORY
from .exceptions import ConcatenationError, DependencyError, EncoderError, ProbeError
from .models.condor import Condor, Input
from .models.encoder import Encoder
from .models.scene import Scene
from .models.stage_config import ConcatMethod, ScenecutMethod
from .quality.types import QualityMetric
from .utils import check_dependencies, get_file_size, run_cmd
from .video.scenecut import detect_scenecut_scores

logger = logging.getLogger(__name__)

_LINE_BREAK = re.compile(r"[\r\n]")

def _stderr(error: ffmpeg.Error) -> str:
    return error.stderr.decode(errors="replace").strip() if error.stderr else str(error)

def probe_clip(path: Path) -> ClipInfo:
    """Frame count, frame rate and resolution of the first video stream"""
    try:
        info = ffmpeg.probe(str(path), select_streams="v:0", count_packets=None)
    except ffmpeg.Error as e:
        raise EncoderError(f"Failed to probe {path}: {_stderr(e)}", "ffmpeg") from e
    streams = info.get("streams") or []
    if not streams:
        raise EncoderError(f"No video stream in {path}", "ffmpeg")
    stream = streams[0]
    frame_rate = Fraction(stream.get("avg_frame_rate") or stream.get("r_frame_rate") or "0/1")
    if frame_rate == 0:
        frame_rate = Fraction(stream.get("r_frame_rate", "24/1"))

    num_frames = stream.get("nb_frames") or stream.get("nb_read_packets")
    if num_frames is None:
        duration = float(stream.get("duration") or info.get("format", {}).get("duration", 0))
        num_frames = round(duration * frame_rate)
    return ClipInfo(
        num_frames=int(num_frames),
        frame_rate=frame_rate,
        width=stream.get("width"),
        height=stream.get("height"),
    )

def frame_runs(indices: Sequence[int]) -> List[Tuple[int, int]]:
    """Collapse sorted frame indices into inclusive (first, last) runs"""
    runs: List[Tuple[int, int]] = []
    for index in sorted(set(indices)):
        if runs and index == runs[-1][1] + 1:
            runs[-1] = (runs[-1][0], index)
        else:
            runs.append((index, index))
    return runs

def select_frames(stream, indices: Sequence[int]):
    """Filter a stream down to the given frame indices, renumbered from zero"""
    runs = frame_runs(indices)
    if not runs:
        raise ValueError("No frames selected")
    if len(runs) == 1:
        first, last = runs[0]
        return stream.trim(start_frame=first, end_frame=last + 1).setpts("PTS-STARTPTS")
    expression = "+".join(f"between(n,{first},{last})" for first, last in runs)
    return stream.filter("select", expression).setpts("N/FRAME_RATE/TB")

def decode_frames(input: Input, indices: Sequence[int]) -> bytes:
    """Decode the given frames of the input as a y4m byte stream"""
    stream = select_frames(ffmpeg.input(str(input.path)), indices)
    try:
        frames, _ = (
            stream.output("pipe:", format="yuv4mpegpipe", strict="-1")
            .run(capture_stdout=True, capture_stderr=True)
        )
    except ffmpeg.Error as e:
        raise EncoderError(f"Failed to decode frames from {input.path}: {_stderr(e)}", "ffmpeg") from e
    return frames

def decode_scene(input: Input, start_frame: int, end_frame: int) -> bytes:
    return decode_frames(input, range(start_frame, end_frame))

def _feed(pipe, frames: bytes) -> None:
    try:
        pipe.write(frames)
    except BrokenPipeError:
        # The encoder exited early; its return code reports why
        pass
    finally:
        pipe.close()

def encode_frames(encoder: Encoder, frames: bytes, output: Path, progress: ProgressCallback) -> None:
    """Run every pass of the encoder over the frames, reporting encoded frames"""
    total = encoder.total_passes
    for current in range(1, total + 1):
        cmd = [encoder.executable_name, *encoder.arguments((current, total), output)]
        logger.debug("Running encoder pass %d/%d: %s", current, total, " ".join(cmd))
        try:
            process = subprocess.Popen(cmd, stdin=subprocess.PIPE, stdout=subprocess.DEVNULL,
                                       stderr=subprocess.PIPE)
        except FileNotFoundError as e:
            raise DependencyError(f"Encoder not found: {encoder.executable_name}", "ffmpeg") from e
        feeder = threading.Thread(target=_feed, args=(process.stdin, frames), daemon=True)
        feeder.start()

        tail: List[str] = []
        buffer = ""
        try:
            for chunk in iter(lambda: process.stderr.read(512), b""):
                buffer += chunk.decode(errors="replace")
                *lines, buffer = _LINE_BREAK.split(buffer)
                for line in lines:
                    if not line:
                        continue
                    tail = (tail + [line])[-20:]
                    frame = encoder.parse_encoded_frames(line)
                    if frame is not None:
                        progress(EncodeProgress((current, total), frame))
        except BaseException:
            process.kill()
            raise
        finally:
            process.wait()
            process.stderr.close()
            feeder.join()
        if process.returncode != 0:
            raise EncoderError(
                f"{encoder.executable_name} exited with {process.returncode}: {' | '.join(tail)}",
                "ffmpeg",
            )

def vmaf_scores(distorted, reference, log_path: Path, model: Optional[str] = None,
                threads: Optional[int] = None) -> List[float]:
    """Per-frame VMAF of distorted against reference through libvmaf"""
    options = {"log_path": str(log_path), "log_fmt": "json"}
    if model:
        options["model"] = model
    if threads:
        options["n_threads"] = threads
    try:
        (
            ffmpeg.filter([distorted, reference], "libvmaf", **options)
            .output("-", format="null")
            .run(capture_stdout=True, capture_stderr=True)
        )
    except ffmpeg.Error as e:
        raise ProbeError(f"VMAF measurement failed: {_stderr(e)}", "ffmpeg") from e
    with open(log_path, "r") as f:
        data = json.load(f)
    return [float(frame["metrics"]["vmaf"]) for frame in data["frames"]]

def concatenate_files(scene_files: List[Path], output: Path, method: ConcatMethod) -> None:
    """Join encoded scene files in order into the output file"""
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(prefix="condor_concat_") as temp_dir:
        if method is ConcatMethod.MKVMERGE:
            options = ["-o", str(output), str(scene_files[0])]
            for scene_file in scene_files[1:]:
                options.extend(["+", str(scene_file)])
            options_file = Path(temp_dir) / "options.json"
            with open(options_file, "w") as f:
                json.dump(options, f)
            try:
                run_cmd(["mkvmerge", f"@{options_file}"])
            except subprocess.CalledProcessError as e:
                raise ConcatenationError(f"mkvmerge failed with {e.returncode}", "ffmpeg") from e
            return

        list_file = Path(temp_dir) / "scenes.txt"
        with open(list_file, "w") as f:
            for scene_file in scene_files:
                escaped = str(Path(scene_file).resolve()).replace("'", "'\\''")
                f.write(f"file '{escaped}'\n")
        try:
            (
                ffmpeg.input(str(list_file), format="concat", safe=0)
                .output(str(output), c="copy")
                .overwrite_output()
                .run(capture_stdout=True, capture_stderr=True)
            )
        except ffmpeg.Error as e:
            raise ConcatenationError(f"ffmpeg concat failed: {_stderr(e)}", "ffmpeg") from e

class FFmpegBackend:
    """
    ffmpeg-based implementation of every collaborator.

    Only VMAF can be measured; other metrics need a custom prober and
    evaluator.
    """

    REQUIRED = ["ffmpeg", "ffprobe"]

    def __init__(self, vmaf_model: Optional[str] = None, vmaf_threads: Optional[int] = None):
        self.vmaf_model = vmaf_model
        self.vmaf_threads = vmaf_threads

    def check(self, metric: Optional[QualityMetric] = None) -> None:
        missing = check_dependencies(self.REQUIRED)
        if missing:
            raise DependencyError(f"Missing required dependencies: {', '.join(missing)}", "ffmpeg")
        if metric is not None and metric is not QualityMetric.VMAF:
            raise DependencyError(f"The ffmpeg backend cannot measure {metric.value}", "ffmpeg")

    def scenecut_scores(self, path: Path, threshold: float, method: ScenecutMethod,
                        num_frames: Optional[int] = None):
        return detect_scenecut_scores(path, threshold, method, num_frames)

    def probe(self, condor: Condor, scene: Scene, encoder: Encoder, indices: List[int]) -> ProbeMeasurement:
        """Encode the selected frames with the encoder and measure them"""
        directory = Path(condor.config.work_directory) / PROBES_DIRECTORY
        directory.mkdir(parents=True, exist_ok=True)
        quantizer = encoder.quantizer
        name = f"{scene.start_frame:08}_{int(quantizer) if quantizer is not None else 'default'}"
        probe_file = directory / f"{name}.{encoder.output_extension}"

        frames = decode_frames(condor.input, indices)
        encode_frames(encoder, frames, probe_file, lambda _progress: None)
        reference = select_frames(ffmpeg.input(str(condor.input.path)), indices)
        scores = vmaf_scores(ffmpeg.input(str(probe_file)), reference, directory / f"{name}.json",
                             self.vmaf_model, self.vmaf_threads)

        bitrate = None
        if condor.input.frame_rate:
            seconds = len(indices) / float(condor.input.frame_rate)
            bitrate = get_file_size(probe_file) * 8 / seconds / 1000
        return ProbeMeasurement(scores=scores, bitrate=bitrate)

    def evaluate(self, condor: Condor, scene: Scene, encoded: Path, indices: List[int]) -> List[float]:
        """Measure an encoded scene against the same frames of the input"""
        distorted = select_frames(ffmpeg.input(str(encoded)), [i - scene.start_frame for i in indices])
        reference = select_frames(ffmpeg.input(str(condor.input.path)), indices)
        log_path = Path(encoded).with_suffix(".vmaf.json")
        return vmaf_scores(distorted, reference, log_path, self.vmaf_model, self.vmaf_threads)

    def collaborators(self) -> Collaborators:
        return Collaborators(
            clip_info=probe_clip,
            scenecut_scorer=self.scenecut_scores,
            decode=decode_scene,
            encode=encode_frames,
            prober=self.probe,
            concatenate=concatenate_files,
            evaluator=self.evaluate,
        )
