"""External operations the stages depend on

Stages never start decoders, encoders or metric tools themselves; they
call the functions bundled here. condor.ffmpeg provides the default
implementations and tests substitute their own.
"""

from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .models.condor import Condor, Input
from .models.encoder import Encoder
from .models.scene import Scene, ScenecutScore
from .models.stage_config import ConcatMethod, ScenecutMethod

@dataclass(frozen=True)
class ClipInfo:
    num_frames: int
    frame_rate: Fraction
    width: Optional[int] = None
    height: Optional[int] = None

@dataclass(frozen=True)
class EncodeProgress:
    pass_: Tuple[int, int]
    frame: int

@dataclass(frozen=True)
class ProbeMeasurement:
    scores: List[float]
    bitrate: Optional[float] = None

ProgressCallback = Callable[[EncodeProgress], None]

@dataclass
class Collaborators:
    # path -> clip facts
    clip_info: Callable[[Path], ClipInfo]
    # (path, threshold, method, num_frames) -> score per frame
    scenecut_scorer: Callable[[Path, float, ScenecutMethod, Optional[int]], Dict[int, ScenecutScore]]
    # (input, start, end) -> frames handed to encode
    decode: Callable[[Input, int, int], Any]
    # (encoder, frames, output, progress) -> None, writes output
    encode: Callable[[Encoder, Any, Path, ProgressCallback], None]
    # (condor, scene, encoder with quantizer, frame indices) -> measurement
    prober: Callable[[Condor, Scene, Encoder, List[int]], ProbeMeasurement]
    # (scene files in order, output, method) -> None
    concatenate: Callable[[List[Path], Path, ConcatMethod], None]
    # (condor, scene, encoded scene file, frame indices) -> per-frame scores
    evaluator: Callable[[Condor, Scene, Path, List[int]], List[float]]
