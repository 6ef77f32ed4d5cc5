"""Per-stage configuration stored on the aggregate"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from ..config import (
    BENCHMARK_MIN_SCENE_FRAMES, BENCHMARK_SCENES, BENCHMARK_THRESHOLD,
    DEFAULT_BUFFER_EXTRA, DEFAULT_MAXIMUM_PROBES, DEFAULT_MIN_SCENE_LENGTH,
    DEFAULT_SCENECUT_THRESHOLD, DEFAULT_TARGET_RANGE, WORKING_ROOT,
)
from ..exceptions import ConfigurationError, FailureThresholdExceeded, StageWarning
from ..quality.parsing import validate_probes
from ..quality.types import (
    InterpolationMethod, ProbeStatistic, ProbingStrategy, QualityMetric, WholeProbe,
    BOOTSTRAP_METHODS,
)
from .scene import Zone

class SceneDetectionMethod(Enum):
    FIXED_LENGTH = "fixed"
    COST_BASED = "cost"

class ScenecutMethod(Enum):
    FAST = "fast"
    STANDARD = "standard"

@dataclass
class SceneDetectionConfig:
    """
    Scene detection settings.

    Lengths are in frames; without a maximum_length scenes are limited
    to ten seconds of the input frame rate.
    """
    method: SceneDetectionMethod = SceneDetectionMethod.COST_BASED
    scenecut_method: ScenecutMethod = ScenecutMethod.STANDARD
    minimum_length: int = DEFAULT_MIN_SCENE_LENGTH
    maximum_length: Optional[int] = None
    threshold: float = DEFAULT_SCENECUT_THRESHOLD
    zones: List[Zone] = field(default_factory=list)

    def validate(self) -> List[StageWarning]:
        if self.minimum_length < 1:
            raise ConfigurationError("Minimum scene length must be at least 1 frame", "scene-detection")
        if self.maximum_length is not None and self.maximum_length < self.minimum_length:
            raise ConfigurationError(
                f"Maximum scene length {self.maximum_length} is below the minimum {self.minimum_length}",
                "scene-detection",
            )
        warnings = []
        if self.maximum_length is not None and 2 * self.minimum_length > self.maximum_length:
            warnings.append(StageWarning(
                "Maximum scene length is less than twice the minimum; "
                "forced splits may produce scenes shorter than the minimum",
                "scene-detection",
            ))
        return warnings

class BufferKind(Enum):
    NONE = "none"
    WORKERS = "workers"
    MAXIMUM = "maximum"

@dataclass(frozen=True)
class BufferStrategy:
    """How many scenes may be decoded ahead of the encoding workers"""
    kind: BufferKind = BufferKind.WORKERS
    extra: int = DEFAULT_BUFFER_EXTRA

    @classmethod
    def none(cls) -> "BufferStrategy":
        return cls(BufferKind.NONE, 0)

    @classmethod
    def workers(cls, extra: int) -> "BufferStrategy":
        return cls(BufferKind.WORKERS, extra)

    @classmethod
    def maximum(cls) -> "BufferStrategy":
        return cls(BufferKind.MAXIMUM, 0)

    @classmethod
    def parse(cls, text: str) -> "BufferStrategy":
        """Parse "none", "maximum" or a number of extra scenes"""
        value = text.strip().lower()
        if value == "none":
            return cls.none()
        if value == "maximum":
            return cls.maximum()
        try:
            extra = int(value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid buffer strategy {text!r}", "parallel-encoder") from e
        if extra < 0:
            raise ConfigurationError("Buffer size cannot be negative", "parallel-encoder")
        return cls.workers(extra)

    def permits(self, workers: int) -> int:
        if self.kind is BufferKind.NONE:
            return workers
        if self.kind is BufferKind.MAXIMUM:
            return 2 * workers
        return workers + self.extra

@dataclass
class ParallelEncoderConfig:
    workers: Optional[int] = None
    buffer_strategy: BufferStrategy = field(default_factory=BufferStrategy)

    def validate(self) -> List[StageWarning]:
        if self.workers is not None and self.workers < 1:
            raise ConfigurationError("Workers must be at least 1", "parallel-encoder")
        if self.buffer_strategy.extra < 0:
            raise ConfigurationError("Buffer size cannot be negative", "parallel-encoder")
        return []

@dataclass
class TargetQualityConfig:
    metric: QualityMetric = QualityMetric.VMAF
    target_range: Tuple[float, float] = DEFAULT_TARGET_RANGE
    maximum_probes: int = DEFAULT_MAXIMUM_PROBES
    quantizer_range: Optional[Tuple[int, int]] = None
    interpolators: Tuple[InterpolationMethod, InterpolationMethod] = (
        InterpolationMethod.NATURAL, InterpolationMethod.PCHIP)
    probing_strategy: ProbingStrategy = field(default_factory=WholeProbe)
    statistic: ProbeStatistic = field(default_factory=ProbeStatistic)

    def validate(self) -> List[StageWarning]:
        low, high = self.target_range
        if low > high:
            raise ConfigurationError(f"Invalid target range {low}-{high}", "target-quality")
        if self.quantizer_range is not None and self.quantizer_range[0] >= self.quantizer_range[1]:
            raise ConfigurationError(f"Invalid quantizer range {self.quantizer_range}", "target-quality")
        if self.interpolators[0] not in BOOTSTRAP_METHODS:
            raise ConfigurationError("Bootstrap interpolation must be linear or natural", "target-quality")
        warning = validate_probes(self.maximum_probes)
        return [warning] if warning else []

class ConcatMethod(Enum):
    FFMPEG = "ffmpeg"
    MKVMERGE = "mkvmerge"

@dataclass
class ConcatConfig:
    method: ConcatMethod = ConcatMethod.FFMPEG

@dataclass
class QualityCheckConfig:
    metric: QualityMetric = QualityMetric.VMAF
    probing_strategy: ProbingStrategy = field(default_factory=WholeProbe)
    statistic: ProbeStatistic = field(default_factory=ProbeStatistic)
    target_range: Optional[Tuple[float, float]] = None

@dataclass
class BenchmarkerConfig:
    threshold: float = BENCHMARK_THRESHOLD
    scenes: int = BENCHMARK_SCENES
    minimum_frames: int = BENCHMARK_MIN_SCENE_FRAMES
    maximum_workers: Optional[int] = None

    def validate(self) -> List[StageWarning]:
        if self.threshold <= 0:
            raise ConfigurationError("Benchmark threshold must be positive", "benchmarker")
        if self.scenes < 1:
            raise ConfigurationError("Benchmark needs at least one scene", "benchmarker")
        return []

@dataclass
class FailurePolicy:
    """
    When scene failures abort the run.

    Without maximum_failures the run aborts only when every scene failed;
    otherwise it aborts once failures exceed maximum_failures.
    """
    maximum_failures: Optional[int] = None

    def check(self, succeeded: int, failed: int, module: str) -> None:
        if self.maximum_failures is None:
            if failed and not succeeded:
                raise FailureThresholdExceeded(f"All {failed} scenes failed", module)
        elif failed > self.maximum_failures:
            raise FailureThresholdExceeded(
                f"{failed} scenes failed, more than the allowed {self.maximum_failures}", module
            )

@dataclass
class StageConfig:
    work_directory: Path = WORKING_ROOT
    scene_detection: SceneDetectionConfig = field(default_factory=SceneDetectionConfig)
    target_quality: Optional[TargetQualityConfig] = None
    benchmarker: Optional[BenchmarkerConfig] = None
    parallel_encoder: ParallelEncoderConfig = field(default_factory=ParallelEncoderConfig)
    concat: ConcatConfig = field(default_factory=ConcatConfig)
    quality_check: Optional[QualityCheckConfig] = None
    failure_policy: FailurePolicy = field(default_factory=FailurePolicy)
