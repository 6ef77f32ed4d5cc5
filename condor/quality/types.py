"""Quality metric, probing and statistic definitions"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy import stats

from ..config import DEFAULT_SUBSET_FRAMES

class QualityMetric(Enum):
    VMAF = "vmaf"
    SSIMULACRA2 = "ssimulacra2"
    BUTTERAUGLI = "butteraugli"
    XPSNR = "xpsnr"

    @property
    def is_inverse(self) -> bool:
        """Lower scores mean better quality"""
        return self is QualityMetric.BUTTERAUGLI

    @property
    def score_limits(self) -> Tuple[float, float]:
        """(worst, best) raw scores used to anchor a search with a single probe"""
        return {
            QualityMetric.VMAF: (0.0, 100.0),
            QualityMetric.SSIMULACRA2: (0.0, 100.0),
            QualityMetric.BUTTERAUGLI: (10.0, 0.0),
            QualityMetric.XPSNR: (20.0, 60.0),
        }[self]

def score_within_target(score: float, target_range: Tuple[float, float]) -> bool:
    low, high = target_range
    return low <= score <= high

class InterpolationMethod(Enum):
    LINEAR = "linear"
    QUADRATIC = "quadratic"
    NATURAL = "natural"
    PCHIP = "pchip"
    CATMULL = "catmull"
    AKIMA = "akima"
    CUBIC_POLYNOMIAL = "cubic"

    @property
    def minimum_points(self) -> int:
        return {
            InterpolationMethod.LINEAR: 2,
            InterpolationMethod.QUADRATIC: 3,
            InterpolationMethod.NATURAL: 3,
            InterpolationMethod.PCHIP: 3,
            InterpolationMethod.CATMULL: 4,
            InterpolationMethod.AKIMA: 5,
            InterpolationMethod.CUBIC_POLYNOMIAL: 4,
        }[self]

# Methods usable with a single probe plus the two anchors
BOOTSTRAP_METHODS = (InterpolationMethod.LINEAR, InterpolationMethod.NATURAL)

class SubsetPosition(Enum):
    START = "start"
    MIDDLE = "middle"
    END = "end"

@dataclass(frozen=True)
class WholeProbe:
    """Measure every frame of the scene"""

    def frame_indices(self, start: int, end: int) -> List[int]:
        return list(range(start, end))

@dataclass(frozen=True)
class SkipProbe:
    """Measure every skip-th frame"""
    skip: int = 2

    def frame_indices(self, start: int, end: int) -> List[int]:
        return list(range(start, end, max(self.skip, 1)))

@dataclass(frozen=True)
class SubsetProbe:
    """Measure a contiguous run of frames at the start, middle or end

    The run length is either a frame count or a percentage of the scene
    and never exceeds the scene length.
    """
    position: SubsetPosition = SubsetPosition.MIDDLE
    frames: Optional[int] = DEFAULT_SUBSET_FRAMES
    percentage: Optional[float] = None

    def length(self, total: int) -> int:
        if self.percentage is not None:
            wanted = math.ceil(total * self.percentage / 100.0)
        else:
            wanted = self.frames or 1
        return min(max(wanted, 1), total)

    def frame_indices(self, start: int, end: int) -> List[int]:
        total = end - start
        if total <= 0:
            return []
        length = self.length(total)
        if self.position is SubsetPosition.START:
            first = start
        elif self.position is SubsetPosition.END:
            first = end - length
        else:
            first = start + (total - length) // 2
        return list(range(first, first + length))

@dataclass(frozen=True)
class ExactProbe:
    """Measure the given frame offsets from the scene start"""
    frames: Tuple[int, ...] = ()

    def frame_indices(self, start: int, end: int) -> List[int]:
        indices = sorted({start + offset for offset in self.frames if 0 <= offset < end - start})
        # Offsets past a short scene leave nothing to measure
        return indices or list(range(start, end))

ProbingStrategy = Union[WholeProbe, SkipProbe, SubsetProbe, ExactProbe]

class StatisticKind(Enum):
    MEAN = "mean"
    MEDIAN = "median"
    HARMONIC = "harmonic"
    PERCENTILE = "percentile"
    STANDARD_DEVIATION = "standard-deviation"
    MODE = "mode"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"
    ROOT_MEAN_SQUARE = "root-mean-square"

@dataclass(frozen=True)
class ProbeStatistic:
    """Reduction of per-frame scores to the single score of a probe

    PERCENTILE takes its percentile (0-100) from value and
    STANDARD_DEVIATION returns mean + value * standard deviation.
    """
    kind: StatisticKind = StatisticKind.MEAN
    value: Optional[float] = None

    def reduce(self, scores: Sequence[float]) -> float:
        if len(scores) == 0:
            raise ValueError("No scores to reduce")
        values = np.asarray(scores, dtype=float)
        if self.kind is StatisticKind.MEAN:
            return float(values.mean())
        if self.kind is StatisticKind.MEDIAN:
            return float(np.median(values))
        if self.kind is StatisticKind.HARMONIC:
            if (values <= 0).any():
                raise ValueError("Harmonic mean needs positive scores")
            return float(stats.hmean(values))
        if self.kind is StatisticKind.PERCENTILE:
            return float(np.percentile(values, self.value if self.value is not None else 50.0))
        if self.kind is StatisticKind.STANDARD_DEVIATION:
            sigma = self.value if self.value is not None else 0.0
            return float(values.mean() + sigma * values.std())
        if self.kind is StatisticKind.MODE:
            # Scores are continuous; the mode is taken over two decimals
            return float(stats.mode(np.round(values, 2), keepdims=False).mode)
        if self.kind is StatisticKind.MINIMUM:
            return float(values.min())
        if self.kind is StatisticKind.MAXIMUM:
            return float(values.max())
        return float(np.sqrt(np.mean(np.square(values))))
