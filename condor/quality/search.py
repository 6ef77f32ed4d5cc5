"""Quantizer search towards a target quality range

The search probes a quantizer, measures the resulting score and predicts
the next quantizer by interpolating quantizer as a function of score over
the probes so far. Scores of inverse metrics are negated so that a higher
internal score always means better quality and scores fall as the
quantizer rises.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .interpolation import interpolate
from .types import InterpolationMethod, QualityMetric

logger = logging.getLogger(__name__)

class StopReason(Enum):
    IN_RANGE = "score within target range"
    MAXIMUM_PROBES = "maximum probes reached"
    BOUNDARY = "quantizer range boundary reached"
    EXHAUSTED = "no quantizer left between probes"
    REPEATED = "predicted quantizer already probed"
    CANCELLED = "cancelled"

@dataclass(frozen=True)
class Probe:
    quantizer: int
    score: float

@dataclass
class SearchResult:
    quantizer: Optional[int]
    score: Optional[float]
    reason: StopReason
    history: List[Probe] = field(default_factory=list)

def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))

class QualitySearch:
    """
    Iterative quantizer search.

    Args:
        quantizer_range: Inclusive (minimum, maximum) quantizer.
        target_range: Inclusive (low, high) score range to land in.
        maximum_probes: Probe budget, including probes given as history.
        interpolators: (bootstrap, refinement) methods for one and for
            two or more probes.
        metric: Metric producing the scores.
    """

    def __init__(self, quantizer_range: Tuple[int, int], target_range: Tuple[float, float],
                 maximum_probes: int,
                 interpolators: Tuple[InterpolationMethod, InterpolationMethod] = (
                     InterpolationMethod.NATURAL, InterpolationMethod.PCHIP),
                 metric: QualityMetric = QualityMetric.VMAF):
        if quantizer_range[0] > quantizer_range[1]:
            raise ValueError(f"Invalid quantizer range {quantizer_range}")
        if target_range[0] > target_range[1]:
            raise ValueError(f"Invalid target range {target_range}")
        if maximum_probes < 1:
            raise ValueError("At least one probe is required")
        self.quantizer_range = quantizer_range
        self.target_range = target_range
        self.maximum_probes = maximum_probes
        self.bootstrap, self.refinement = interpolators
        self.metric = metric

    def _internal(self, score: float) -> float:
        return -score if self.metric.is_inverse else score

    @property
    def _internal_target(self) -> Tuple[float, float]:
        low, high = self.target_range
        if self.metric.is_inverse:
            return -high, -low
        return low, high

    @property
    def _internal_limits(self) -> Tuple[float, float]:
        worst, best = self.metric.score_limits
        return self._internal(worst), self._internal(best)

    def _in_range(self, score: float) -> bool:
        low, high = self._internal_target
        return low <= score <= high

    def predict(self, probes: List[Probe], lower: int, upper: int) -> int:
        """Next quantizer to probe within [lower, upper] given internal-score probes"""
        low, high = self._internal_target
        target = (low + high) / 2.0
        bisection = (lower + upper) / 2.0
        predicted = None

        if len(probes) == 1:
            minimum, maximum = self.quantizer_range
            worst, best = self._internal_limits
            points = [(probes[0].score, probes[0].quantizer)]
            if probes[0].quantizer != minimum:
                points.append((best, minimum))
            if probes[0].quantizer != maximum:
                points.append((worst, maximum))
            predicted = self._interpolate(self.bootstrap, points, target)
        elif len(probes) > 1:
            points = [(probe.score, probe.quantizer) for probe in probes]
            predicted = self._interpolate(self.refinement, points, target)

        if predicted is None:
            predicted = bisection
        return min(max(round_half_up(predicted), lower), upper)

    @staticmethod
    def _interpolate(method: InterpolationMethod, points: Iterable[Tuple[float, float]],
                     target: float) -> Optional[float]:
        # Probes with equal scores collapse into one point at their mean quantizer
        grouped: Dict[float, List[float]] = {}
        for score, quantizer in points:
            grouped.setdefault(score, []).append(quantizer)
        scores = sorted(grouped)
        if len(scores) < 2:
            return None
        quantizers = [sum(grouped[score]) / len(grouped[score]) for score in scores]
        return interpolate(method, scores, quantizers, target)

    def run(self, probe: Callable[[int], float], history: Iterable[Tuple[int, float]] = (),
            should_stop: Optional[Callable[[], bool]] = None) -> SearchResult:
        """
        Search for a quantizer whose score falls in the target range.

        Args:
            probe: Encodes at a quantizer and returns the measured score.
            history: (quantizer, score) pairs already measured, e.g. on resume.
            should_stop: Checked before every probe; stops the search when true.

        Returns:
            SearchResult: Chosen quantizer (None when nothing was probed),
            its score, the stop reason and every probe in order.
        """
        minimum, maximum = self.quantizer_range
        low, high = self._internal_target
        lower, upper = minimum, maximum
        probes: List[Probe] = []
        reason = None

        def record(quantizer: int, raw_score: float) -> Optional[StopReason]:
            nonlocal lower, upper
            score = self._internal(raw_score)
            probes.append(Probe(quantizer, score))
            if self._in_range(score):
                return StopReason.IN_RANGE
            if score > high:
                if quantizer >= maximum:
                    return StopReason.BOUNDARY
                lower = max(lower, quantizer + 1)
            else:
                if quantizer <= minimum:
                    return StopReason.BOUNDARY
                upper = min(upper, quantizer - 1)
            if lower > upper:
                return StopReason.EXHAUSTED
            return None

        for quantizer, raw_score in history:
            reason = record(quantizer, raw_score) or reason

        while reason is None:
            if len(probes) >= self.maximum_probes:
                reason = StopReason.MAXIMUM_PROBES
                break
            quantizer = self.predict(probes, lower, upper)
            if any(previous.quantizer == quantizer for previous in probes):
                reason = StopReason.REPEATED
                break
            if should_stop is not None and should_stop():
                reason = StopReason.CANCELLED
                break
            reason = record(quantizer, probe(quantizer))

        chosen = self._select(probes, reason)
        result = SearchResult(
            quantizer=chosen.quantizer if chosen else None,
            score=self._internal(chosen.score) if chosen else None,
            reason=reason,
            history=[Probe(p.quantizer, self._internal(p.score)) for p in probes],
        )
        self._log_probes(result)
        return result

    def _select(self, probes: List[Probe], reason: StopReason) -> Optional[Probe]:
        if not probes:
            return None
        in_range = [probe for probe in probes if self._in_range(probe.score)]
        if in_range:
            return max(in_range, key=lambda probe: probe.quantizer)
        if reason is StopReason.BOUNDARY:
            return probes[-1]
        low, high = self._internal_target
        target = (low + high) / 2.0
        return min(probes, key=lambda probe: (abs(probe.score - target), probe.quantizer))

    def _log_probes(self, result: SearchResult) -> None:
        summary = ", ".join(f"{probe.quantizer}: {probe.score:.2f}" for probe in result.history)
        logger.debug(
            "Target %s-%s with %d probes [%s] chose %s (%s)",
            self.target_range[0], self.target_range[1], len(result.history),
            summary, result.quantizer, result.reason.value,
        )
