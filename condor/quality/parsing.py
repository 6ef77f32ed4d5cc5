"""Parsers for quality search settings given on the command line"""

import logging
import re
from typing import Optional, Tuple

from ..config import RECOMMENDED_MINIMUM_PROBES
from ..exceptions import ConfigurationError, StageWarning
from .types import (
    BOOTSTRAP_METHODS, ExactProbe, InterpolationMethod, ProbeStatistic,
    ProbingStrategy, SkipProbe, StatisticKind, SubsetPosition, SubsetProbe,
    WholeProbe,
)

logger = logging.getLogger(__name__)

_RANGE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(?:-\s*(-?\d+(?:\.\d+)?)\s*)?$")

def parse_target_range(text: str) -> Tuple[float, float]:
    """Parse "94-96" into (94.0, 96.0); a single value is a one-point range"""
    match = _RANGE.match(text)
    if not match:
        raise ConfigurationError(f"Invalid target range {text!r}, expected MIN-MAX", "target-quality")
    low = float(match.group(1))
    high = float(match.group(2)) if match.group(2) is not None else low
    if low > high:
        raise ConfigurationError(f"Target range {text!r} has minimum above maximum", "target-quality")
    return low, high

def parse_quantizer_range(text: str) -> Tuple[int, int]:
    """Parse "15-50" into (15, 50)"""
    low, high = parse_target_range(text)
    if not (low.is_integer() and high.is_integer()) or low < 0:
        raise ConfigurationError(f"Quantizer range {text!r} must be non-negative integers", "target-quality")
    if low == high:
        raise ConfigurationError(f"Quantizer range {text!r} must span more than one value", "target-quality")
    return int(low), int(high)

def parse_interpolators(text: str) -> Tuple[InterpolationMethod, InterpolationMethod]:
    """
    Parse "natural-pchip" into (bootstrap, refinement) methods.

    The bootstrap method runs with a single probe and must be linear or natural.
    """
    parts = [part.strip().lower() for part in text.split("-")]
    if len(parts) != 2:
        raise ConfigurationError(
            f"Invalid interpolators {text!r}, expected BOOTSTRAP-REFINEMENT", "target-quality"
        )
    try:
        bootstrap, refinement = (InterpolationMethod(part) for part in parts)
    except ValueError as e:
        raise ConfigurationError(f"Unknown interpolation method in {text!r}", "target-quality") from e
    if bootstrap not in BOOTSTRAP_METHODS:
        raise ConfigurationError(
            f"Bootstrap interpolation must be linear or natural, got {bootstrap.value}", "target-quality"
        )
    return bootstrap, refinement

def parse_probe_statistic(text: str) -> ProbeStatistic:
    """Parse "mean", "percentile=5" or "standard-deviation=-1" style statistics"""
    name, _, value = text.strip().lower().partition("=")
    try:
        kind = StatisticKind(name)
    except ValueError as e:
        raise ConfigurationError(f"Unknown probe statistic {name!r}", "target-quality") from e
    if kind is StatisticKind.PERCENTILE or kind is StatisticKind.STANDARD_DEVIATION:
        if not value:
            raise ConfigurationError(f"Probe statistic {name!r} needs a value", "target-quality")
        try:
            number = float(value)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {name!r}: {value!r}", "target-quality") from e
        if kind is StatisticKind.PERCENTILE and not 0.0 <= number <= 100.0:
            raise ConfigurationError("Percentile must be between 0 and 100", "target-quality")
        return ProbeStatistic(kind, number)
    if value:
        raise ConfigurationError(f"Probe statistic {name!r} takes no value", "target-quality")
    return ProbeStatistic(kind)

def parse_probing_strategy(text: str) -> ProbingStrategy:
    """
    Parse a probing strategy.

    Accepted forms: "whole", "skip=N", "subset=POSITION:FRAMES",
    "subset=POSITION:PERCENT%" and "exact=F1,F2,...".
    """
    name, _, value = text.strip().lower().partition("=")
    try:
        if name == "whole":
            return WholeProbe()
        if name == "skip":
            skip = int(value)
            if skip < 1:
                raise ConfigurationError("Probe skip must be at least 1", "target-quality")
            return SkipProbe(skip)
        if name == "subset":
            position, _, length = value.partition(":")
            position = SubsetPosition(position or "middle")
            if not length:
                return SubsetProbe(position)
            if length.endswith("%"):
                percentage = float(length[:-1])
                if not 0.0 < percentage <= 100.0:
                    raise ConfigurationError("Subset percentage must be in (0, 100]", "target-quality")
                return SubsetProbe(position, frames=None, percentage=percentage)
            frames = int(length)
            if frames < 1:
                raise ConfigurationError("Subset length must be at least 1 frame", "target-quality")
            return SubsetProbe(position, frames=frames)
        if name == "exact":
            frames = tuple(sorted({int(frame) for frame in value.split(",") if frame.strip()}))
            if not frames or frames[0] < 0:
                raise ConfigurationError("Exact probing needs non-negative frame offsets", "target-quality")
            return ExactProbe(frames)
    except ValueError as e:
        raise ConfigurationError(f"Invalid probing strategy {text!r}", "target-quality") from e
    raise ConfigurationError(f"Unknown probing strategy {name!r}", "target-quality")

def validate_probes(probes: int) -> Optional[StageWarning]:
    """Reject zero probes and warn when fewer than recommended are allowed"""
    if probes < 1:
        raise ConfigurationError("At least one probe is required", "target-quality")
    if probes < RECOMMENDED_MINIMUM_PROBES:
        return StageWarning(
            f"{probes} probes is below the recommended minimum of {RECOMMENDED_MINIMUM_PROBES}; "
            "the quantizer may miss the target range",
            "target-quality",
        )
    return None
