"""Zones: frame ranges encoded with their own encoder settings

A zones file has one zone per line:

    START END [ENCODER] [--option=value | --option value | --flag ...]

END may be -1 for the end of the clip. Options are applied on top of the
default encoder, or on top of a fresh encoder when ENCODER names another
one. Blank lines and lines starting with # are ignored.
"""

import copy
import logging
from pathlib import Path
from typing import Iterable, List, Set, Tuple

from ..exceptions import StageWarning, ValidationError, ZoneOverlapError
from ..models.cli_parameter import parse_options
from ..models.encoder import Encoder, EncoderBase
from ..models.scene import Scene, Zone

logger = logging.getLogger(__name__)

def parse_zone_lines(lines: Iterable[str], num_frames: int,
                     default_encoder: Encoder) -> Tuple[List[Zone], List[StageWarning]]:
    """
    Parse zone lines into zones.

    Returns:
        The zones in file order and warnings for recoverable problems,
        such as an end frame past the clip being clamped.

    Raises:
        ValidationError: On lines that cannot be turned into a zone.
    """
    zones: List[Zone] = []
    warnings: List[StageWarning] = []
    for line_number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        tokens = line.split()
        if len(tokens) < 2:
            raise ValidationError(f"Line {line_number}: expected START END", "zones")
        try:
            start, end = int(tokens[0]), int(tokens[1])
        except ValueError as e:
            raise ValidationError(f"Line {line_number}: frames must be integers", "zones") from e

        if end == -1:
            end = num_frames
        if start < 0 or start >= num_frames:
            raise ValidationError(
                f"Line {line_number}: start frame {start} is outside the clip (0-{num_frames - 1})", "zones"
            )
        if end > num_frames:
            warnings.append(StageWarning(
                f"Line {line_number}: end frame {end} is past the clip, clamped to {num_frames}", "zones"
            ))
            end = num_frames
        if end <= start:
            raise ValidationError(f"Line {line_number}: end frame must be after start frame", "zones")

        rest = tokens[2:]
        encoder = copy.deepcopy(default_encoder)
        if rest and not rest[0].startswith("-"):
            try:
                base = EncoderBase(rest[0].lower())
            except ValueError as e:
                raise ValidationError(f"Line {line_number}: unknown encoder {rest[0]!r}", "zones") from e
            if base is not default_encoder.base:
                encoder = Encoder(base=base)
            rest = rest[1:]
        try:
            encoder.options.update(parse_options(rest))
        except ValueError as e:
            raise ValidationError(f"Line {line_number}: {e}", "zones") from e
        zones.append(Zone(start, end, encoder))
    return zones, warnings

def load_zones(path: Path, num_frames: int, default_encoder: Encoder) -> Tuple[List[Zone], List[StageWarning]]:
    """Read and parse a zones file"""
    with open(path, "r") as f:
        return parse_zone_lines(f.readlines(), num_frames, default_encoder)

def validate_zones(zones: List[Zone], num_frames: int) -> List[Zone]:
    """
    Sort zones by start frame and check they do not overlap.

    Raises:
        ZoneOverlapError: When two zones cover the same frame.
        ValidationError: When a zone lies outside the clip.
    """
    ordered = sorted(zones, key=lambda zone: zone.start_frame)
    for zone in ordered:
        if zone.start_frame < 0 or zone.end_frame > num_frames or zone.end_frame <= zone.start_frame:
            raise ValidationError(
                f"Zone {zone.start_frame}-{zone.end_frame} is outside the clip (0-{num_frames})", "zones"
            )
    for current, following in zip(ordered, ordered[1:]):
        if current.end_frame > following.start_frame:
            raise ZoneOverlapError(
                "Zones file contains overlapping zones: "
                f"{current.start_frame}-{current.end_frame} and {following.start_frame}-{following.end_frame}",
                "zones",
            )
    return ordered

def zone_boundaries(zones: Iterable[Zone]) -> Set[int]:
    """Frames where a scene must start because a zone starts or ends there"""
    boundaries = set()
    for zone in zones:
        boundaries.add(zone.start_frame)
        boundaries.add(zone.end_frame)
    return boundaries

def apply_zones(scenes: List[Scene], zones: List[Zone]) -> None:
    """Give every scene inside a zone a copy of the zone's encoder"""
    for zone in zones:
        for scene in scenes:
            if scene.start_frame >= zone.start_frame and scene.end_frame <= zone.end_frame:
                scene.encoder = copy.deepcopy(zone.encoder)
