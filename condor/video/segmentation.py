"""Scene segmentation policies

Both policies turn a frame count into half-open (start, end) spans that
partition [0, num_frames). Forced cuts, such as zone boundaries, are always
kept even when they produce a span shorter than the minimum length.
"""

import logging
import math
from typing import Dict, Iterable, List, Tuple

from ..models.scene import ScenecutScore

logger = logging.getLogger(__name__)

Span = Tuple[int, int]

def _regions(num_frames: int, forced_cuts: Iterable[int]) -> List[Span]:
    cuts = sorted({cut for cut in forced_cuts if 0 < cut < num_frames})
    bounds = [0, *cuts, num_frames]
    return list(zip(bounds[:-1], bounds[1:]))

def split_evenly(start: int, end: int, maximum_length: int) -> List[Span]:
    """Split a span into the fewest near-equal pieces no longer than maximum_length"""
    length = end - start
    pieces = max(math.ceil(length / maximum_length), 1)
    bounds = [start + (index * length) // pieces for index in range(pieces)] + [end]
    return list(zip(bounds[:-1], bounds[1:]))

class FixedLength:
    """
    Cut every maximum_length frames.

    A trailing chunk shorter than minimum_length is merged with the chunk
    before it and the merged span is split evenly in two.
    """

    def __init__(self, minimum_length: int, maximum_length: int):
        self.minimum_length = minimum_length
        self.maximum_length = maximum_length

    def split(self, num_frames: int, forced_cuts: Iterable[int] = ()) -> List[Span]:
        spans: List[Span] = []
        for region_start, region_end in _regions(num_frames, forced_cuts):
            chunks = [
                (start, min(start + self.maximum_length, region_end))
                for start in range(region_start, region_end, self.maximum_length)
            ]
            if len(chunks) > 1 and chunks[-1][1] - chunks[-1][0] < self.minimum_length:
                _, merged_end = chunks.pop()
                merged_start, _ = chunks.pop()
                middle = merged_start + (merged_end - merged_start) // 2
                chunks.extend([(merged_start, middle), (middle, merged_end)])
            spans.extend(chunks)
        return spans

class CostBased:
    """
    Cut where a frame's scene cut score crosses its threshold.

    Cuts closer than minimum_length to the previous cut (or to the next
    forced cut or the clip end) are dropped, then scenes longer than
    maximum_length are split evenly.
    """

    def __init__(self, minimum_length: int, maximum_length: int):
        self.minimum_length = minimum_length
        self.maximum_length = maximum_length

    def candidates(self, scores: Dict[int, ScenecutScore]) -> List[int]:
        return sorted(frame for frame, score in scores.items() if score.is_scenecut)

    def split(self, num_frames: int, scores: Dict[int, ScenecutScore],
              forced_cuts: Iterable[int] = ()) -> List[Span]:
        forced = sorted({cut for cut in forced_cuts if 0 < cut < num_frames})
        candidates = [frame for frame in self.candidates(scores) if 0 < frame < num_frames]

        cuts: List[int] = []
        last = 0
        for frame in sorted(set(candidates) | set(forced)):
            if frame in forced:
                cuts.append(frame)
                last = frame
                continue
            following = next((cut for cut in forced if cut > frame), num_frames)
            if frame - last >= self.minimum_length and following - frame >= self.minimum_length:
                cuts.append(frame)
                last = frame
        logger.debug("Kept %d of %d scene cut candidates", len(cuts) - len(forced), len(candidates))

        bounds = [0, *cuts, num_frames]
        spans: List[Span] = []
        for start, end in zip(bounds[:-1], bounds[1:]):
            if end - start > self.maximum_length:
                spans.extend(split_evenly(start, end, self.maximum_length))
            else:
                spans.append((start, end))
        return spans
