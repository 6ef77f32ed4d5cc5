"""Per-frame scene cut scores from PySceneDetect"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from scenedetect import ContentDetector, SceneManager, StatsManager, open_video

from ..models.scene import ScenecutScore
from ..models.stage_config import ScenecutMethod

logger = logging.getLogger(__name__)

CONTENT_METRIC = "content_val"

# Frames are downscaled before scoring; fast scoring trades accuracy for speed
DOWNSCALE = {ScenecutMethod.STANDARD: 2, ScenecutMethod.FAST: 4}

def scores_from_content(values: List[float], threshold: float) -> Dict[int, ScenecutScore]:
    """
    Turn per-frame content change values into scene cut scores.

    The backward and forward adjusted costs subtract the change on the
    neighbouring frames, so single-frame flashes and gradual fades do not
    count as cuts.
    """
    scores = {}
    for frame, value in enumerate(values):
        previous = values[frame - 1] if frame > 0 else 0.0
        following = values[frame + 1] if frame + 1 < len(values) else 0.0
        scores[frame] = ScenecutScore(
            inter_cost=value,
            imp_block_cost=value,
            backward_adjusted_cost=value - previous,
            forward_adjusted_cost=value - following,
            threshold=threshold,
        )
    return scores

def detect_scenecut_scores(path: Path, threshold: float, method: ScenecutMethod,
                           num_frames: Optional[int] = None) -> Dict[int, ScenecutScore]:
    """Score every frame of the clip with PySceneDetect's content detector"""
    video = open_video(str(path))
    stats = StatsManager()
    manager = SceneManager(stats_manager=stats)
    manager.auto_downscale = False
    manager.downscale = DOWNSCALE[method]
    manager.add_detector(ContentDetector(
        threshold=threshold,
        min_scene_len=1,
        luma_only=method is ScenecutMethod.FAST,
    ))
    logger.info("Scoring scene cuts in %s", path)
    manager.detect_scenes(video=video, end_time=num_frames)

    total = num_frames if num_frames is not None else video.frame_number
    values = []
    for frame in range(total):
        if stats.metrics_exist(frame, [CONTENT_METRIC]):
            value = stats.get_metrics(frame, [CONTENT_METRIC])[0]
            values.append(float(value) if value is not None else 0.0)
        else:
            values.append(0.0)
    # The first frame has nothing to differ from
    if values:
        values[0] = 0.0
    return scores_from_content(values, threshold)
