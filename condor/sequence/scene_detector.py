"""Scene detection stage: split the input into scenes"""

import copy
import logging
from typing import List

from ..collaborators import Collaborators
from ..exceptions import StageWarning, ValidationError
from ..models.condor import Condor
from ..models.scene import Scene, scene_detection_data, validate_scene_list
from ..models.stage_config import SceneDetectionMethod
from ..video.segmentation import CostBased, FixedLength
from ..video.zones import apply_zones, validate_zones, zone_boundaries
from .base import CancellationToken, Stage, StageDetails, StageKind
from .status import Percentage, Processing, ProgressChannel, Whole

logger = logging.getLogger(__name__)

def resolve_input(condor: Condor, collaborators: Collaborators) -> None:
    """Fill in clip facts of the input that have not been probed yet"""
    if condor.input.probed:
        return
    info = collaborators.clip_info(condor.input.path)
    condor.input.num_frames = info.num_frames
    condor.input.frame_rate = info.frame_rate
    condor.input.width = info.width
    condor.input.height = info.height
    logger.info("Input %s: %d frames at %s fps", condor.input.path, info.num_frames, info.frame_rate)

class SceneDetector(Stage):
    kind = StageKind.SCENE_DETECTION
    DETAILS = StageDetails(
        name="Scene Detector",
        description="Detect scene changes",
        version="0.0.1",
    )

    def __init__(self, collaborators: Collaborators):
        self.collaborators = collaborators

    def validate(self, condor: Condor) -> List[StageWarning]:
        return condor.config.scene_detection.validate()

    def initialize(self, condor: Condor, progress: ProgressChannel) -> List[StageWarning]:
        resolve_input(condor, self.collaborators)
        if condor.input.num_frames <= 0:
            raise ValidationError(f"Input {condor.input.path} has no frames", self.id)
        return []

    def process(self, condor: Condor, progress: ProgressChannel,
                cancellation: CancellationToken) -> List[StageWarning]:
        num_frames = condor.input.num_frames
        if condor.scenes and condor.scenes[-1].end_frame == num_frames:
            validate_scene_list(condor.scenes, num_frames)
            logger.info("Reusing %d detected scenes", len(condor.scenes))
            return []
        if cancellation.cancelled:
            return []

        config = condor.config.scene_detection
        zones = validate_zones(config.zones, num_frames)
        forced_cuts = zone_boundaries(zones)
        maximum_length = condor.maximum_scene_length()
        progress.send(Whole(Processing(self.id, Percentage(0.0))))

        if config.method is SceneDetectionMethod.FIXED_LENGTH:
            scores = {}
            spans = FixedLength(config.minimum_length, maximum_length).split(num_frames, forced_cuts)
        else:
            scores = self.collaborators.scenecut_scorer(
                condor.input.path, config.threshold, config.scenecut_method, num_frames,
            )
            spans = CostBased(config.minimum_length, maximum_length).split(num_frames, scores, forced_cuts)

        scenes = []
        for start, end in spans:
            scene = Scene(start, end, encoder=copy.deepcopy(condor.encoder))
            data = scene_detection_data(scene, create=True)
            # Only frames that scored as cuts are kept for reference
            data.scenecut_scores = {
                frame: score for frame, score in scores.items()
                if start <= frame < end and score.is_scenecut
            }
            scenes.append(scene)
        apply_zones(scenes, zones)
        validate_scene_list(scenes, num_frames)
        condor.scenes = scenes

        warnings = []
        short = [
            index for index, scene in enumerate(scenes[:-1])
            if scene.frames < config.minimum_length
        ]
        if short:
            warnings.append(StageWarning(
                f"{len(short)} scenes are shorter than the minimum of {config.minimum_length} frames",
                self.id,
            ))
        logger.info("Detected %d scenes (maximum length %d frames)", len(scenes), maximum_length)
        progress.send(Whole(Processing(self.id, Percentage(100.0))))
        return warnings
