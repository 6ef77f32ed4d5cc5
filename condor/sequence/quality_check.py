"""Quality check stage: measure the encoded scenes"""

import logging
from typing import List

from ..collaborators import Collaborators
from ..exceptions import ConfigurationError, SceneFailure, StageWarning
from ..models.condor import Condor
from ..models.scene import quality_check_data
from ..quality.types import score_within_target
from ..utils import epoch_millis, scene_file_name
from .base import CancellationToken, Stage, StageDetails, StageKind
from .scene_detector import resolve_input
from .status import Completed, Failed, Processing, ProgressChannel, Scenes, Subprocess, scene_id

logger = logging.getLogger(__name__)

class QualityCheck(Stage):
    kind = StageKind.QUALITY_CHECK
    DETAILS = StageDetails(
        name="Quality Check",
        description="Measure the quality of the video per scene",
        version="0.0.1",
    )

    def __init__(self, collaborators: Collaborators):
        self.collaborators = collaborators

    def validate(self, condor: Condor) -> List[StageWarning]:
        if condor.config.quality_check is None:
            raise ConfigurationError("Quality check is not configured", self.id)
        return []

    def initialize(self, condor: Condor, progress: ProgressChannel) -> List[StageWarning]:
        resolve_input(condor, self.collaborators)
        return []

    def process(self, condor: Condor, progress: ProgressChannel,
                cancellation: CancellationToken) -> List[StageWarning]:
        config = condor.config.quality_check
        total = len(condor.scenes)
        checked = 0
        warnings: List[StageWarning] = []
        for index, scene in enumerate(condor.scenes):
            if cancellation.cancelled:
                break
            encoded = condor.scenes_directory / scene_file_name(
                index, condor.scene_encoder(scene).output_extension)
            if not encoded.exists():
                warnings.append(StageWarning(f"Scene {index:05} was not encoded, not checked", self.id))
                continue
            indices = config.probing_strategy.frame_indices(scene.start_frame, scene.end_frame)
            try:
                scores = self.collaborators.evaluator(condor, scene, encoded, indices)
                score = config.statistic.reduce(scores)
            except Exception as e:
                logger.warning("Scene %05d quality check failed: %s", index, e)
                warnings.append(SceneFailure(index, f"Quality check failed: {e}", self.id))
                progress.send(Subprocess(
                    parent=Processing(self.id, Scenes(checked, total)),
                    child=Failed(scene_id(index), str(e)),
                ))
                continue

            data = quality_check_data(scene, create=True)
            data.scores = list(scores)
            data.score = score
            data.checked_on = epoch_millis()
            checked += 1
            if config.target_range is not None and not score_within_target(score, config.target_range):
                warnings.append(StageWarning(
                    f"Scene {index:05} scored {score:.2f} {config.metric.value}, "
                    f"outside {config.target_range[0]}-{config.target_range[1]}",
                    self.id,
                ))
            progress.send(Subprocess(
                parent=Processing(self.id, Scenes(checked, total)),
                child=Completed(scene_id(index)),
            ))
        logger.info("Checked %d of %d scenes", checked, total)
        return warnings
