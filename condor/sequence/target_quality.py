"""Target quality stage: pick a quantizer per scene"""

import logging
from typing import List

from ..collaborators import Collaborators
from ..exceptions import ConfigurationError, SceneFailure, StageWarning
from ..models.condor import Condor
from ..models.scene import QualityPass, target_quality_data
from ..quality.search import QualitySearch, StopReason
from ..utils import epoch_millis
from .base import CancellationToken, Stage, StageDetails, StageKind
from .scene_detector import resolve_input
from .status import (
    Completed, Failed, Passes, Processing, ProgressChannel, Scenes, Subprocess, scene_id,
)

logger = logging.getLogger(__name__)

class TargetQuality(Stage):
    kind = StageKind.TARGET_QUALITY
    DETAILS = StageDetails(
        name="Target Quality",
        description="Searches each scene for the quantizer that reaches the target quality",
        version="0.0.1",
    )

    def __init__(self, collaborators: Collaborators):
        self.collaborators = collaborators

    def validate(self, condor: Condor) -> List[StageWarning]:
        config = condor.config.target_quality
        if config is None:
            raise ConfigurationError("Target quality is not configured", self.id)
        return config.validate()

    def initialize(self, condor: Condor, progress: ProgressChannel) -> List[StageWarning]:
        resolve_input(condor, self.collaborators)
        return []

    def process(self, condor: Condor, progress: ProgressChannel,
                cancellation: CancellationToken) -> List[StageWarning]:
        config = condor.config.target_quality
        total = len(condor.scenes)
        completed = 0
        failed = 0
        warnings: List[StageWarning] = []

        for index, scene in enumerate(condor.scenes):
            if cancellation.cancelled:
                break
            data = target_quality_data(scene, create=True)
            if data.quantizer is not None:
                completed += 1
                continue

            scene_encoder = condor.scene_encoder(scene)
            probe_encoder = scene_encoder.without_psychovisual_parameters()
            quantizer_range = config.quantizer_range or scene_encoder.default_quantizer_range()
            indices = config.probing_strategy.frame_indices(scene.start_frame, scene.end_frame)

            def probe(quantizer: int) -> float:
                started_on = epoch_millis()
                measurement = self.collaborators.prober(
                    condor, scene, probe_encoder.with_quantizer(quantizer), indices,
                )
                score = config.statistic.reduce(measurement.scores)
                data.passes.append(QualityPass(
                    quantizer=quantizer,
                    scores=list(measurement.scores),
                    bitrate=measurement.bitrate,
                    started_on=started_on,
                    completed_on=epoch_millis(),
                ))
                progress.send(Subprocess(
                    parent=Processing(self.id, Scenes(completed, total)),
                    child=Processing(scene_id(index), Passes(len(data.passes), config.maximum_probes)),
                ))
                return score

            history = [(p.quantizer, config.statistic.reduce(p.scores)) for p in data.passes]
            search = QualitySearch(
                quantizer_range, config.target_range, config.maximum_probes,
                config.interpolators, config.metric,
            )
            try:
                result = search.run(probe, history, should_stop=lambda: cancellation.cancelled)
            except Exception as e:
                failed += 1
                logger.warning("Scene %05d target quality failed: %s", index, e)
                warnings.append(SceneFailure(index, f"Target quality failed: {e}", self.id))
                progress.send(Subprocess(
                    parent=Processing(self.id, Scenes(completed, total)),
                    child=Failed(scene_id(index), str(e)),
                ))
                continue

            if result.reason is StopReason.CANCELLED or result.quantizer is None:
                break
            data.quantizer = result.quantizer
            scene.encoder = scene_encoder.with_quantizer(result.quantizer)
            completed += 1
            if result.reason is not StopReason.IN_RANGE:
                warnings.append(StageWarning(
                    f"Scene {index:05}: quantizer {result.quantizer} scored {result.score:.2f}, "
                    f"outside {config.target_range[0]}-{config.target_range[1]} ({result.reason.value})",
                    self.id,
                ))
            progress.send(Subprocess(
                parent=Processing(self.id, Scenes(completed, total)),
                child=Completed(scene_id(index)),
            ))

        if not cancellation.cancelled:
            condor.config.failure_policy.check(completed, failed, self.id)
        return warnings
