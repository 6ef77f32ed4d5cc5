"""Stage orchestration

Stages run one after another on the calling thread. Each stage goes
through validation, initialization and processing; a stage only starts
after the previous one completed, and cancellation stops the run after the
stage that observed it.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from .collaborators import Collaborators
from .exceptions import (
    ConfigurationError, FatalError, StageFailedError, StageWarning, ValidationError,
)
from .logging import LogTracker
from .models.condor import Condor
from .sequence.base import CancellationToken, Stage, StageDetails, StageState
from .sequence.benchmarker import Benchmarker
from .sequence.parallel_encoder import ParallelEncoder
from .sequence.quality_check import QualityCheck
from .sequence.scene_concatenator import SceneConcatenator
from .sequence.scene_detector import SceneDetector
from .sequence.status import Completed, Failed, Percentage, Processing, ProgressChannel, Whole
from .sequence.target_quality import TargetQuality
from .state import save_condor

logger = logging.getLogger(__name__)

@dataclass
class StageResult:
    details: StageDetails
    state: StageState = StageState.NOT_STARTED
    warnings: List[StageWarning] = field(default_factory=list)
    error: Optional[Exception] = None

def build_stages(condor: Condor, collaborators: Collaborators) -> List[Stage]:
    """Stages for the aggregate's configuration, in run order"""
    config = condor.config
    stages: List[Stage] = [SceneDetector(collaborators)]
    if config.target_quality is not None:
        stages.append(TargetQuality(collaborators))
    if config.benchmarker is not None:
        stages.append(Benchmarker(collaborators))
    stages.append(ParallelEncoder(collaborators))
    stages.append(SceneConcatenator(collaborators))
    if config.quality_check is not None:
        stages.append(QualityCheck(collaborators))
    return stages

class Pipeline:
    """
    Run stages in order over one aggregate.

    Args:
        stages: Stages in run order, each kind at most once.
        state_path: Where to save the aggregate after every stage.
        tracker: Collects stage warnings and errors for the summary.
    """

    def __init__(self, stages: Sequence[Stage], state_path: Optional[Path] = None,
                 tracker: Optional[LogTracker] = None):
        kinds = [stage.kind.value for stage in stages]
        if kinds != sorted(set(kinds)):
            raise ConfigurationError(
                "Stages must run in order without repeats: "
                + ", ".join(stage.details().name for stage in stages),
                "pipeline",
            )
        self.stages = list(stages)
        self.state_path = state_path
        self.tracker = tracker or LogTracker()
        self.results: List[StageResult] = []

    def _save(self, condor: Condor) -> None:
        if self.state_path is not None:
            save_condor(condor, self.state_path)

    def run(self, condor: Condor, progress: ProgressChannel,
            cancellation: CancellationToken) -> List[StageResult]:
        """
        Run every stage.

        Returns:
            One result per stage that was reached.

        Raises:
            ValidationError: A stage rejected its configuration.
            FatalError: A stage failed in a way the run cannot recover from.
        """
        self.results = []
        for stage in self.stages:
            details = stage.details()
            result = StageResult(details)
            self.results.append(result)
            if cancellation.cancelled:
                result.state = StageState.CANCELLED
                break

            logger.info("Starting %s", details.name)
            try:
                result.state = StageState.VALIDATING
                result.warnings.extend(stage.validate(condor))
                result.state = StageState.INITIALIZING
                result.warnings.extend(stage.initialize(condor, progress))
                result.state = StageState.PROCESSING
                progress.send(Whole(Processing(stage.id, Percentage(0.0))))
                result.warnings.extend(stage.process(condor, progress, cancellation))
            except (ValidationError, FatalError) as e:
                self._fail(stage, result, e, progress, condor)
                raise
            except Exception as e:
                error = StageFailedError(f"{details.name} failed: {e}", stage.id)
                self._fail(stage, result, error, progress, condor)
                raise error from e

            self._record_warnings(stage, result.warnings)
            if cancellation.cancelled:
                result.state = StageState.CANCELLED
                progress.send(Whole(Failed(stage.id, "cancelled")))
                self._save(condor)
                logger.warning("%s cancelled", details.name)
                break

            result.state = StageState.COMPLETED
            progress.send(Whole(Completed(stage.id)))
            self._save(condor)
            logger.info("Completed %s", details.name)
        return self.results

    def _record_warnings(self, stage: Stage, warnings: List[StageWarning]) -> None:
        for warning in warnings:
            logger.warning("%s", warning)
            self.tracker.capture(stage.details().name, str(warning), "WARNING")

    def _fail(self, stage: Stage, result: StageResult, error: Exception,
              progress: ProgressChannel, condor: Condor) -> None:
        result.state = StageState.FAILED
        result.error = error
        self._record_warnings(stage, result.warnings)
        self.tracker.capture(stage.details().name, str(error), "ERROR")
        progress.send(Whole(Failed(stage.id, str(error))))
        # Keep the work done so far for a resumed run; validation changes nothing
        if not isinstance(error, ValidationError):
            self._save(condor)
        logger.error("%s failed: %s", stage.details().name, error)
