"""Stage contract shared by every stage of the pipeline"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import List

from ..exceptions import StageWarning
from ..models.condor import Condor
from .status import ProgressChannel

class StageKind(Enum):
    """Every stage, in the order stages run"""
    SCENE_DETECTION = 1
    TARGET_QUALITY = 2
    BENCHMARKER = 3
    PARALLEL_ENCODER = 4
    SCENE_CONCATENATION = 5
    QUALITY_CHECK = 6

class StageState(Enum):
    NOT_STARTED = "not started"
    VALIDATING = "validating"
    INITIALIZING = "initializing"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

@dataclass(frozen=True)
class StageDetails:
    name: str
    description: str
    version: str

class CancellationToken:
    """Cooperative cancellation flag shared by the orchestrator and stages"""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

class Stage(ABC):
    """
    One step of the pipeline.

    validate() must not change encoding state, initialize() must be safe
    to call again, and process() reports scene failures as warnings instead
    of raising so that other scenes still complete.
    """
    kind: StageKind
    DETAILS: StageDetails

    @property
    def id(self) -> str:
        return self.kind.name.lower().replace("_", "-")

    def details(self) -> StageDetails:
        return self.DETAILS

    @abstractmethod
    def validate(self, condor: Condor) -> List[StageWarning]:
        """Check configuration; raise ValidationError when the stage cannot run"""

    @abstractmethod
    def initialize(self, condor: Condor, progress: ProgressChannel) -> List[StageWarning]:
        """Prepare directories and clip facts needed by process()"""

    @abstractmethod
    def process(self, condor: Condor, progress: ProgressChannel,
                cancellation: CancellationToken) -> List[StageWarning]:
        """Do the work of the stage"""
