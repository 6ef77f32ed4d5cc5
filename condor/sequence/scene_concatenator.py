"""Scene concatenation stage: join encoded scenes into the output"""

import logging
from pathlib import Path
from typing import List, Tuple

from ..collaborators import Collaborators
from ..exceptions import FatalError, StageWarning, ValidationError
from ..models.condor import Condor
from ..utils import check_dependencies, format_size, get_file_size, scene_file_name
from .base import CancellationToken, Stage, StageDetails, StageKind
from .status import Percentage, Processing, ProgressChannel, Whole

logger = logging.getLogger(__name__)

class SceneConcatenator(Stage):
    kind = StageKind.SCENE_CONCATENATION
    DETAILS = StageDetails(
        name="Scene Concatenator",
        description="Concatenates encoded scenes into a single output file",
        version="0.0.1",
    )

    def __init__(self, collaborators: Collaborators):
        self.collaborators = collaborators

    def validate(self, condor: Condor) -> List[StageWarning]:
        method = condor.config.concat.method
        if check_dependencies([method.value]):
            raise ValidationError(f"{method.value} is required to concatenate scenes", self.id)
        if not condor.scenes:
            raise ValidationError("No scenes to concatenate", self.id)
        return []

    def scene_files(self, condor: Condor) -> Tuple[List[Path], List[int]]:
        """Encoded scene files in order and the indices of scenes without one"""
        files, missing = [], []
        for index, scene in enumerate(condor.scenes):
            path = condor.scenes_directory / scene_file_name(
                index, condor.scene_encoder(scene).output_extension)
            if path.exists():
                files.append(path)
            else:
                missing.append(index)
        return files, missing

    def initialize(self, condor: Condor, progress: ProgressChannel) -> List[StageWarning]:
        if not condor.scenes_directory.is_dir():
            raise ValidationError(f"Scenes directory {condor.scenes_directory} does not exist", self.id)
        _, missing = self.scene_files(condor)
        return [
            StageWarning(f"Scene {index:05} has no encoded file and is left out", self.id)
            for index in missing
        ]

    def process(self, condor: Condor, progress: ProgressChannel,
                cancellation: CancellationToken) -> List[StageWarning]:
        if cancellation.cancelled:
            return []
        files, _ = self.scene_files(condor)
        if not files:
            raise FatalError("No encoded scenes to concatenate", self.id)
        progress.send(Whole(Processing(self.id, Percentage(0.0))))
        logger.info("Concatenating %d scenes into %s", len(files), condor.output.path)
        self.collaborators.concatenate(files, Path(condor.output.path), condor.config.concat.method)
        progress.send(Whole(Processing(self.id, Percentage(100.0))))
        logger.info("Output written: %s (%s)", condor.output.path,
                    format_size(get_file_size(condor.output.path)))
        return []
