"""The aggregate every stage works on"""

from dataclasses import dataclass, field
from fractions import Fraction
from pathlib import Path
from typing import List, Optional

from ..config import DEFAULT_MAX_SCENE_LENGTH_SECONDS, SCENES_DIRECTORY, STATE_FILE
from .encoder import Encoder
from .scene import Scene
from .stage_config import StageConfig

@dataclass
class Input:
    """Source clip; clip facts are filled in once probed"""
    path: Path
    num_frames: Optional[int] = None
    frame_rate: Optional[Fraction] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def probed(self) -> bool:
        return self.num_frames is not None and self.frame_rate is not None

@dataclass
class Output:
    path: Path

@dataclass
class Condor:
    """Input, output, default encoder, scenes and stage configuration of one run"""
    input: Input
    output: Output
    encoder: Encoder = field(default_factory=Encoder)
    scenes: List[Scene] = field(default_factory=list)
    config: StageConfig = field(default_factory=StageConfig)

    def scene_encoder(self, scene: Scene) -> Encoder:
        return scene.encoder if scene.encoder is not None else self.encoder

    @property
    def scenes_directory(self) -> Path:
        return Path(self.config.work_directory) / SCENES_DIRECTORY

    @property
    def state_path(self) -> Path:
        return Path(self.config.work_directory) / STATE_FILE

    def maximum_scene_length(self) -> int:
        """Configured maximum scene length, or ten seconds of input frames"""
        configured = self.config.scene_detection.maximum_length
        if configured is not None:
            return configured
        frame_rate = self.input.frame_rate or Fraction(24)
        return max(int(frame_rate * Fraction(DEFAULT_MAX_SCENE_LENGTH_SECONDS)),
                   self.config.scene_detection.minimum_length)
