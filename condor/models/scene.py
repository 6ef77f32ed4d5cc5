"""Scenes and the per-stage data attached to them"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..exceptions import StageDataNotFoundError, ValidationError
from ..utils import epoch_millis
from .encoder import Encoder

@dataclass
class ScenecutScore:
    """Costs behind a scene cut decision on one frame"""
    inter_cost: float
    imp_block_cost: float
    backward_adjusted_cost: float
    forward_adjusted_cost: float
    threshold: float

    @property
    def adjusted_cost(self) -> float:
        return min(self.backward_adjusted_cost, self.forward_adjusted_cost)

    @property
    def is_scenecut(self) -> bool:
        return self.adjusted_cost > self.threshold

@dataclass
class SceneDetectionData:
    scenecut_scores: Dict[int, ScenecutScore] = field(default_factory=dict)
    created_on: int = field(default_factory=epoch_millis)

@dataclass(frozen=True)
class QualityPass:
    """One quality probe: an encode at a quantizer and its measured scores"""
    quantizer: int
    scores: List[float]
    bitrate: Optional[float] = None
    started_on: int = 0
    completed_on: int = 0

    @property
    def score(self) -> float:
        """Mean of the per-frame scores"""
        return sum(self.scores) / len(self.scores) if self.scores else float("nan")

@dataclass
class TargetQualityData:
    passes: List[QualityPass] = field(default_factory=list)
    quantizer: Optional[int] = None

@dataclass
class ParallelEncoderData:
    started_on: Optional[int] = None
    completed_on: Optional[int] = None
    bytes: Optional[int] = None

    @property
    def completed(self) -> bool:
        return self.completed_on is not None

@dataclass
class QualityCheckData:
    scores: List[float] = field(default_factory=list)
    score: Optional[float] = None
    checked_on: Optional[int] = None

@dataclass
class SceneData:
    """Optional data slot per stage, filled in by the owning stage only"""
    scene_detection: Optional[SceneDetectionData] = None
    target_quality: Optional[TargetQualityData] = None
    parallel_encoder: Optional[ParallelEncoderData] = None
    quality_check: Optional[QualityCheckData] = None

@dataclass
class SubScene:
    start_frame: int
    end_frame: int

@dataclass
class Scene:
    """Half-open frame range [start_frame, end_frame) encoded as one unit"""
    start_frame: int
    end_frame: int
    encoder: Optional[Encoder] = None
    sub_scenes: Optional[List[SubScene]] = None
    data: SceneData = field(default_factory=SceneData)

    @property
    def frames(self) -> int:
        return self.end_frame - self.start_frame

def _stage_data(scene: Scene, slot: str, factory, create: bool):
    value = getattr(scene.data, slot)
    if value is None:
        if not create:
            raise StageDataNotFoundError(
                f"No {slot.replace('_', ' ')} data for scene {scene.start_frame}-{scene.end_frame}",
                "scene",
            )
        value = factory()
        setattr(scene.data, slot, value)
    return value

def scene_detection_data(scene: Scene, create: bool = False) -> SceneDetectionData:
    return _stage_data(scene, "scene_detection", SceneDetectionData, create)

def target_quality_data(scene: Scene, create: bool = False) -> TargetQualityData:
    return _stage_data(scene, "target_quality", TargetQualityData, create)

def parallel_encoder_data(scene: Scene, create: bool = False) -> ParallelEncoderData:
    return _stage_data(scene, "parallel_encoder", ParallelEncoderData, create)

def quality_check_data(scene: Scene, create: bool = False) -> QualityCheckData:
    return _stage_data(scene, "quality_check", QualityCheckData, create)

def validate_scene_list(scenes: List[Scene], num_frames: int) -> None:
    """
    Check that scenes partition [0, num_frames) in order without gaps.

    Raises:
        ValidationError: On empty scenes, gaps, overlaps or a wrong span.
    """
    if num_frames <= 0:
        raise ValidationError(f"Clip has no frames ({num_frames})", "scene")
    if not scenes:
        raise ValidationError("Scene list is empty", "scene")
    expected_start = 0
    for index, scene in enumerate(scenes):
        if scene.start_frame != expected_start:
            kind = "overlaps the previous scene" if scene.start_frame < expected_start else "leaves a gap"
            raise ValidationError(
                f"Scene {index} starting at frame {scene.start_frame} {kind} (expected {expected_start})",
                "scene",
            )
        if scene.end_frame <= scene.start_frame:
            raise ValidationError(
                f"Scene {index} is empty ({scene.start_frame}-{scene.end_frame})", "scene"
            )
        if scene.sub_scenes:
            sub_start = scene.start_frame
            for sub_scene in scene.sub_scenes:
                if sub_scene.start_frame != sub_start or sub_scene.end_frame <= sub_scene.start_frame:
                    raise ValidationError(f"Scene {index} has invalid sub-scenes", "scene")
                sub_start = sub_scene.end_frame
            if sub_start != scene.end_frame:
                raise ValidationError(f"Scene {index} sub-scenes do not cover the scene", "scene")
        expected_start = scene.end_frame
    if expected_start != num_frames:
        raise ValidationError(
            f"Scenes end at frame {expected_start} but the clip has {num_frames} frames", "scene"
        )

@dataclass
class Zone:
    """Frame range [start_frame, end_frame) encoded with its own encoder"""
    start_frame: int
    end_frame: int
    encoder: Encoder
