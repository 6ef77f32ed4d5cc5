"""Plain data model shared by every stage"""

from .cli_parameter import (
    CLIParameter, StringParameter, NumberParameter, BoolParameter,
    new_strings, new_numbers, new_bools, diff_parameters,
)
from .encoder import Encoder, EncoderBase
from .scene import (
    Scene, SubScene, SceneData, ScenecutScore, SceneDetectionData,
    QualityPass, TargetQualityData, ParallelEncoderData, QualityCheckData,
    scene_detection_data, target_quality_data, parallel_encoder_data,
    quality_check_data, validate_scene_list,
)
from .stage_config import (
    BufferStrategy, SceneDetectionMethod, ScenecutMethod, SceneDetectionConfig,
    TargetQualityConfig, ParallelEncoderConfig, ConcatMethod, ConcatConfig,
    QualityCheckConfig, BenchmarkerConfig, FailurePolicy, StageConfig,
)
from .condor import Condor, Input, Output
