"""Tests for the scene detection stage"""

import pytest

from condor.exceptions import ValidationError, ZoneOverlapError
from condor.models.encoder import Encoder, EncoderBase
from condor.models.scene import Scene, Zone, scene_detection_data
from condor.models.stage_config import SceneDetectionConfig, SceneDetectionMethod
from condor.sequence.scene_detector import SceneDetector
from condor.video.scenecut import scores_from_content
from tests.fakes import FakeBackend, make_condor

def detect(backend, condor, progress, cancellation):
    stage = SceneDetector(backend.collaborators())
    warnings = stage.validate(condor)
    warnings += stage.initialize(condor, progress)
    warnings += stage.process(condor, progress, cancellation)
    return warnings

def spans(condor):
    return [(scene.start_frame, scene.end_frame) for scene in condor.scenes]

def test_cost_based_cuts(tmp_path, progress, cancellation):
    backend = FakeBackend(cuts=[60, 150])
    condor = make_condor(tmp_path)

    detect(backend, condor, progress, cancellation)

    assert spans(condor) == [(0, 60), (60, 150), (150, 240)]
    assert list(scene_detection_data(condor.scenes[1]).scenecut_scores) == [60]
    assert condor.scenes[0].encoder == condor.encoder
    assert condor.scenes[0].encoder is not condor.encoder

def test_fixed_length(tmp_path, backend, progress, cancellation):
    condor = make_condor(tmp_path, scene_detection=SceneDetectionConfig(
        method=SceneDetectionMethod.FIXED_LENGTH, maximum_length=100))

    detect(backend, condor, progress, cancellation)

    assert spans(condor) == [(0, 100), (100, 200), (200, 240)]

def test_default_maximum_is_ten_seconds(tmp_path, progress, cancellation):
    backend = FakeBackend(num_frames=600)
    condor = make_condor(tmp_path, num_frames=600)

    detect(backend, condor, progress, cancellation)

    assert max(scene.frames for scene in condor.scenes) <= 240
    assert spans(condor)[-1][1] == 600

def test_probes_unprobed_input(tmp_path, progress, cancellation):
    backend = FakeBackend(num_frames=96)
    condor = make_condor(tmp_path, probed=False)

    detect(backend, condor, progress, cancellation)

    assert condor.input.num_frames == 96
    assert condor.input.width == 1920
    assert spans(condor) == [(0, 96)]

def test_reuses_detected_scenes(tmp_path, progress, cancellation):
    backend = FakeBackend(cuts=[60])
    condor = make_condor(tmp_path)
    condor.scenes = [Scene(0, 120), Scene(120, 240)]

    detect(backend, condor, progress, cancellation)

    assert spans(condor) == [(0, 120), (120, 240)]

def test_zones_force_cuts_and_encoders(tmp_path, backend, progress, cancellation):
    zone = Zone(100, 140, Encoder(EncoderBase.AOM))
    condor = make_condor(tmp_path, scene_detection=SceneDetectionConfig(zones=[zone]))

    warnings = detect(backend, condor, progress, cancellation)

    assert (100, 140) in spans(condor)
    bases = {(s.start_frame, s.end_frame): s.encoder.base for s in condor.scenes}
    assert bases[(100, 140)] is EncoderBase.AOM
    assert bases[(0, 100)] is EncoderBase.SVTAV1
    assert warnings == []

def test_short_forced_scene_warns(tmp_path, backend, progress, cancellation):
    zone = Zone(100, 110, Encoder(EncoderBase.AOM))
    condor = make_condor(tmp_path, scene_detection=SceneDetectionConfig(zones=[zone]))

    warnings = detect(backend, condor, progress, cancellation)

    assert (100, 110) in spans(condor)
    assert len(warnings) == 1

def test_overlapping_zones(tmp_path, backend, progress, cancellation):
    zones = [Zone(0, 50, Encoder()), Zone(40, 80, Encoder())]
    condor = make_condor(tmp_path, scene_detection=SceneDetectionConfig(zones=zones))
    with pytest.raises(ZoneOverlapError):
        detect(backend, condor, progress, cancellation)

def test_invalid_lengths(tmp_path, backend):
    condor = make_condor(tmp_path, scene_detection=SceneDetectionConfig(minimum_length=50, maximum_length=40))
    with pytest.raises(ValidationError):
        SceneDetector(backend.collaborators()).validate(condor)
    condor.config.scene_detection = SceneDetectionConfig(minimum_length=30, maximum_length=50)
    assert len(SceneDetector(backend.collaborators()).validate(condor)) == 1

def test_empty_input(tmp_path, progress):
    backend = FakeBackend(num_frames=0)
    condor = make_condor(tmp_path, probed=False)
    with pytest.raises(ValidationError):
        SceneDetector(backend.collaborators()).initialize(condor, progress)

def test_content_values_to_scores():
    scores = scores_from_content([0.0, 2.0, 40.0, 3.0, 30.0, 31.0], 27.0)
    assert [frame for frame, score in scores.items() if score.is_scenecut] == [2]
    assert scores[2].adjusted_cost == 37.0
