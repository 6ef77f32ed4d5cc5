"""Tests for the quality check stage"""

from condor.exceptions import SceneFailure
from condor.models.encoder import Encoder
from condor.models.scene import Scene, quality_check_data
from condor.models.stage_config import QualityCheckConfig
from condor.quality.types import SkipProbe
from condor.sequence.quality_check import QualityCheck
from tests.fakes import FakeBackend, make_condor

def prepare(tmp_path, encoded=(0, 1, 2), **check):
    condor = make_condor(tmp_path, num_frames=72, quality_check=QualityCheckConfig(**check))
    condor.scenes = [Scene(i * 24, (i + 1) * 24, Encoder()) for i in range(3)]
    condor.scenes_directory.mkdir(parents=True)
    for index in encoded:
        (condor.scenes_directory / f"{index:05}.ivf").write_bytes(b"x")
    return condor

def test_scores_every_encoded_scene(tmp_path, backend, progress, cancellation):
    condor = prepare(tmp_path, probing_strategy=SkipProbe(4))
    stage = QualityCheck(backend.collaborators())

    warnings = stage.process(condor, progress, cancellation)

    assert warnings == []
    assert backend.evaluated == [0, 24, 48]
    data = quality_check_data(condor.scenes[1])
    assert data.score == 95.0
    assert len(data.scores) == 6
    assert data.checked_on is not None

def test_out_of_target_warns(tmp_path, backend, progress, cancellation):
    condor = prepare(tmp_path, target_range=(96.0, 100.0))
    warnings = QualityCheck(backend.collaborators()).process(condor, progress, cancellation)
    assert len(warnings) == 3

def test_missing_and_failed_scenes(tmp_path, progress, cancellation):
    backend = FakeBackend()

    def evaluator(condor, scene, encoded, indices):
        if scene.start_frame == 0:
            raise RuntimeError("metric failed")
        return [90.0] * len(indices)

    collaborators = backend.collaborators()
    collaborators.evaluator = evaluator
    condor = prepare(tmp_path, encoded=(0, 1))

    warnings = QualityCheck(collaborators).process(condor, progress, cancellation)

    assert [w.scene_index for w in warnings if isinstance(w, SceneFailure)] == [0]
    assert len(warnings) == 2
    assert quality_check_data(condor.scenes[1]).score == 90.0
    assert condor.scenes[2].data.quality_check is None
