"""Tests for the target quality stage"""

import pytest

from condor.exceptions import FailureThresholdExceeded, SceneFailure
from condor.models.cli_parameter import NumberParameter
from condor.models.encoder import Encoder
from condor.models.scene import QualityPass, Scene, target_quality_data
from condor.models.stage_config import TargetQualityConfig
from condor.quality.types import SubsetPosition, SubsetProbe
from condor.sequence.target_quality import TargetQuality
from tests.fakes import FakeBackend, make_condor

def prepare(tmp_path, scenes=2, **target):
    target.setdefault("quantizer_range", (0, 51))
    condor = make_condor(tmp_path, num_frames=scenes * 48, target_quality=TargetQualityConfig(**target))
    condor.encoder = Encoder(options={"film-grain": NumberParameter("--", " ", 8)})
    condor.scenes = [Scene(i * 48, (i + 1) * 48, condor.encoder) for i in range(scenes)]
    return condor

def run_stage(backend, condor, progress, cancellation):
    stage = TargetQuality(backend.collaborators())
    warnings = stage.validate(condor)
    warnings += stage.initialize(condor, progress)
    warnings += stage.process(condor, progress, cancellation)
    return warnings

def test_picks_quantizer_per_scene(tmp_path, backend, progress, cancellation):
    condor = prepare(tmp_path)

    warnings = run_stage(backend, condor, progress, cancellation)

    assert warnings == []
    for scene in condor.scenes:
        data = target_quality_data(scene)
        assert data.quantizer in (2, 3)
        assert scene.encoder.quantizer == data.quantizer
        assert "film-grain" in scene.encoder.options
        assert [p.quantizer for p in data.passes][0] == 26
    assert all("film-grain" not in options for _, _, options in backend.probes)

def test_probes_use_probing_strategy(tmp_path, progress, cancellation):
    seen = []
    backend = FakeBackend()
    prober = backend.prober

    def recording_prober(condor, scene, encoder, indices):
        seen.append(list(indices))
        return prober(condor, scene, encoder, indices)

    collaborators = backend.collaborators()
    collaborators.prober = recording_prober
    condor = prepare(tmp_path, scenes=1, probing_strategy=SubsetProbe(SubsetPosition.START, 5))
    stage = TargetQuality(collaborators)
    stage.process(condor, progress, cancellation)

    assert seen[0] == [0, 1, 2, 3, 4]

def test_resumes_from_recorded_passes(tmp_path, backend, progress, cancellation):
    condor = prepare(tmp_path)
    done = target_quality_data(condor.scenes[0], create=True)
    done.quantizer = 30
    partial = target_quality_data(condor.scenes[1], create=True)
    partial.passes.append(QualityPass(26, [48.0]))

    run_stage(backend, condor, progress, cancellation)

    assert [quantizer for start, quantizer, _ in backend.probes if start == 0] == []
    probed = [quantizer for start, quantizer, _ in backend.probes if start == 48]
    assert 26.0 not in probed and len(probed) == 1
    assert target_quality_data(condor.scenes[1]).quantizer in (2, 3)

def test_out_of_range_warns(tmp_path, progress, cancellation):
    backend = FakeBackend(quality=lambda q: 50.0)
    condor = prepare(tmp_path, scenes=1, quantizer_range=(10, 20))

    warnings = run_stage(backend, condor, progress, cancellation)

    assert len(warnings) == 1
    assert target_quality_data(condor.scenes[0]).quantizer == 10

def test_scene_failure_is_scoped(tmp_path, progress, cancellation):
    backend = FakeBackend()
    prober = backend.prober

    def failing_prober(condor, scene, encoder, indices):
        if scene.start_frame == 48:
            raise RuntimeError("probe crashed")
        return prober(condor, scene, encoder, indices)

    collaborators = backend.collaborators()
    collaborators.prober = failing_prober
    condor = prepare(tmp_path, scenes=3)

    stage = TargetQuality(collaborators)
    warnings = stage.process(condor, progress, cancellation)

    assert [w.scene_index for w in warnings if isinstance(w, SceneFailure)] == [1]
    assert target_quality_data(condor.scenes[0]).quantizer is not None
    assert target_quality_data(condor.scenes[1]).quantizer is None
    assert target_quality_data(condor.scenes[2]).quantizer is not None

def test_every_scene_failing_aborts(tmp_path, progress, cancellation):
    def broken(q):
        raise RuntimeError("no metric")

    backend = FakeBackend(quality=broken)
    condor = prepare(tmp_path)
    with pytest.raises(FailureThresholdExceeded):
        run_stage(backend, condor, progress, cancellation)

def test_cancelled(tmp_path, backend, progress, cancellation):
    condor = prepare(tmp_path)
    cancellation.cancel()
    assert run_stage(backend, condor, progress, cancellation) == []
    assert backend.probes == []
