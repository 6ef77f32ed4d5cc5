"""Tests for the benchmarker stage"""

from condor.models.encoder import Encoder
from condor.models.scene import Scene
from condor.models.stage_config import BenchmarkerConfig, ParallelEncoderConfig
from condor.sequence.benchmarker import Benchmarker
from condor.sequence.status import Subprocess, Whole
from tests.fakes import FakeBackend, make_condor

def prepare(tmp_path, **benchmark):
    condor = make_condor(tmp_path, num_frames=96, benchmarker=BenchmarkerConfig(**benchmark))
    condor.scenes = [Scene(0, 10, Encoder()), Scene(10, 50, Encoder()), Scene(50, 96, Encoder())]
    return condor

def test_stops_when_gain_is_small(tmp_path, progress, cancellation):
    backend = FakeBackend(encode_delay=0.005)
    condor = prepare(tmp_path, threshold=1000.0, scenes=4, maximum_workers=3)
    stage = Benchmarker(backend.collaborators())

    warnings = stage.process(condor, progress, cancellation)

    assert warnings == []
    assert condor.config.parallel_encoder.workers == 1
    # One run of four samples with one worker and one with two workers
    assert len(backend.encoded) == 8
    assert 0 not in backend.encoded
    assert not (condor.config.work_directory / "benchmark").exists()
    assert condor.scenes[1].data.parallel_encoder is None

def test_keeps_configured_workers(tmp_path, backend, progress, cancellation):
    condor = prepare(tmp_path)
    condor.config.parallel_encoder = ParallelEncoderConfig(workers=3)
    warnings = Benchmarker(backend.collaborators()).process(condor, progress, cancellation)
    assert len(warnings) == 1
    assert backend.encoded == []
    assert condor.config.parallel_encoder.workers == 3

def test_no_long_enough_scenes(tmp_path, backend, progress, cancellation):
    condor = prepare(tmp_path, minimum_frames=100)
    warnings = Benchmarker(backend.collaborators()).process(condor, progress, cancellation)
    assert len(warnings) == 1
    assert condor.config.parallel_encoder.workers is None

def test_failed_encodes_stop_benchmark(tmp_path, progress, cancellation):
    backend = FakeBackend(fail_starts={10})
    condor = prepare(tmp_path, maximum_workers=2)
    warnings = Benchmarker(backend.collaborators()).process(condor, progress, cancellation)
    assert len(warnings) == 1
    assert condor.config.parallel_encoder.workers is None

def test_cancelled(tmp_path, backend, progress, cancellation):
    condor = prepare(tmp_path)
    cancellation.cancel()
    assert Benchmarker(backend.collaborators()).process(condor, progress, cancellation) == []
    assert backend.encoded == []
    assert condor.config.parallel_encoder.workers is None

def test_progress_ids_are_apart_from_scenes(tmp_path, progress, cancellation):
    backend = FakeBackend()
    condor = prepare(tmp_path, threshold=1000.0, scenes=2, maximum_workers=1)

    Benchmarker(backend.collaborators()).process(condor, progress, cancellation)

    messages = list(progress.drain())
    children = [message.child.id for message in messages if isinstance(message, Subprocess)]
    assert children
    assert all(child.startswith("benchmark-") for child in children)
    assert not any(
        message.status.id.isdigit() for message in messages if isinstance(message, Whole)
    )
