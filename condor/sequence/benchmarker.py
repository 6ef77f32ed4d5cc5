"""Benchmarker stage: find the worker count with the best throughput"""

import logging
import shutil
import time
from itertools import cycle, islice
from typing import List

import psutil

from ..collaborators import Collaborators
from ..config import BENCHMARK_DIRECTORY
from ..exceptions import ConfigurationError, StageWarning
from ..models.condor import Condor
from ..models.scene import Scene
from ..utils import scene_file_name
from .base import CancellationToken, Stage, StageDetails, StageKind
from .parallel_encoder import EncodeTask, ParallelEncoder
from .status import Custom, Processing, ProgressChannel, Whole

logger = logging.getLogger(__name__)

class Benchmarker(Stage):
    kind = StageKind.BENCHMARKER
    DETAILS = StageDetails(
        name="Benchmarker",
        description=(
            "Measures how fast scenes can be encoded in parallel before no meaningful "
            "improvement is seen by adding more workers."
        ),
        version="0.0.1",
    )

    def __init__(self, collaborators: Collaborators):
        self.collaborators = collaborators
        self.encoder = ParallelEncoder(collaborators)

    def validate(self, condor: Condor) -> List[StageWarning]:
        if condor.config.benchmarker is None:
            raise ConfigurationError("Benchmarker is not configured", self.id)
        return condor.config.benchmarker.validate()

    def initialize(self, condor: Condor, progress: ProgressChannel) -> List[StageWarning]:
        return []

    def process(self, condor: Condor, progress: ProgressChannel,
                cancellation: CancellationToken) -> List[StageWarning]:
        config = condor.config.benchmarker
        if condor.config.parallel_encoder.workers is not None:
            return [StageWarning(
                f"Workers already set to {condor.config.parallel_encoder.workers}, benchmark skipped",
                self.id,
            )]

        candidates = sorted(
            (scene for scene in condor.scenes if scene.frames >= config.minimum_frames),
            key=lambda scene: scene.frames,
        )
        if not candidates:
            return [StageWarning(
                f"No scenes of at least {config.minimum_frames} frames to benchmark", self.id
            )]
        picked = list(islice(cycle(candidates), config.scenes))
        frames = sum(scene.frames for scene in picked)
        maximum = config.maximum_workers or psutil.cpu_count(logical=True) or 1
        directory = condor.config.work_directory / BENCHMARK_DIRECTORY

        best_workers, best_fps = 1, 0.0
        warnings: List[StageWarning] = []
        try:
            for workers in range(1, maximum + 1):
                if cancellation.cancelled:
                    break
                run_directory = directory / f"{workers:03}"
                run_directory.mkdir(parents=True, exist_ok=True)
                tasks = []
                for number, scene in enumerate(picked):
                    encoder = condor.scene_encoder(scene)
                    # Benchmark encodes work on copies so scene data stays untouched
                    sample = Scene(scene.start_frame, scene.end_frame, encoder=encoder)
                    output = run_directory / scene_file_name(number, encoder.output_extension)
                    tasks.append(EncodeTask(number, sample, encoder, output, prefix="benchmark-"))

                started = time.monotonic()
                _, failures = self.encoder.encode_tasks(
                    condor.input, tasks, workers,
                    condor.config.parallel_encoder.buffer_strategy, progress, cancellation,
                )
                elapsed = max(time.monotonic() - started, 1e-6)
                if cancellation.cancelled:
                    break
                if failures:
                    warnings.append(StageWarning(
                        f"Benchmark with {workers} workers had {len(failures)} failed encodes, stopping",
                        self.id,
                    ))
                    break

                fps = frames / elapsed
                logger.info("%d workers: %.2f fps", workers, fps)
                progress.send(Whole(Processing(self.id, Custom("workers", workers, maximum))))
                if best_fps and fps < best_fps * (1 + config.threshold / 100.0):
                    break
                best_workers, best_fps = workers, fps
        finally:
            shutil.rmtree(directory, ignore_errors=True)

        if not best_fps:
            return warnings
        condor.config.parallel_encoder.workers = best_workers
        logger.info("Using %d workers (%.2f fps)", best_workers, best_fps)
        return warnings
