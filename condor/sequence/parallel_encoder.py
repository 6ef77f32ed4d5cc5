"""Parallel scene encoding

Scenes are encoded by a fixed pool of worker threads in start frame order.
Decoder threads prepare the frames of upcoming scenes concurrently. Every
scene being decoded, waiting for a worker or being encoded holds one
semaphore permit, so the buffer strategy bounds how many scenes sit in memory.
"""

import logging
import threading
from collections import deque
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass
from pathlib import Path
from typing import List, Set, Tuple

import psutil

from ..collaborators import Collaborators, EncodeProgress
from ..exceptions import SceneFailure, StageWarning, ValidationError
from ..models.condor import Condor, Input
from ..models.encoder import Encoder
from ..models.scene import Scene, parallel_encoder_data
from ..models.stage_config import BufferStrategy
from ..semaphore import Semaphore
from ..utils import epoch_millis, get_file_size, scene_file_name
from .base import CancellationToken, Stage, StageDetails, StageKind
from .status import (
    Failed, Frames, PassFrames, Processing, ProgressChannel, Scenes,
    Subprocess, Whole, Completed, scene_id,
)

logger = logging.getLogger(__name__)

@dataclass
class EncodeTask:
    index: int
    scene: Scene
    encoder: Encoder
    output: Path
    # Prepended to the progress id so runs outside the scene list stay apart
    prefix: str = ""

    @property
    def id(self) -> str:
        return f"{self.prefix}{scene_id(self.index)}"

def default_workers(scene_count: int) -> int:
    """One worker per logical CPU, but never more workers than scenes"""
    cpus = psutil.cpu_count(logical=True) or 1
    return max(min(cpus, scene_count), 1)

class ParallelEncoder(Stage):
    kind = StageKind.PARALLEL_ENCODER
    DETAILS = StageDetails(
        name="Parallel Encoder",
        description="Encodes a set of scenes in parallel until all scenes are encoded.",
        version="0.0.1",
    )

    def __init__(self, collaborators: Collaborators):
        self.collaborators = collaborators

    def validate(self, condor: Condor) -> List[StageWarning]:
        warnings = condor.config.parallel_encoder.validate()
        if not condor.scenes:
            raise ValidationError("No scenes to encode", self.id)
        condor.encoder.validate()
        for scene in condor.scenes:
            if scene.encoder is not None:
                scene.encoder.validate()
        return warnings

    def initialize(self, condor: Condor, progress: ProgressChannel) -> List[StageWarning]:
        condor.scenes_directory.mkdir(parents=True, exist_ok=True)
        return []

    def tasks(self, condor: Condor) -> Tuple[List[EncodeTask], int]:
        """Scenes still to encode and the number already encoded"""
        tasks = []
        encoded = 0
        for index, scene in enumerate(condor.scenes):
            encoder = condor.scene_encoder(scene)
            output = condor.scenes_directory / scene_file_name(index, encoder.output_extension)
            if output.exists():
                encoded += 1
                continue
            tasks.append(EncodeTask(index, scene, encoder, output))
        return tasks, encoded

    def process(self, condor: Condor, progress: ProgressChannel,
                cancellation: CancellationToken) -> List[StageWarning]:
        tasks, encoded = self.tasks(condor)
        if encoded:
            logger.info("Skipping %d scenes already encoded", encoded)
        if not tasks:
            return []
        config = condor.config.parallel_encoder
        workers = config.workers or default_workers(len(tasks))
        logger.info("Encoding %d scenes with %d workers, %d scenes buffered",
                    len(tasks), workers, config.buffer_strategy.permits(workers))
        succeeded, failures = self.encode_tasks(
            condor.input, tasks, workers, config.buffer_strategy, progress, cancellation,
        )
        if not cancellation.cancelled:
            condor.config.failure_policy.check(succeeded + encoded, len(failures), self.id)
        return list(failures)

    def encode_tasks(self, input: Input, tasks: List[EncodeTask], workers: int,
                     buffer_strategy: BufferStrategy, progress: ProgressChannel,
                     cancellation: CancellationToken) -> Tuple[int, List[SceneFailure]]:
        """
        Encode tasks with a pool of workers.

        Returns:
            The number of scenes encoded and a failure per scene that did
            not encode. Scenes never dispatched because of cancellation are
            in neither.
        """
        permits = buffer_strategy.permits(workers)
        semaphore = Semaphore(permits)
        # Each supply is referenced only by these queues and the threads that
        # popped it, so a scene's frames are freed once its encode ends
        pending = deque((task, Future()) for task in tasks)
        undecoded = deque(pending)
        lock = threading.Lock()
        # Decoded scenes holding a permit that no worker has picked up yet
        buffered: Set[int] = set()
        closed = threading.Event()
        failures: List[SceneFailure] = []
        encoded = [0]
        total = len(tasks)

        def scenes_done() -> Scenes:
            with lock:
                return Scenes(encoded[0] + len(failures), total)

        def decode_next() -> bool:
            """Decode the next scene into its supply, False when there is nothing left to do"""
            with lock:
                if cancellation.cancelled or closed.is_set() or not undecoded:
                    # Wake workers waiting on scenes that will never be decoded
                    for _, supply in undecoded:
                        supply.cancel()
                    undecoded.clear()
                    return False
                task, supply = undecoded.popleft()
            try:
                frames = self.collaborators.decode(input, task.scene.start_frame, task.scene.end_frame)
                error = None
            except Exception as e:
                frames, error = None, e
            with lock:
                if closed.is_set():
                    return False
                buffered.add(task.index)
            if error is not None:
                supply.set_exception(error)
            else:
                supply.set_result(frames)
            return True

        def decode_ahead():
            while True:
                semaphore.acquire()
                if not decode_next():
                    semaphore.release()
                    return

        def work():
            while not cancellation.cancelled:
                with lock:
                    if not pending:
                        return
                    task, supply = pending.popleft()
                try:
                    supply.exception()
                except CancelledError:
                    return
                with lock:
                    buffered.discard(task.index)
                try:
                    self._encode_task(task, supply, progress, scenes_done)
                    with lock:
                        encoded[0] += 1
                    progress.send(Subprocess(
                        parent=Processing(self.id, scenes_done()),
                        child=Completed(task.id),
                    ))
                except Exception as e:
                    logger.warning("Scene %s failed: %s", task.id, e)
                    with lock:
                        failures.append(SceneFailure(task.index, str(e), self.id))
                    progress.send(Subprocess(
                        parent=Processing(self.id, scenes_done()),
                        child=Failed(task.id, str(e)),
                    ))
                finally:
                    # Free the frames before another decode may take the permit
                    del supply
                    semaphore.release()

        decoders = [
            threading.Thread(target=decode_ahead, name=f"condor-decoder-{number}", daemon=True)
            for number in range(min(permits, total))
        ]
        for decoder in decoders:
            decoder.start()
        threads = [
            threading.Thread(target=work, name=f"condor-worker-{number}")
            for number in range(workers)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        with lock:
            closed.set()
            leftover = len(buffered)
            buffered.clear()
        for _ in range(leftover):
            semaphore.release()
        for decoder in decoders:
            decoder.join()

        failures.sort(key=lambda failure: failure.scene_index)
        return encoded[0], failures

    def _encode_task(self, task: EncodeTask, supply: Future, progress: ProgressChannel,
                     scenes_done) -> None:
        frames = supply.result()
        data = parallel_encoder_data(task.scene, create=True)
        data.started_on = epoch_millis()
        data.completed_on = None
        total_frames = task.scene.frames
        child_id = task.id
        temporary = task.output.with_name(
            scene_file_name(task.index, task.encoder.output_extension, temporary=True)
        )

        def on_progress(update: EncodeProgress) -> None:
            frame = min(update.frame, total_frames)
            current, passes = update.pass_
            progress.send(Subprocess(
                parent=Processing(self.id, scenes_done()),
                child=Processing(child_id, PassFrames(update.pass_, (frame, total_frames))),
            ))
            # Every pass covers the whole scene, so earlier passes count proportionally
            completed = ((current - 1) * total_frames + frame) // passes
            progress.send(Whole(Processing(child_id, Frames(completed, total_frames))))

        try:
            self.collaborators.encode(task.encoder, frames, temporary, on_progress)
            temporary.replace(task.output)
        finally:
            if temporary.exists():
                temporary.unlink()
        data.bytes = get_file_size(task.output)
        data.completed_on = epoch_millis()
