"""Progress messages emitted by stages

A message is either the status of a whole stage or the status of a child
(a scene) under its parent stage. Statuses carry a completion that the
consumer renders; producers never wait on the consumer.
"""

import queue
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

@dataclass(frozen=True)
class Percentage:
    value: float

@dataclass(frozen=True)
class Scenes:
    completed: int
    total: int

@dataclass(frozen=True)
class PassFrames:
    passes: Tuple[int, int]
    frames: Tuple[int, int]

@dataclass(frozen=True)
class Passes:
    completed: int
    total: int

@dataclass(frozen=True)
class Frames:
    completed: int
    total: int

@dataclass(frozen=True)
class Custom:
    name: str
    completed: float
    total: float

Completion = Union[Percentage, Scenes, PassFrames, Passes, Frames, Custom]

@dataclass(frozen=True)
class Processing:
    id: str
    completion: Completion

@dataclass(frozen=True)
class Completed:
    id: str

@dataclass(frozen=True)
class Failed:
    id: str
    error: str

Status = Union[Processing, Completed, Failed]

@dataclass(frozen=True)
class Whole:
    status: Status

@dataclass(frozen=True)
class Subprocess:
    parent: Status
    child: Status

StageStatus = Union[Whole, Subprocess]

def completion_fraction(completion: Completion) -> Optional[float]:
    """Completed share in [0, 1], or None when the total is unknown"""
    if isinstance(completion, Percentage):
        return min(max(completion.value / 100.0, 0.0), 1.0)
    if isinstance(completion, PassFrames):
        (current, passes), (frame, frames) = completion.passes, completion.frames
        if not passes or not frames:
            return None
        return min(((current - 1) + frame / frames) / passes, 1.0)
    if completion.total:
        return min(completion.completed / completion.total, 1.0)
    return None

def scene_id(index: int) -> str:
    return f"{index:05}"

class ProgressChannel:
    """Unbounded multi-producer, single-consumer channel of stage statuses"""

    def __init__(self):
        self._queue: "queue.Queue[Optional[StageStatus]]" = queue.Queue()

    def send(self, status: StageStatus) -> None:
        self._queue.put_nowait(status)

    def close(self) -> None:
        """Tell the consumer no more statuses follow"""
        self._queue.put_nowait(None)

    def receive(self, timeout: Optional[float] = None) -> Optional[StageStatus]:
        """Next status, or None once closed. Raises queue.Empty on timeout."""
        return self._queue.get(timeout=timeout)

    def drain(self) -> Iterator[StageStatus]:
        """Statuses already queued, without blocking"""
        while True:
            try:
                status = self._queue.get_nowait()
            except queue.Empty:
                return
            if status is not None:
                yield status
