"""Rendering of stage statuses

ProgressReporter consumes a ProgressChannel on its own thread. Used as a
context manager it always closes the channel, joins the consumer thread and
stops the live display, whether the pipeline returns or raises.
"""

import logging
import queue
import threading
from typing import Dict, Optional

from rich.console import Console
from rich.progress import (
    BarColumn, Progress, SpinnerColumn, TaskID, TaskProgressColumn, TextColumn,
    TimeRemainingColumn,
)

from .sequence.status import (
    Completed, Failed, Frames, PassFrames, Processing, ProgressChannel,
    StageStatus, Status, Subprocess, Whole, completion_fraction,
)

logger = logging.getLogger(__name__)

class ProgressReporter:
    """Consume stage statuses and show one progress bar per stage"""

    def __init__(self, channel: ProgressChannel, console: Optional[Console] = None,
                 enabled: bool = True):
        self.channel = channel
        self.enabled = enabled
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=console,
            disable=not enabled,
        )
        self.tasks: Dict[str, TaskID] = {}
        self.states: Dict[str, str] = {}
        # Latest encoded frame count per scene, summed for the stage totals
        self.scene_frames: Dict[str, int] = {}
        self.scene_totals: Dict[str, int] = {}
        self._thread: Optional[threading.Thread] = None

    def __enter__(self) -> "ProgressReporter":
        self.progress.start()
        self._thread = threading.Thread(target=self._consume, name="condor-progress", daemon=True)
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> bool:
        self.channel.close()
        if self._thread is not None:
            self._thread.join()
        self.progress.stop()
        return False

    def _consume(self) -> None:
        while True:
            try:
                status = self.channel.receive(timeout=0.5)
            except queue.Empty:
                continue
            if status is None:
                return
            try:
                self.handle(status)
            except Exception:
                logger.exception("Failed to render status %r", status)

    @property
    def frames_encoded(self) -> int:
        return sum(self.scene_frames.values())

    def handle(self, message: StageStatus) -> None:
        if isinstance(message, Whole):
            self._handle_status(message.status)
        elif isinstance(message, Subprocess):
            self._handle_status(message.parent)
            self._handle_child(message.child)

    def _task(self, id: str) -> TaskID:
        if id not in self.tasks:
            self.tasks[id] = self.progress.add_task(id, total=100.0)
        return self.tasks[id]

    def _handle_status(self, status: Status) -> None:
        self.states[status.id] = type(status).__name__.lower()
        if isinstance(status, Processing):
            if isinstance(status.completion, Frames) and status.id in self.scene_frames:
                # Whole scene frame updates only feed the totals
                self._handle_child(status)
                return
            fraction = completion_fraction(status.completion)
            task = self._task(status.id)
            if fraction is not None:
                self.progress.update(task, completed=fraction * 100.0)
        elif isinstance(status, Completed):
            self.progress.update(self._task(status.id), completed=100.0)
        elif isinstance(status, Failed):
            logger.error("%s failed: %s", status.id, status.error)

    def _handle_child(self, status: Status) -> None:
        self.states[status.id] = type(status).__name__.lower()
        if isinstance(status, Processing):
            completion = status.completion
            if isinstance(completion, PassFrames):
                current, passes = completion.passes
                frame, frames = completion.frames
                self.scene_totals[status.id] = frames
                if current == passes:
                    self.scene_frames[status.id] = frame
                else:
                    self.scene_frames.setdefault(status.id, 0)
            elif isinstance(completion, Frames):
                self.scene_totals[status.id] = completion.total
                self.scene_frames[status.id] = completion.completed
        elif isinstance(status, Completed) and status.id in self.scene_totals:
            self.scene_frames[status.id] = self.scene_totals[status.id]
        elif isinstance(status, Failed):
            logger.warning("Scene %s failed: %s", status.id, status.error)
