"""Unit tests for stage statuses and their rendering"""

import io
import queue
import threading
import unittest

from rich.console import Console

from condor.progress import ProgressReporter
from condor.sequence.status import (
    Completed, Custom, Failed, Frames, PassFrames, Passes, Percentage, Processing,
    ProgressChannel, Scenes, Subprocess, Whole, completion_fraction, scene_id,
)

class TestCompletion(unittest.TestCase):
    def test_fractions(self):
        """Completions map to a share of the work done"""
        self.assertEqual(completion_fraction(Percentage(50.0)), 0.5)
        self.assertEqual(completion_fraction(Percentage(150.0)), 1.0)
        self.assertEqual(completion_fraction(Scenes(3, 4)), 0.75)
        self.assertEqual(completion_fraction(Passes(1, 4)), 0.25)
        self.assertEqual(completion_fraction(Frames(10, 0)), None)
        self.assertEqual(completion_fraction(Custom("bytes", 5.0, 10.0)), 0.5)
        self.assertEqual(completion_fraction(PassFrames((2, 2), (50, 100))), 0.75)

    def test_scene_id(self):
        """Scene ids are zero padded indices"""
        self.assertEqual(scene_id(7), "00007")

class TestProgressChannel(unittest.TestCase):
    def test_many_producers(self):
        """Statuses from several threads all arrive"""
        channel = ProgressChannel()

        def produce(stage):
            for value in range(50):
                channel.send(Whole(Processing(stage, Percentage(float(value)))))

        threads = [threading.Thread(target=produce, args=(f"stage-{n}",)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(len(list(channel.drain())), 200)

    def test_close_and_timeout(self):
        """A closed channel yields None and an empty one times out"""
        channel = ProgressChannel()
        with self.assertRaises(queue.Empty):
            channel.receive(timeout=0.01)
        channel.close()
        self.assertIsNone(channel.receive(timeout=0.1))

class TestProgressReporter(unittest.TestCase):
    def setUp(self):
        self.channel = ProgressChannel()
        self.console = Console(file=io.StringIO(), force_terminal=False)

    def test_scene_frames_are_summed(self):
        """Frame totals follow the final pass of every scene"""
        reporter = ProgressReporter(self.channel, console=self.console, enabled=False)
        parent = Processing("parallel-encoder", Scenes(0, 2))
        reporter.handle(Subprocess(parent, Processing("00000", PassFrames((1, 2), (40, 48)))))
        self.assertEqual(reporter.frames_encoded, 0)
        reporter.handle(Subprocess(parent, Processing("00000", PassFrames((2, 2), (20, 48)))))
        reporter.handle(Subprocess(parent, Processing("00001", PassFrames((1, 1), (10, 24)))))
        self.assertEqual(reporter.frames_encoded, 30)
        reporter.handle(Subprocess(parent, Completed("00001")))
        self.assertEqual(reporter.frames_encoded, 44)
        reporter.handle(Whole(Processing("00000", Frames(48, 48))))
        self.assertEqual(reporter.frames_encoded, 72)
        self.assertEqual(reporter.states["parallel-encoder"], "processing")

    def test_stage_states(self):
        """Whole statuses record the stage state"""
        reporter = ProgressReporter(self.channel, console=self.console, enabled=False)
        reporter.handle(Whole(Processing("scene-detection", Percentage(10.0))))
        reporter.handle(Whole(Completed("scene-detection")))
        reporter.handle(Whole(Failed("target-quality", "boom")))
        self.assertEqual(reporter.states["scene-detection"], "completed")
        self.assertEqual(reporter.states["target-quality"], "failed")

    def test_context_consumes_and_stops(self):
        """The reporter drains the channel and stops even when the body raises"""
        with self.assertRaises(RuntimeError):
            with ProgressReporter(self.channel, console=self.console) as reporter:
                self.channel.send(Whole(Completed("scene-detection")))
                raise RuntimeError("pipeline failed")
        self.assertFalse(reporter._thread.is_alive())
        self.assertEqual(reporter.states["scene-detection"], "completed")

if __name__ == "__main__":
    unittest.main()
