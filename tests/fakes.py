"""In-memory collaborators for stage and pipeline tests"""

import threading
import time
from fractions import Fraction
from pathlib import Path

from condor.collaborators import ClipInfo, Collaborators, EncodeProgress, ProbeMeasurement
from condor.exceptions import EncoderError
from condor.models.condor import Condor, Input, Output
from condor.models.scene import ScenecutScore
from condor.models.stage_config import StageConfig

def cut_score(value: float, threshold: float = 27.0) -> ScenecutScore:
    return ScenecutScore(value, value, value, value, threshold)

class FakeBackend:
    """
    Records every call and tracks how many scenes are held in memory.

    A scene is held from the moment it is decoded until its encode ends,
    which is what the buffer strategy bounds.
    """

    def __init__(self, num_frames=240, frame_rate=Fraction(24), cuts=(), fail_starts=(),
                 fail_decode_starts=(), quality=lambda q: 100.0 - 2.0 * q, encode_delay=0.0,
                 on_encode=None, decode_delay=0.0, passes=1):
        self.num_frames = num_frames
        self.frame_rate = frame_rate
        self.cuts = list(cuts)
        self.fail_starts = set(fail_starts)
        self.fail_decode_starts = set(fail_decode_starts)
        self.quality = quality
        self.encode_delay = encode_delay
        self.on_encode = on_encode
        self.decode_delay = decode_delay
        self.passes = passes
        self.lock = threading.Lock()
        self.decoded = []
        self.encoded = []
        self.probes = []
        self.concatenated = []
        self.evaluated = []
        self.encoding = 0
        self.max_encoding = 0
        self.held = 0
        self.max_held = 0
        self.decoding = 0
        self.max_decoding = 0

    def clip_info(self, path):
        return ClipInfo(self.num_frames, self.frame_rate, 1920, 1080)

    def scenecut_scorer(self, path, threshold, method, num_frames):
        return {frame: cut_score(100.0, threshold) for frame in self.cuts}

    def decode(self, input, start, end):
        with self.lock:
            self.decoded.append(start)
            self.held += 1
            self.max_held = max(self.max_held, self.held)
            self.decoding += 1
            self.max_decoding = max(self.max_decoding, self.decoding)
        try:
            if self.decode_delay:
                time.sleep(self.decode_delay)
        finally:
            with self.lock:
                self.decoding -= 1
        if start in self.fail_decode_starts:
            with self.lock:
                self.held -= 1
            raise EncoderError(f"decode failed at {start}", "fake")
        return (start, end)

    def encode(self, encoder, frames, output, progress):
        start, end = frames
        with self.lock:
            self.encoding += 1
            self.max_encoding = max(self.max_encoding, self.encoding)
        try:
            if self.on_encode is not None:
                self.on_encode(start)
            if self.encode_delay:
                time.sleep(self.encode_delay)
            if start in self.fail_starts:
                raise EncoderError(f"encode failed at {start}", "fake")
            for current in range(1, self.passes + 1):
                progress(EncodeProgress((current, self.passes), end - start))
            Path(output).write_bytes(b"x" * (end - start))
            with self.lock:
                self.encoded.append(start)
        finally:
            with self.lock:
                self.encoding -= 1
                self.held -= 1

    def prober(self, condor, scene, encoder, indices):
        quantizer = encoder.quantizer
        with self.lock:
            self.probes.append((scene.start_frame, quantizer, dict(encoder.options)))
        return ProbeMeasurement([self.quality(quantizer)] * len(indices), bitrate=1000.0 - quantizer)

    def concatenate(self, files, output, method):
        self.concatenated = list(files)
        Path(output).write_bytes(b"".join(Path(f).read_bytes() for f in files))

    def evaluator(self, condor, scene, encoded, indices):
        self.evaluated.append(scene.start_frame)
        return [95.0] * len(indices)

    def collaborators(self) -> Collaborators:
        return Collaborators(
            clip_info=self.clip_info,
            scenecut_scorer=self.scenecut_scorer,
            decode=self.decode,
            encode=self.encode,
            prober=self.prober,
            concatenate=self.concatenate,
            evaluator=self.evaluator,
        )

def make_condor(tmp_path, num_frames=240, probed=True, **config) -> Condor:
    """Aggregate working under tmp_path, optionally with clip facts filled in"""
    input = Input(Path(tmp_path) / "input.mkv")
    if probed:
        input.num_frames = num_frames
        input.frame_rate = Fraction(24)
    return Condor(
        input=input,
        output=Output(Path(tmp_path) / "output.mkv"),
        config=StageConfig(work_directory=Path(tmp_path) / "work", **config),
    )
