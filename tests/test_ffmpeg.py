"""Unit tests for the ffmpeg backed collaborators"""

import json
import subprocess
import tempfile
import unittest
from fractions import Fraction
from pathlib import Path
from unittest.mock import MagicMock, patch

from condor.collaborators import EncodeProgress
from condor.exceptions import ConcatenationError, DependencyError, EncoderError
from condor.ffmpeg import FFmpegBackend, concatenate_files, encode_frames, frame_runs, probe_clip
from condor.models.encoder import Encoder
from condor.models.stage_config import ConcatMethod
from condor.quality.types import QualityMetric

class FakeFFmpegError(Exception):
    def __init__(self, stderr=b""):
        super().__init__("ffmpeg error")
        self.stderr = stderr

class TestProbeClip(unittest.TestCase):
    @patch("condor.ffmpeg.ffmpeg")
    def test_reads_stream_facts(self, mock_ffmpeg):
        """Frame count, rate and size come from the first video stream"""
        mock_ffmpeg.probe.return_value = {"streams": [{
            "avg_frame_rate": "24000/1001", "nb_frames": "1440", "width": 1920, "height": 1080,
        }]}
        info = probe_clip(Path("input.mkv"))
        self.assertEqual(info.num_frames, 1440)
        self.assertEqual(info.frame_rate, Fraction(24000, 1001))
        self.assertEqual((info.width, info.height), (1920, 1080))
        mock_ffmpeg.probe.assert_called_once_with("input.mkv", select_streams="v:0", count_packets=None)

    @patch("condor.ffmpeg.ffmpeg")
    def test_counts_from_duration(self, mock_ffmpeg):
        """Without a frame count the duration and rate give one"""
        mock_ffmpeg.probe.return_value = {
            "streams": [{"avg_frame_rate": "25/1"}],
            "format": {"duration": "4.0"},
        }
        self.assertEqual(probe_clip(Path("input.mkv")).num_frames, 100)

    @patch("condor.ffmpeg.ffmpeg")
    def test_probe_errors(self, mock_ffmpeg):
        """Probe failures and clips without video raise encoder errors"""
        mock_ffmpeg.Error = FakeFFmpegError
        mock_ffmpeg.probe.side_effect = FakeFFmpegError(b"moov atom not found")
        with self.assertRaisesRegex(EncoderError, "moov atom"):
            probe_clip(Path("broken.mp4"))
        mock_ffmpeg.probe.side_effect = None
        mock_ffmpeg.probe.return_value = {"streams": []}
        with self.assertRaises(EncoderError):
            probe_clip(Path("audio.flac"))

class TestFrameRuns(unittest.TestCase):
    def test_runs(self):
        """Consecutive frames collapse into runs"""
        self.assertEqual(frame_runs([5, 0, 1, 2, 7, 6]), [(0, 2), (5, 7)])
        self.assertEqual(frame_runs([]), [])

class TestConcatenate(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        self.work = Path(self.temp_dir.name)
        self.files = [self.work / "scenes" / "00000.ivf", self.work / "scenes" / "00001.ivf"]
        self.output = self.work / "out" / "output.mkv"

    @patch("condor.ffmpeg.run_cmd")
    def test_mkvmerge_options_file(self, mock_run):
        """mkvmerge gets every scene appended in order through an options file"""
        captured = {}

        def run(cmd, **kwargs):
            captured["cmd"] = cmd
            with open(cmd[1][1:]) as f:
                captured["options"] = json.load(f)

        mock_run.side_effect = run
        concatenate_files(self.files, self.output, ConcatMethod.MKVMERGE)
        self.assertEqual(captured["cmd"][0], "mkvmerge")
        self.assertEqual(captured["options"], [
            "-o", str(self.output), str(self.files[0]), "+", str(self.files[1]),
        ])
        self.assertTrue(self.output.parent.is_dir())

    @patch("condor.ffmpeg.run_cmd")
    def test_mkvmerge_failure(self, mock_run):
        """A failing mkvmerge raises a concatenation error"""
        mock_run.side_effect = subprocess.CalledProcessError(2, ["mkvmerge"])
        with self.assertRaises(ConcatenationError):
            concatenate_files(self.files, self.output, ConcatMethod.MKVMERGE)

    @patch("condor.ffmpeg.ffmpeg")
    def test_ffmpeg_concat_demuxer(self, mock_ffmpeg):
        """The ffmpeg method copies streams through the concat demuxer"""
        listed = []

        def read_list(path, **kwargs):
            listed.extend(Path(path).read_text().splitlines())
            return mock_ffmpeg.input.return_value

        mock_ffmpeg.input.side_effect = read_list
        concatenate_files(self.files, self.output, ConcatMethod.FFMPEG)
        _, kwargs = mock_ffmpeg.input.call_args
        self.assertEqual(kwargs, {"format": "concat", "safe": 0})
        self.assertEqual(listed, [f"file '{path.resolve()}'" for path in self.files])
        mock_ffmpeg.input.return_value.output.assert_called_once_with(str(self.output), c="copy")

class TestEncodeFrames(unittest.TestCase):
    def _process(self, returncode=0):
        process = MagicMock()
        process.stderr.read.side_effect = [b"Encoding frame    5\rEncoding frame   12\n", b""]
        process.returncode = returncode
        return process

    @patch("condor.ffmpeg.subprocess.Popen")
    def test_reports_encoded_frames(self, mock_popen):
        """Frame counts parsed from the encoder are reported per pass"""
        mock_popen.return_value = self._process()
        updates = []
        encode_frames(Encoder(), b"frames", Path("00000.temp.ivf"), updates.append)
        self.assertEqual(updates, [EncodeProgress((1, 1), 5), EncodeProgress((1, 1), 12)])
        mock_popen.return_value.stdin.write.assert_called_once_with(b"frames")

    @patch("condor.ffmpeg.subprocess.Popen")
    def test_nonzero_exit(self, mock_popen):
        """A failing encoder raises with the tail of its output"""
        mock_popen.return_value = self._process(returncode=1)
        with self.assertRaisesRegex(EncoderError, "Encoding frame"):
            encode_frames(Encoder(), b"frames", Path("00000.temp.ivf"), lambda update: None)

    @patch("condor.ffmpeg.subprocess.Popen")
    def test_callback_error_stops_encoder(self, mock_popen):
        """An error while reading progress kills and reaps the encoder"""
        process = self._process()
        mock_popen.return_value = process

        def fail(update):
            raise RuntimeError("display closed")

        with self.assertRaises(RuntimeError):
            encode_frames(Encoder(), b"frames", Path("00000.temp.ivf"), fail)
        process.kill.assert_called_once_with()
        process.wait.assert_called_once_with()
        process.stdin.close.assert_called_once_with()

class TestBackend(unittest.TestCase):
    @patch("condor.ffmpeg.check_dependencies", return_value=[])
    def test_only_vmaf(self, mock_check):
        """The ffmpeg backend measures VMAF only"""
        backend = FFmpegBackend()
        backend.check(QualityMetric.VMAF)
        with self.assertRaises(DependencyError):
            backend.check(QualityMetric.SSIMULACRA2)

    @patch("condor.ffmpeg.check_dependencies", return_value=["ffprobe"])
    def test_missing_tools(self, mock_check):
        """Missing ffmpeg tools are reported by name"""
        with self.assertRaisesRegex(DependencyError, "ffprobe"):
            FFmpegBackend().check()

    def test_collaborators(self):
        """Every collaborator is bound to the backend"""
        backend = FFmpegBackend()
        collaborators = backend.collaborators()
        self.assertIs(collaborators.clip_info, probe_clip)
        self.assertEqual(collaborators.prober, backend.probe)

if __name__ == "__main__":
    unittest.main()
