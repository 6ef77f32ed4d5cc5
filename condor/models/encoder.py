"""Encoder description and command line construction"""

import os
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..exceptions import ConfigurationError
from .cli_parameter import (
    CLIParameter, NumberParameter, StringParameter,
    matches, new_numbers, new_strings, new_bools, to_string_pair,
)

class EncoderBase(Enum):
    AOM = "aom"
    RAV1E = "rav1e"
    VPX = "vpx"
    SVTAV1 = "svt-av1"
    X264 = "x264"
    X265 = "x265"
    FFMPEG = "ffmpeg"

DEFAULT_EXECUTABLES = {
    EncoderBase.AOM: "aomenc",
    EncoderBase.RAV1E: "rav1e",
    EncoderBase.VPX: "vpxenc",
    EncoderBase.SVTAV1: "SvtAv1EncApp",
    EncoderBase.X264: "x264",
    EncoderBase.X265: "x265",
    EncoderBase.FFMPEG: "ffmpeg",
}

OUTPUT_EXTENSIONS = {
    EncoderBase.AOM: "ivf",
    EncoderBase.RAV1E: "ivf",
    EncoderBase.VPX: "ivf",
    EncoderBase.SVTAV1: "ivf",
    EncoderBase.X264: "264",
    EncoderBase.X265: "hevc",
    EncoderBase.FFMPEG: "mkv",
}

# Option name and rendering of the quantizer for each encoder
QUANTIZER_PARAMETERS = {
    EncoderBase.AOM: ("cq-level", "--", "="),
    EncoderBase.VPX: ("cq-level", "--", "="),
    EncoderBase.RAV1E: ("quantizer", "--", " "),
    EncoderBase.SVTAV1: ("crf", "--", " "),
    EncoderBase.X264: ("crf", "--", " "),
    EncoderBase.X265: ("crf", "--", " "),
    EncoderBase.FFMPEG: ("crf", "-", " "),
}

QUANTIZER_RANGES = {
    EncoderBase.AOM: (15, 55),
    EncoderBase.VPX: (15, 55),
    EncoderBase.RAV1E: (50, 140),
    EncoderBase.SVTAV1: (15, 50),
    EncoderBase.X264: (15, 35),
    EncoderBase.X265: (15, 35),
    EncoderBase.FFMPEG: (15, 50),
}

# Options that bias metric scores; the value only identifies the option shape
PSYCHOVISUAL_PARAMETERS = {
    EncoderBase.AOM: {"film-grain-table": StringParameter("--", "=", "")},
    EncoderBase.RAV1E: {"photon-noise-table": StringParameter("--", " ", "")},
    EncoderBase.SVTAV1: {
        "fgs-table": StringParameter("--", " ", ""),
        "film-grain": NumberParameter("--", " ", 0.0),
        "film-grain-denoise": NumberParameter("--", " ", 0.0),
        "psy-rd": NumberParameter("--", " ", 0.0),
        "ac-bias": NumberParameter("--", " ", 0.0),
    },
}

# Encoded frame counters printed by each encoder on stderr
FRAME_PATTERNS = {
    EncoderBase.AOM: re.compile(r"frame\s+(\d+)/"),
    EncoderBase.VPX: re.compile(r"frame\s+(\d+)/"),
    EncoderBase.RAV1E: re.compile(r"encoded\s+(\d+)\s+frames"),
    EncoderBase.SVTAV1: re.compile(r"Encoding frame\s+(\d+)"),
    EncoderBase.X264: re.compile(r"^\s*(\d+)\s+frames"),
    EncoderBase.X265: re.compile(r"^\s*(\d+)\s+frames"),
    EncoderBase.FFMPEG: re.compile(r"frame=\s*(\d+)"),
}

def _default_parameters(base: EncoderBase, pass_: Tuple[int, int], stats_file: str) -> Dict[str, CLIParameter]:
    current, total = pass_
    two_pass = total > 1
    if base in (EncoderBase.AOM, EncoderBase.VPX):
        parameters = new_numbers("--", "=", {"threads": 8, "cpu-used": 6, "cq-level": 30, "kf-max-dist": 9999})
        parameters.update(new_strings("--", "=", {"end-usage": "q"}))
        if base is EncoderBase.VPX:
            parameters.update(new_strings("--", "=", {"codec": "vp9"}))
            parameters.update(new_bools("--", {"ivf": True}))
        if two_pass:
            parameters.update(new_numbers("--", "=", {"passes": 2, "pass": current}))
            parameters.update(new_strings("--", "=", {"fpf": f"{stats_file}.log"}))
        return parameters
    if base is EncoderBase.RAV1E:
        parameters = new_numbers("--", " ", {"speed": 8, "quantizer": 100, "keyint": 0})
        parameters.update(new_bools("--", {"no-scene-detection": True}))
        parameters.update(new_bools("-", {"y": True}))
        if two_pass:
            stats_option = "first-pass" if current == 1 else "second-pass"
            parameters.update(new_strings("--", " ", {stats_option: f"{stats_file}.stat"}))
        return parameters
    if base is EncoderBase.SVTAV1:
        parameters = new_numbers("--", " ", {"preset": 6, "crf": 30, "keyint": 0, "scd": 0, "progress": 2})
        if two_pass:
            parameters.update(new_numbers("--", " ", {"pass": current}))
            parameters.update(new_strings("--", " ", {"stats": f"{stats_file}.stat"}))
        return parameters
    if base in (EncoderBase.X264, EncoderBase.X265):
        parameters = new_numbers("--", " ", {"crf": 25, "scenecut": 0})
        parameters.update(new_strings("--", " ", {"preset": "slow"}))
        if two_pass:
            parameters.update(new_numbers("--", " ", {"pass": current}))
            parameters.update(new_strings("--", " ", {"stats": f"{stats_file}.log"}))
        return parameters
    parameters = new_strings("-", " ", {"c:v": "libsvtav1"})
    parameters.update(new_numbers("-", " ", {"crf": 30}))
    return parameters

@dataclass
class Encoder:
    """An encoder executable with its options, keyed by option name"""
    base: EncoderBase = EncoderBase.SVTAV1
    options: Dict[str, CLIParameter] = field(default_factory=dict)
    passes: int = 1
    executable: Optional[str] = None

    @property
    def executable_name(self) -> str:
        return self.executable or DEFAULT_EXECUTABLES[self.base]

    @property
    def total_passes(self) -> int:
        return self.passes

    @property
    def output_extension(self) -> str:
        return OUTPUT_EXTENSIONS[self.base]

    def validate(self) -> None:
        """Raise ConfigurationError for option sets the encoder cannot run"""
        if self.passes not in (1, 2):
            raise ConfigurationError(f"{self.base.value} supports 1 or 2 passes, got {self.passes}", "encoder")
        if self.base is EncoderBase.FFMPEG and self.passes != 1:
            raise ConfigurationError("ffmpeg encodes are single pass", "encoder")
        for reserved in ("o", "output", "b", "i", "input"):
            if reserved in self.options:
                raise ConfigurationError(f"Option {reserved!r} is set by condor", "encoder")

    def default_quantizer_range(self) -> Tuple[int, int]:
        return QUANTIZER_RANGES[self.base]

    @property
    def quantizer_name(self) -> str:
        return QUANTIZER_PARAMETERS[self.base][0]

    @property
    def quantizer(self) -> Optional[float]:
        parameter = self.options.get(self.quantizer_name)
        if isinstance(parameter, NumberParameter):
            return parameter.value
        return None

    def with_quantizer(self, quantizer: int) -> "Encoder":
        """Copy of the encoder with the quantizer option set"""
        name, prefix, delimiter = QUANTIZER_PARAMETERS[self.base]
        options = dict(self.options)
        options[name] = NumberParameter(prefix, delimiter, float(quantizer))
        return replace(self, options=options)

    def without_parameters(self, parameters: Dict[str, CLIParameter]) -> "Encoder":
        """Copy of the encoder without options matching the given name and shape"""
        options = {
            name: parameter
            for name, parameter in self.options.items()
            if not (name in parameters and matches(parameter, parameters[name]))
        }
        return replace(self, options=options)

    def without_psychovisual_parameters(self) -> "Encoder":
        return self.without_parameters(PSYCHOVISUAL_PARAMETERS.get(self.base, {}))

    def arguments(self, pass_: Tuple[int, int], output: Path) -> List[str]:
        """
        Full argv (without the executable) for one pass reading y4m from stdin.

        Only the final pass writes the output; earlier passes write to the
        null device and a stats file next to the output.
        """
        current, total = pass_
        target = str(output) if current == total else os.devnull
        stats_file = str(Path(output).with_suffix(""))
        parameters = _default_parameters(self.base, pass_, stats_file)
        parameters.update(self.options)

        options: List[str] = []
        for name, parameter in parameters.items():
            item, value = to_string_pair(parameter, name)
            if item:
                options.append(item)
            if value is not None:
                options.append(value)

        if self.base in (EncoderBase.AOM, EncoderBase.VPX):
            return ["-", *options, "-o", target]
        if self.base is EncoderBase.RAV1E:
            return ["-", *options, "--output", target]
        if self.base is EncoderBase.SVTAV1:
            return ["-i", "stdin", *options, "-b", target]
        if self.base is EncoderBase.X264:
            return ["--demuxer", "y4m", *options, "-o", target, "-"]
        if self.base is EncoderBase.X265:
            return ["--y4m", "--input", "-", *options, "-o", target]
        return ["-hide_banner", "-y", "-i", "-", *options, target]

    def parse_encoded_frames(self, line: str) -> Optional[int]:
        match = FRAME_PATTERNS[self.base].search(line)
        return int(match.group(1)) if match else None
