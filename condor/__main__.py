"""
Command-line interface for the condor encoding orchestrator
"""
import argparse
import logging
import shlex
import signal
import sys
from contextlib import contextmanager
from pathlib import Path

from . import __version__
from .config import STATE_FILE, WORKING_ROOT
from .exceptions import CondorError, ValidationError
from .ffmpeg import FFmpegBackend, probe_clip
from .formatting import print_check, print_error, print_header, print_info, print_success, print_summary, print_warning
from .logging import configure_logging
from .models.cli_parameter import parse_options
from .models.condor import Condor, Input, Output
from .models.encoder import Encoder, EncoderBase
from .models.stage_config import (
    BenchmarkerConfig, BufferStrategy, ConcatMethod, FailurePolicy, ParallelEncoderConfig,
    QualityCheckConfig, SceneDetectionConfig, SceneDetectionMethod, ScenecutMethod,
    StageConfig, TargetQualityConfig,
)
from .pipeline import Pipeline, build_stages
from .progress import ProgressReporter
from .quality.parsing import (
    parse_interpolators, parse_probe_statistic, parse_probing_strategy,
    parse_quantizer_range, parse_target_range,
)
from .sequence.base import CancellationToken, StageState
from .sequence.status import ProgressChannel
from .state import load_condor
from .utils import epoch_millis, format_duration
from .video.zones import load_zones

log = logging.getLogger("condor")

@contextmanager
def cancel_on_interrupt(cancellation: CancellationToken):
    """
    Turn the first Ctrl-C into a cooperative cancellation.

    A second Ctrl-C raises KeyboardInterrupt as usual. The previous handler
    is restored on exit.
    """
    previous = signal.getsignal(signal.SIGINT)

    def handler(signum, frame):
        if cancellation.cancelled:
            raise KeyboardInterrupt
        log.warning("Cancelling, waiting for running encodes to finish (Ctrl-C again to abort)")
        cancellation.cancel()

    signal.signal(signal.SIGINT, handler)
    try:
        yield cancellation
    finally:
        signal.signal(signal.SIGINT, previous)

def parse_args(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        description="Chunked video encoding with per-scene target quality"
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (default from config)"
    )
    parser.add_argument("input", type=Path, help="Input video file")
    parser.add_argument("output", type=Path, help="Output video file")
    parser.add_argument("--workdir", type=Path, default=None,
                        help="Working directory for scenes and state (default: %s/<input name>)" % WORKING_ROOT)
    parser.add_argument("--resume", action="store_true", help="Continue from the state in the working directory")

    encoding = parser.add_argument_group("encoder")
    encoding.add_argument("--encoder", choices=[base.value for base in EncoderBase], default=EncoderBase.SVTAV1.value)
    encoding.add_argument("--encoder-path", default=None, help="Encoder executable")
    encoding.add_argument("--passes", type=int, default=1)
    encoding.add_argument("--video-params", default="", help='Encoder options, e.g. "--preset 4 --tune 0"')

    detection = parser.add_argument_group("scene detection")
    detection.add_argument("--split-method", choices=[m.value for m in SceneDetectionMethod],
                           default=SceneDetectionMethod.COST_BASED.value)
    detection.add_argument("--sc-method", choices=[m.value for m in ScenecutMethod],
                           default=ScenecutMethod.STANDARD.value)
    detection.add_argument("--min-scene-len", type=int, default=None)
    detection.add_argument("--extra-split", type=int, default=None, help="Maximum scene length in frames")
    detection.add_argument("--zones", type=Path, default=None, help="Zones file")

    workers = parser.add_argument_group("workers")
    workers.add_argument("--workers", type=int, default=None)
    workers.add_argument("--buffer", default="1", help='Scenes decoded ahead: "none", "maximum" or a number')
    workers.add_argument("--benchmark", action="store_true", help="Pick the worker count by benchmarking")
    workers.add_argument("--max-failures", type=int, default=None,
                         help="Abort once more scenes fail (default: abort only if all fail)")

    quality = parser.add_argument_group("target quality")
    quality.add_argument("--target-quality", default=None, help='Target VMAF range, e.g. "94-96"')
    quality.add_argument("--probes", type=int, default=None)
    quality.add_argument("--qp-range", default=None, help='Quantizer range, e.g. "15-50"')
    quality.add_argument("--interp-method", default=None, help='e.g. "natural-pchip"')
    quality.add_argument("--probing", default=None, help='"whole", "skip=N", "subset=middle:11", "exact=0,10"')
    quality.add_argument("--probing-stat", default=None, help='e.g. "mean" or "percentile=5"')
    quality.add_argument("--vmaf-model", default=None)
    quality.add_argument("--quality-check", action="store_true", help="Measure every encoded scene")

    parser.add_argument("--concat", choices=[m.value for m in ConcatMethod], default=ConcatMethod.FFMPEG.value)
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress display")
    return parser.parse_args(argv)

def build_condor(args) -> Condor:
    """Aggregate for a new run from the command line"""
    encoder = Encoder(
        base=EncoderBase(args.encoder),
        options=parse_options(shlex.split(args.video_params)),
        passes=args.passes,
        executable=args.encoder_path,
    )
    detection = SceneDetectionConfig(
        method=SceneDetectionMethod(args.split_method),
        scenecut_method=ScenecutMethod(args.sc_method),
        maximum_length=args.extra_split,
    )
    if args.min_scene_len is not None:
        detection.minimum_length = args.min_scene_len

    target_quality = None
    if args.target_quality:
        target_quality = TargetQualityConfig(target_range=parse_target_range(args.target_quality))
        if args.probes is not None:
            target_quality.maximum_probes = args.probes
        if args.qp_range:
            target_quality.quantizer_range = parse_quantizer_range(args.qp_range)
        if args.interp_method:
            target_quality.interpolators = parse_interpolators(args.interp_method)
        if args.probing:
            target_quality.probing_strategy = parse_probing_strategy(args.probing)
        if args.probing_stat:
            target_quality.statistic = parse_probe_statistic(args.probing_stat)

    quality_check = None
    if args.quality_check:
        quality_check = QualityCheckConfig(
            target_range=target_quality.target_range if target_quality else None
        )

    work_directory = args.workdir or WORKING_ROOT / args.input.stem
    condor = Condor(
        input=Input(args.input),
        output=Output(args.output),
        encoder=encoder,
        config=StageConfig(
            work_directory=work_directory,
            scene_detection=detection,
            target_quality=target_quality,
            benchmarker=BenchmarkerConfig() if args.benchmark else None,
            parallel_encoder=ParallelEncoderConfig(
                workers=args.workers, buffer_strategy=BufferStrategy.parse(args.buffer)),
            quality_check=quality_check,
            failure_policy=FailurePolicy(args.max_failures),
        ),
    )
    condor.config.concat.method = ConcatMethod(args.concat)
    condor.encoder.validate()

    if args.zones:
        info = probe_clip(args.input)
        condor.input.num_frames = info.num_frames
        condor.input.frame_rate = info.frame_rate
        condor.input.width, condor.input.height = info.width, info.height
        zones, warnings = load_zones(args.zones, info.num_frames, encoder)
        for warning in warnings:
            print_warning(str(warning))
        detection.zones = zones
    return condor

def main(argv=None):
    """Main entry point"""
    args = parse_args(argv)
    configure_logging(args.log_level)
    print_header(f"Starting condor video encoder v{__version__}")

    if not args.input.is_file():
        log.error("Input %s does not exist", args.input)
        return 1

    try:
        state_path = (args.workdir or WORKING_ROOT / args.input.stem) / STATE_FILE
        if args.resume and state_path.exists():
            condor = load_condor(state_path)
            print_info(f"Resuming from {state_path}")
        else:
            condor = build_condor(args)
    except (CondorError, ValueError, OSError) as e:
        log.error("Invalid configuration: %s", e)
        return 1

    backend = FFmpegBackend(vmaf_model=args.vmaf_model)
    try:
        metric = condor.config.target_quality.metric if condor.config.target_quality else None
        backend.check(metric)
    except CondorError as e:
        log.error("%s", e)
        return 1
    print_check("Found ffmpeg and ffprobe")

    started = epoch_millis()
    pipeline = Pipeline(build_stages(condor, backend.collaborators()), state_path=condor.state_path)
    cancellation = CancellationToken()
    channel = ProgressChannel()
    try:
        with cancel_on_interrupt(cancellation), ProgressReporter(channel, enabled=not args.no_progress):
            pipeline.run(condor, channel, cancellation)
    except KeyboardInterrupt:
        log.warning("Encoding interrupted by user")
        return 130
    except ValidationError as e:
        print_summary(pipeline.results)
        print_error(str(e))
        return 1
    except CondorError as e:
        print_summary(pipeline.results)
        log.error("Encoding failed: %s", e)
        cause = e.__cause__
        while cause is not None:
            log.error("Caused by: %s", cause)
            cause = cause.__cause__
        return 1

    print_summary(pipeline.results)
    if any(result.state is StageState.CANCELLED for result in pipeline.results):
        log.warning("Encoding cancelled; rerun with --resume to continue")
        return 130
    print_success(f"Successfully encoded {condor.output.path}")
    print_info(f"Total time: {format_duration(epoch_millis() - started)}")
    return 0

if __name__ == "__main__":
    sys.exit(main())
