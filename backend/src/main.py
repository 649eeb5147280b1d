import argparse
import logging
import os
import sys
import time
from pathlib import Path

import sentry_sdk

from _version import __version__
from config import ScopeSettings, read_settings_file, settings_from_env, validate
from diagnostics import init_diagnostics
from engine.crop import CropRegion
from engine.cycle import run_cycle
from engine.output import write_rasters
from engine.scheduler import LatestFrameSlot, ScopeScheduler
from scopes import registry
from scopes.intensity import ScratchArena
from security import is_image_path, strip_pii, validate_output_dir, validate_source_path
from video.reader import VideoFrameSource, load_image

logger = logging.getLogger(__name__)

CONSENT_PATH = "~/.anyscope/telemetry_consent"


def init_sentry():
    """Consent-gated Sentry init: events are only sent with opt-in and a DSN."""
    consent_path = Path(os.path.expanduser(CONSENT_PATH))
    dsn = ""
    if consent_path.exists() and consent_path.read_text().strip() == "yes":
        dsn = os.environ.get("SENTRY_DSN", "")

    sentry_sdk.init(
        dsn=dsn,
        release=f"anyscope@{__version__}",
        environment=os.environ.get("SENTRY_ENV", "development"),
        traces_sample_rate=0.1,
        before_send=strip_pii,
        max_breadcrumbs=50,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="anyscope",
        description="Render waveform, parade, vectorscope and histogram scopes "
        "for a video or image.",
    )
    parser.add_argument("source", help="Video or image file to analyze")
    parser.add_argument("--out", required=True, help="Directory for scope PNGs")
    parser.add_argument(
        "--crop",
        type=CropRegion.parse,
        default=None,
        metavar="X,Y,W,H",
        help="Normalized region of interest, e.g. 0.25,0.25,0.5,0.5",
    )
    parser.add_argument(
        "--hide",
        action="append",
        default=[],
        choices=registry.ids(),
        help="Scope to skip (repeatable)",
    )
    parser.add_argument("--config", help="JSON settings file")
    parser.add_argument(
        "--cycles",
        type=int,
        default=0,
        help="Stop after this many rendered cycles (0 = whole video)",
    )
    parser.add_argument(
        "--unpaced",
        action="store_true",
        help="Decode as fast as possible instead of at the video frame rate",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def resolve_settings(config_path: str | None, hidden: list[str]) -> ScopeSettings:
    """Settings file, then ANYSCOPE_* variables, then --hide on top.

    Raises:
        ValueError: If the settings file is malformed or holds unknown keys
            or values of the wrong type.
    """
    base = {}
    if config_path:
        base = read_settings_file(config_path)
        errors = validate(base)
        if errors:
            raise ValueError(f"Invalid settings in {config_path}: " + "; ".join(errors))
    settings = settings_from_env(base)
    if hidden:
        settings = settings.replace(**{f"show_{scope_id}": False for scope_id in hidden})
    return settings


def run_image(
    path: str, out_dir: str, settings: ScopeSettings, crop: CropRegion | None
) -> int:
    """Analyze a still image once. Returns the number of PNGs written."""
    frame = load_image(path)
    result = run_cycle(frame, settings, ScratchArena(), crop)
    if result.skipped:
        logger.error("Image %s could not be analyzed", path)
        return 0
    return len(write_rasters(result.rasters, out_dir, 0))


def run_video(
    path: str,
    out_dir: str,
    settings: ScopeSettings,
    crop: CropRegion | None,
    max_cycles: int = 0,
    paced: bool = True,
) -> int:
    """Play a video through the scheduler. Returns the number of cycles rendered.

    Frames are decoded into a single slot; the scheduler renders whichever
    frame is newest at each tick, so frames decoded between ticks are skipped.
    """
    slot = LatestFrameSlot()
    written = 0

    def sink(rasters):
        nonlocal written
        if max_cycles and written >= max_cycles:
            return
        write_rasters(rasters, out_dir, written)
        written += 1

    scheduler = ScopeScheduler(
        slot.take, sink, settings, crop=lambda: crop, clear_on_stop=False
    )

    with VideoFrameSource(path) as source:
        frame_period = 1.0 / source.fps if paced and source.fps > 0 else 0.0
        scheduler.start()
        try:
            while not (max_cycles and written >= max_cycles):
                frame = source.read()
                if frame is None:
                    break
                slot.put(frame)
                if frame_period:
                    time.sleep(frame_period)
            # Let the final frame reach one more cycle
            time.sleep(settings.interval_ms / 1000 * 2)
        finally:
            scheduler.stop()

    logger.info(
        "Rendered %d cycles from %d frames (%d dropped)",
        written,
        source.frames_read,
        slot.dropped,
    )
    return written


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    init_diagnostics()
    init_sentry()

    errors = validate_source_path(args.source) + validate_output_dir(args.out)
    if errors:
        for err in errors:
            print(f"ERROR: {err}", file=sys.stderr)
        return 2

    try:
        settings = resolve_settings(args.config, args.hide)
    except (OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    if is_image_path(args.source):
        count = run_image(args.source, args.out, settings, args.crop)
    else:
        count = run_video(
            args.source,
            args.out,
            settings,
            args.crop,
            max_cycles=args.cycles,
            paced=not args.unpaced,
        )

    print(f"RENDERED={count}", flush=True)
    return 0 if count else 1


if __name__ == "__main__":
    sys.exit(main())
