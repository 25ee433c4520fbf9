"""Command-line helpers for launching RAD Progression."""

from __future__ import annotations

import argparse
import logging
import subprocess
import sys
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)


def _app_path() -> Path:
    return Path(__file__).with_name("app.py")


def _launch_streamlit(
    app_path: Path | None = None,
    *,
    streamlit_args: Sequence[str] | None = None,
) -> None:
    """Start the Streamlit runtime for the packaged app."""

    target = app_path or _app_path()
    args = [sys.executable, "-m", "streamlit", "run", str(target)]
    if streamlit_args:
        args.extend(streamlit_args)

    subprocess.run(args, check=True)


def _run_smoke_test(timeout: float = 5.0) -> None:
    """Run a headless smoke test to ensure the app loads without errors."""

    from streamlit.testing.v1 import AppTest

    app_test = AppTest.from_file(str(_app_path()))
    app_test.run(timeout=timeout)

    if app_test.exception:
        print("Streamlit smoke test failed:", app_test.exception)
        raise SystemExit(1)


def _render_progression(source: Path, output: Path, *, tempo: int | None = None) -> Path:
    """Render a saved progression to ``.mid`` or ``.wav`` without the UI."""

    from .audio import export_wav, midi_to_audio, midi_to_bytes
    from .config import ProgressionSettings
    from .timeline import TimelineScheduler

    settings = ProgressionSettings.from_env()
    if tempo is not None:
        settings = settings.with_tempo(tempo)
    scheduler = TimelineScheduler.from_json(source, settings=settings)
    midi = scheduler.to_pretty_midi()

    if output.suffix.lower() == ".wav":
        output.write_bytes(export_wav(midi_to_audio(midi, sample_rate=settings.sample_rate)))
    else:
        output.write_bytes(midi_to_bytes(midi))
    logger.info("Rendered %d segments from %s to %s", len(scheduler), source, output)
    return output


def main(argv: Sequence[str] | None = None) -> None:
    """Launch the Streamlit UI, render a progression or run diagnostics."""

    parser = argparse.ArgumentParser(description="Utilities for the RAD Progression Streamlit app")
    parser.add_argument(
        "--smoke-test",
        action="store_true",
        help="Run a quick headless Streamlit smoke test instead of launching the server.",
    )
    parser.add_argument(
        "--render",
        type=Path,
        metavar="PROGRESSION_JSON",
        help="Render a progression exported from the app instead of launching the server.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("progression.mid"),
        help="Target for --render; a .wav suffix renders audio, anything else writes MIDI.",
    )
    parser.add_argument("--tempo", type=int, default=None, help="Tempo override for --render (BPM).")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    parser.add_argument(
        "streamlit_args",
        nargs=argparse.REMAINDER,
        help=(
            "Any additional arguments after '--' are forwarded directly to Streamlit. "
            "Example: rad-progression -- --server.headless true"
        ),
    )

    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.smoke_test:
        _run_smoke_test()
        return

    if args.render is not None:
        _render_progression(args.render, args.output, tempo=args.tempo)
        return

    forwarded_args = [arg for arg in args.streamlit_args if arg != "--"] if args.streamlit_args else []

    _launch_streamlit(streamlit_args=forwarded_args)


if __name__ == "__main__":  # pragma: no cover
    main()
