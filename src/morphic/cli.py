"""
Command-line interface for offline file sessions.
"""

import argparse
import json
import sys
from pathlib import Path

from morphic.core.analyzer import FileAnalyzer
from morphic.core.beat import BeatSettings
from morphic.core.integrator import EnvironmentSettings, MorphicSettings, VisualSettings
from morphic.errors import AnalysisError, ConfigurationError
from morphic.pipeline import MorphicPipeline
from morphic.utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="morphic-analyze",
        description="Render morphic uniform timelines from audio files",
    )

    parser.add_argument(
        "input",
        type=Path,
        help="Input audio file (wav, mp3, flac)",
    )

    parser.add_argument(
        "-o", "--output",
        type=Path,
        default=None,
        help="Output manifest file path (default: <input>_morphic.json)",
    )

    parser.add_argument(
        "-f", "--fps",
        type=int,
        default=60,
        help="Target frames per second (default: 60)",
    )

    parser.add_argument(
        "--format",
        choices=["json", "numpy"],
        default="json",
        help="Output format (default: json)",
    )

    parser.add_argument(
        "--viscosity",
        type=float,
        default=0.5,
        help="Environment viscosity 0-1; higher slows synthetic time (default: 0.5)",
    )

    parser.add_argument(
        "--intensity",
        type=float,
        default=1.0,
        help="Global intensity multiplier 0.1-3 (default: 1.0)",
    )

    parser.add_argument(
        "--beat",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Enable bass-onset beat detection (default: on)",
    )

    parser.add_argument(
        "--sensitivity",
        type=float,
        default=1.0,
        help="Beat sensitivity; higher triggers on smaller bass jumps (default: 1.0)",
    )

    parser.add_argument(
        "--decay",
        type=float,
        default=0.94,
        help="Per-frame beat pulse decay 0-1 (default: 0.94)",
    )

    parser.add_argument(
        "--analysis-only",
        action="store_true",
        help="Print the whole-file analysis as JSON and exit",
    )

    parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Ignore and do not write the manifest cache",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress progress output",
    )

    parser.add_argument(
        "--summary",
        action="store_true",
        help="Print manifest summary to stdout",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging",
    )

    return parser


def _print_summary(manifest: dict) -> None:
    frames = manifest["frames"]
    print("\n--- Manifest Summary ---")
    print(json.dumps({"metadata": manifest["metadata"], "analysis": manifest["analysis"]}, indent=2))
    if frames:
        print(f"\nFrame 0: {json.dumps(frames[0], indent=2)}")
    if len(frames) > 1:
        # The first frame is usually at rest; the middle one shows the drive
        mid = len(frames) // 2
        print(f"\nFrame {mid}: {json.dumps(frames[mid], indent=2)}")


def _report(result: dict) -> None:
    print(f"Tempo:    {result['bpm']:.1f} BPM")
    print(f"Length:   {result['duration']:.2f}s")
    print(f"Frames:   {result['n_frames']} @ {result['fps']} fps")
    print(f"Wrote:    {result['output_path']}")


def main(argv=None):
    """Entry point for ``morphic-analyze``; returns the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging("DEBUG" if args.verbose else "WARNING")

    if not args.input.is_file():
        print(f"Error: no such audio file: {args.input}", file=sys.stderr)
        return 1

    try:
        if args.analysis_only:
            analysis = FileAnalyzer().analyze_file(args.input)
            print(json.dumps(analysis.to_dict(), indent=2))
            return 0

        settings = MorphicSettings(
            beat=BeatSettings(
                enabled=args.beat,
                sensitivity=args.sensitivity,
                decay=args.decay,
            ),
            environment=EnvironmentSettings(viscosity=args.viscosity),
            visual=VisualSettings(global_intensity=args.intensity),
        )
        pipeline = MorphicPipeline(target_fps=args.fps, settings=settings)
    except (AnalysisError, ConfigurationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    output_path = args.output or args.input.with_name(
        f"{args.input.stem}_morphic{'.npz' if args.format == 'numpy' else '.json'}"
    )
    if not args.quiet:
        print(f"Rendering {args.input} at {args.fps} fps")

    try:
        result = pipeline.process(
            args.input,
            output_path=output_path,
            format=args.format,
            use_cache=not args.no_cache,
        )
    except AnalysisError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not args.quiet:
        _report(result)
    if args.summary:
        _print_summary(result["manifest"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
