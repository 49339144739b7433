"""Command-line entry point for the autocine pipeline."""

from __future__ import annotations

import argparse
import asyncio
import sys

from autocine.config import PipelineConfig
from autocine.pipeline import RunController


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Turn a topic into consistent scene images and clips.")
    parser.add_argument("topic", help="Story topic or premise.")
    parser.add_argument(
        "--asset",
        dest="assets",
        action="append",
        default=[],
        help="Path to a custom reference image; repeat for several.",
    )
    parser.add_argument(
        "--no-video",
        action="store_true",
        help="Stop after scene images.",
    )
    parser.add_argument(
        "--no-consistency",
        action="store_true",
        help="Do not chain each scene to the previous frame.",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Print stage input/output snapshots.",
    )
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    config = PipelineConfig.from_env()
    if args.no_consistency:
        config.consistency_mode = False
    if args.trace:
        config.trace_steps = True

    controller = RunController(config)
    controller.state.log.subscribe(lambda event: print(f"[{event.kind}] {event.message}"))
    for path in args.assets:
        await controller.upload_asset(path)

    state = await controller.run(args.topic, enable_video=False if args.no_video else None)

    print("Generation completed.")
    print(f"Script: {state.script.title if state.script else 'N/A'}")
    for scene_id, frame in sorted(state.frames.items()):
        clip = state.clips.get(scene_id)
        print(f"  scene {scene_id} [{frame.origin.value}] {frame.url}")
        if clip is not None:
            print(f"    clip {clip.url}")
    if controller.logger.enabled:
        print(f"Prompt/response traces stored under {config.runs_dir}/{state.run_id}/")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point used by ``python run.py``."""
    args = parse_args(argv or sys.argv[1:])
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
