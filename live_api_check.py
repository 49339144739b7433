#!/usr/bin/env python3
"""Run live connectivity checks against the Poe text, image and video models."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import textwrap
from typing import Iterable, List, Optional, Tuple

from autocine.errors import GenerativeError, ScriptParseError
from autocine.nodes.script import parse_script
from autocine.services.poe import PoeClient
from autocine.utils.prompts import load_prompt

Result = Tuple[str, bool, str]


async def run_text_test(client: PoeClient, topic: str) -> str:
    messages = [
        {"role": "system", "content": load_prompt("plan_script_system", {"asset_context": "", "output_schema": ""})},
        {"role": "user", "content": load_prompt("plan_script_user", {"topic": topic})},
    ]
    raw = await client.text_complete(messages, json_mode=True)
    script = parse_script(raw)
    return f"Script '{script.title}' with {len(script.scenes)} scenes."


async def run_image_test(client: PoeClient, prompt: str) -> str:
    return await client.image_generate(prompt)


async def run_video_test(client: PoeClient, prompt: str, start_image_url: Optional[str]) -> str:
    return await client.video_generate(prompt, start_image_url)


def parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=textwrap.dedent(
            """\
            Smoke-test connectivity for the Poe generative endpoints.
            The video check is slow and only runs with --video.
            """
        ),
    )
    parser.add_argument("--api-key", default=os.getenv("POE_API_KEY"), help="Poe API key, defaults to $POE_API_KEY.")
    parser.add_argument("--api-url", default=os.getenv("POE_API_URL", "https://api.poe.com/v1"), help="API base URL.")
    parser.add_argument("--text-model", default="gpt-5", help="Model used for the script check.")
    parser.add_argument("--image-model", default="nano-banana-pro", help="Model used for the image check.")
    parser.add_argument("--video-model", default="sora-2", help="Model used for the video check.")
    parser.add_argument("--topic", default="一只橘猫在雨夜的城市里寻找回家的路", help="Topic for the script check.")
    parser.add_argument(
        "--image-prompt",
        default="A ginger cat on a rainy neon street at night, cinematic wide shot",
        help="Prompt for the image check.",
    )
    parser.add_argument("--video", action="store_true", help="Also animate the generated image.")
    return parser.parse_args(list(argv))


async def _check_all(args: argparse.Namespace) -> List[Result]:
    client = PoeClient(
        api_key=args.api_key,
        api_url=args.api_url,
        text_model=args.text_model,
        image_model=args.image_model,
        video_model=args.video_model,
    )
    results: List[Result] = []

    try:
        results.append(("Text", True, await run_text_test(client, args.topic)))
    except (GenerativeError, ScriptParseError) as exc:
        results.append(("Text", False, repr(exc)))

    image_url: Optional[str] = None
    try:
        image_url = await run_image_test(client, args.image_prompt)
        results.append(("Image", True, image_url))
    except GenerativeError as exc:
        results.append(("Image", False, repr(exc)))

    if args.video:
        try:
            results.append(("Video", True, await run_video_test(client, args.image_prompt, image_url)))
        except GenerativeError as exc:
            results.append(("Video", False, repr(exc)))
    else:
        results.append(("Video", False, "Skipped (pass --video to run it)"))
    return results


def main(argv: Iterable[str]) -> int:
    args = parse_args(argv)
    if not args.api_key:
        print("No API key: pass --api-key or set POE_API_KEY.")
        return 2

    any_failure = False
    for name, ok, detail in asyncio.run(_check_all(args)):
        status = "SUCCESS" if ok else "FAIL"
        print(f"[{name}] {status}: {detail}")
        if not ok and "Skipped" not in detail:
            any_failure = True

    return 0 if not any_failure else 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
