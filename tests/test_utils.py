"""Tests for the helper utilities and configuration."""

from __future__ import annotations

import os
import unittest
from datetime import datetime
from unittest import mock

from autocine.config import PipelineConfig
from autocine.errors import ExtractionFailure
from autocine.utils.events import EventLog, ObservableMap
from autocine.utils.extract import clean_json_text, extract_image_url, extract_video_url
from autocine.utils.inflight import InFlightSet
from autocine.utils.placeholders import asset_placeholder_url, scene_placeholder_url
from autocine.utils.prompts import load_prompt


class ExtractTest(unittest.TestCase):
    def test_clean_json_text(self) -> None:
        self.assertEqual(clean_json_text('```json\n{"a": 1}\n```'), '{"a": 1}')
        self.assertEqual(clean_json_text('Here you go: {"a": {"b": 2}} enjoy'), '{"a": {"b": 2}}')
        self.assertEqual(clean_json_text("result: [1, 2]"), "[1, 2]")
        self.assertEqual(clean_json_text(""), "")

    def test_image_url_prefers_markdown_image(self) -> None:
        text = "See https://example.com/page and ![frame](https://cdn.test/a.png)"
        self.assertEqual(extract_image_url(text), "https://cdn.test/a.png")

    def test_image_url_accepts_data_and_bare_urls(self) -> None:
        self.assertEqual(extract_image_url("data:image/png;base64,iVBORw0KGgo="), "data:image/png;base64,iVBORw0KGgo=")
        self.assertEqual(extract_image_url("Done: https://cdn.test/b.webp"), "https://cdn.test/b.webp")

    def test_video_url_prefers_video_files(self) -> None:
        text = "Preview https://poe.com/chat/123 then [video](https://cdn.test/clip.mp4?sig=1)"
        self.assertEqual(extract_video_url(text), "https://cdn.test/clip.mp4?sig=1")
        self.assertEqual(extract_video_url("[watch](https://cdn.test/v/42)"), "https://cdn.test/v/42")

    def test_missing_url_raises(self) -> None:
        with self.assertRaises(ExtractionFailure):
            extract_image_url("I cannot draw that.")
        with self.assertRaises(ExtractionFailure):
            extract_video_url(None)


class EventLogTest(unittest.TestCase):
    def test_lines_are_timestamped_and_skip_stages(self) -> None:
        log = EventLog(clock=lambda: datetime(2024, 5, 1, 9, 30, 5))
        received = []
        unsubscribe = log.subscribe(received.append)

        log.info("hello")
        log.stage("planning_script")
        unsubscribe()
        log.warning("careful")

        self.assertEqual(log.lines, ["[09:30:05] hello", "[09:30:05] careful"])
        self.assertEqual([event.kind for event in received], ["log", "stage"])
        self.assertEqual(len(log), 3)
        self.assertTrue(log.contains("care"))

    def test_observable_map_notifies_on_write_and_clear(self) -> None:
        changes = []
        items: ObservableMap[int, str] = ObservableMap()
        items.subscribe(lambda key, value: changes.append((key, value)))

        items[1] = "a"
        items[1] = "b"
        items.clear()

        self.assertEqual(changes, [(1, "a"), (1, "b"), (1, None)])
        self.assertEqual(len(items), 0)


class InFlightSetTest(unittest.TestCase):
    def test_claim_is_exclusive_and_always_released(self) -> None:
        guard = InFlightSet("regenerate")
        with guard.claim(3) as first:
            self.assertTrue(first)
            with guard.claim(3) as second:
                self.assertFalse(second)
            self.assertIn(3, guard)
        self.assertNotIn(3, guard)

        with self.assertRaises(RuntimeError):
            with guard.claim(4) as acquired:
                self.assertTrue(acquired)
                raise RuntimeError("boom")
        self.assertEqual(len(guard), 0)

    def test_failed_claim_does_not_release_holder(self) -> None:
        guard = InFlightSet()
        self.assertTrue(guard.try_acquire("x"))
        with guard.claim("x") as acquired:
            self.assertFalse(acquired)
        self.assertEqual(guard.snapshot(), frozenset({"x"}))


class PromptsAndPlaceholdersTest(unittest.TestCase):
    def test_load_prompt_fills_known_placeholders(self) -> None:
        text = load_prompt("plan_script_user", {"topic": "雨夜"})
        self.assertIn("雨夜", text)
        self.assertNotIn("{{", text)

    def test_placeholders_are_deterministic(self) -> None:
        self.assertEqual(scene_placeholder_url(2), scene_placeholder_url(2))
        self.assertNotEqual(scene_placeholder_url(2), scene_placeholder_url(3))
        self.assertIn("Scene%202", scene_placeholder_url(2))
        self.assertIn("text=Hero", asset_placeholder_url("Hero"))


class PipelineConfigTest(unittest.TestCase):
    def test_from_env(self) -> None:
        env = {
            "POE_API_KEY": "sk-test",
            "AUTOCINE_ENABLE_MOCKS": "false",
            "AUTOCINE_CONSISTENCY": "0",
            "AUTOCINE_VIDEO_MODEL": "veo-3",
            "AUTOCINE_VIDEO_DURATION": "4s",
            "AUTOCINE_RUNS_DIR": "",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            config = PipelineConfig.from_env()

        self.assertEqual(config.api_key, "sk-test")
        self.assertFalse(config.enable_mock_generation)
        self.assertFalse(config.consistency_mode)
        self.assertTrue(config.enable_video)
        self.assertIsNone(config.runs_dir)
        self.assertEqual(config.video.model, "veo-3")
        self.assertEqual(config.video.duration_seconds, "4")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
