"""Tests for asset materialization, scene composition and clip rendering."""

from __future__ import annotations

import unittest

from autocine.catalog import AssetCatalog
from autocine.nodes.assets import MaterializeAssets
from autocine.nodes.scenes import ComposeScenes, compose_scene, reference_images
from autocine.nodes.script import parse_script
from autocine.nodes.video import build_video_prompt, render_clip
from autocine.types import AssetKind, AssetOrigin, Frame, FrameOrigin, RunState, VideoSettings
from autocine.utils.placeholders import scene_placeholder_url
from autocine.utils.run_logger import RunLogger

from fakes import ScriptedClient

ENV_REF = "data:image/png;base64,ZW52"
RULER_REF = "data:image/png;base64,cnVsZXI="


def _state_with_script() -> RunState:
    client = ScriptedClient()
    state = RunState(run_id=None, topic="森林")
    state.script = parse_script(client.text_reply)
    return state


class MaterializeAssetsTest(unittest.IsolatedAsyncioTestCase):
    async def test_catalog_hit_is_reused_without_generation(self) -> None:
        catalog = AssetCatalog()
        catalog.register(AssetKind.ENVIRONMENT, "我的森林", ENV_REF, asset_id="e1")
        client = ScriptedClient()
        state = _state_with_script()

        await MaterializeAssets(RunLogger(None), client, catalog).run(state)

        env_image = state.asset_images["e1"]
        self.assertEqual(env_image.origin, AssetOrigin.REUSED)
        self.assertEqual(env_image.url, ENV_REF)
        self.assertEqual(client.image_prompts(), ["a small red fox"])
        self.assertEqual(state.asset_images["c1"].origin, AssetOrigin.GENERATED)
        self.assertTrue(state.log.contains("🔗"))
        self.assertTrue(state.log.contains("🎨"))

    async def test_failed_generation_yields_named_placeholder(self) -> None:
        client = ScriptedClient(fail_images=["a misty forest"])
        state = _state_with_script()

        await MaterializeAssets(RunLogger(None), client, AssetCatalog()).run(state)

        env_image = state.asset_images["e1"]
        self.assertEqual(env_image.origin, AssetOrigin.PLACEHOLDER)
        self.assertIn("%E6%A3%AE%E6%9E%97", env_image.url)  # "森林", URL-encoded
        self.assertEqual(state.asset_images["c1"].origin, AssetOrigin.GENERATED)

    async def test_reuse_is_idempotent_across_runs(self) -> None:
        catalog = AssetCatalog()
        catalog.register(AssetKind.CHARACTER, "小狐狸", "data:image/png;base64,Zm94", asset_id="c1")
        origins = []
        for _ in range(2):
            state = _state_with_script()
            await MaterializeAssets(RunLogger(None), ScriptedClient(), catalog).run(state)
            origins.append({key: image.origin for key, image in state.asset_images.items()})
        self.assertEqual(origins[0], origins[1])
        self.assertEqual(origins[0]["c1"], AssetOrigin.REUSED)


class ComposeScenesTest(unittest.IsolatedAsyncioTestCase):
    async def _materialized(self, client: ScriptedClient, catalog: AssetCatalog) -> RunState:
        state = _state_with_script()
        await MaterializeAssets(RunLogger(None), client, catalog).run(state)
        client.image_calls.clear()
        return state

    async def test_reference_order(self) -> None:
        catalog = AssetCatalog()
        catalog.register(AssetKind.ENVIRONMENT, "森林", ENV_REF, asset_id="e1")
        catalog.register(AssetKind.SCALE_REF, "尺子", RULER_REF)
        client = ScriptedClient()
        state = await self._materialized(client, catalog)
        state.consistency_anchor = "https://img.test/anchor.png"

        refs = reference_images(state, state.script.scene(1), catalog, consistency_mode=True)

        self.assertEqual(
            refs,
            ["https://img.test/anchor.png", ENV_REF, state.asset_images["c1"].url, RULER_REF],
        )
        self.assertNotIn("https://img.test/anchor.png", reference_images(state, state.script.scene(1), catalog, False))

    async def test_each_scene_chains_to_previous_generated_frame(self) -> None:
        client = ScriptedClient()
        catalog = AssetCatalog()
        state = await self._materialized(client, catalog)

        await ComposeScenes(RunLogger(None), client, catalog, consistency_mode=True).run(state)

        self.assertEqual(client.image_prompts(), ["scene one", "scene two", "scene three"])
        first_url = state.frames[1].url
        self.assertEqual(client.image_calls[1][1][0], first_url)
        self.assertEqual(client.image_calls[2][1][0], state.frames[2].url)
        self.assertEqual(state.consistency_anchor, state.frames[3].url)

    async def test_placeholder_frame_never_becomes_anchor(self) -> None:
        client = ScriptedClient(fail_images=["scene two"])
        catalog = AssetCatalog()
        state = await self._materialized(client, catalog)

        await ComposeScenes(RunLogger(None), client, catalog, consistency_mode=True).run(state)

        self.assertEqual(state.frames[2].origin, FrameOrigin.PLACEHOLDER)
        self.assertEqual(state.frames[2].url, scene_placeholder_url(2))
        self.assertEqual(client.image_calls[2][1][0], state.frames[1].url)
        self.assertTrue(state.log.contains("占位图"))

    async def test_consistency_off_sends_no_anchor(self) -> None:
        client = ScriptedClient()
        catalog = AssetCatalog()
        state = await self._materialized(client, catalog)

        await ComposeScenes(RunLogger(None), client, catalog, consistency_mode=False).run(state)

        first_url = state.frames[1].url
        for _, refs in client.image_calls[1:]:
            self.assertNotIn(first_url, refs)
        self.assertEqual(len(client.image_calls[1][1]), 2)

    async def test_regenerating_uses_current_anchor(self) -> None:
        client = ScriptedClient()
        catalog = AssetCatalog()
        state = await self._materialized(client, catalog)
        await ComposeScenes(RunLogger(None), client, catalog).run(state)
        latest = state.frames[3].url

        frame = await compose_scene(state, state.script.scene(1), client=client, catalog=catalog, consistency_mode=True)

        self.assertEqual(client.image_calls[-1][1][0], latest)
        self.assertEqual(state.frames[1], frame)
        self.assertEqual(state.consistency_anchor, frame.url)


class VideoStageTest(unittest.IsolatedAsyncioTestCase):
    def test_parameter_models_get_suffixes(self) -> None:
        prompt = build_video_prompt("a fox runs", VideoSettings(model="sora-2", resolution="1280x720", duration="8s"))
        self.assertEqual(prompt, "a fox runs --size 1280x720 --duration 8")

    def test_other_models_get_qualifier_phrases(self) -> None:
        prompt = build_video_prompt("a fox runs", VideoSettings(model="veo-3", resolution="720x1280", duration="4s"))
        self.assertNotIn("--size", prompt)
        self.assertIn("720x1280", prompt)
        self.assertIn("4 seconds", prompt)

    async def test_placeholder_frame_is_still_animated(self) -> None:
        client = ScriptedClient()
        state = _state_with_script()
        frame = Frame(scene_id=2, url=scene_placeholder_url(2), origin=FrameOrigin.PLACEHOLDER)

        clip = await render_clip(state, state.script.scene(2), frame, client=client, settings=VideoSettings())

        self.assertIsNotNone(clip)
        self.assertEqual(client.video_calls[0][1], scene_placeholder_url(2))
        self.assertEqual(client.video_calls[0][2], "sora-2")
        self.assertIs(state.clips[2], clip)

    async def test_video_failure_leaves_no_clip(self) -> None:
        client = ScriptedClient(fail_video=True)
        state = _state_with_script()
        frame = Frame(scene_id=1, url="https://img.test/1.png", origin=FrameOrigin.GENERATED)

        clip = await render_clip(state, state.script.scene(1), frame, client=client, settings=VideoSettings())

        self.assertIsNone(clip)
        self.assertNotIn(1, state.clips)
        self.assertTrue(state.log.contains("视频生成失败"))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
