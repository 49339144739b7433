"""User-supplied custom assets that can substitute for generated imagery."""

from __future__ import annotations

import itertools
import time
from io import BytesIO
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from PIL import Image, ImageOps, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict

from .errors import AssetNotFoundError, GenerativeError
from .services.base import GenerativeClient, user_content
from .types import AnalysisState, AssetKind, CustomAsset
from .utils.events import EventLog
from .utils.extract import clean_json_text
from .utils.files import guess_mime, read_binary, to_data_url
from .utils.prompts import load_prompt


class AssetAnalysis(BaseModel):
    """Shape of the vision model's classification reply."""

    model_config = ConfigDict(extra="ignore")

    kind: AssetKind
    name: Optional[str] = None
    description: str = ""


class AssetCatalog:
    """Session-owned set of custom assets keyed by id.

    Assets change only through re-classification or deletion; the pipeline
    reads them but never regenerates them.
    """

    MAX_REFERENCE_DIM = 2048
    DEFAULT_DESCRIPTION = "Reference"

    def __init__(self) -> None:
        self._assets: Dict[str, CustomAsset] = {}
        self._counter = itertools.count()

    # ---------- Mutation ----------

    def add(self, asset: CustomAsset) -> CustomAsset:
        self._assets[asset.id] = asset
        return asset

    def register(
        self,
        kind: AssetKind | str,
        name: str,
        image_ref: str,
        description: str = "",
        asset_id: Optional[str] = None,
    ) -> CustomAsset:
        """Add an asset whose kind is already known (no analysis needed)."""
        return self.add(
            CustomAsset(
                id=asset_id or self._new_id(),
                kind=AssetKind(kind),
                name=name,
                image_ref=image_ref,
                description=description or self.DEFAULT_DESCRIPTION,
                analysis_state=AnalysisState.DONE,
            )
        )

    def reclassify(self, asset_id: str, kind: AssetKind | str) -> CustomAsset:
        asset = self.get(asset_id)
        asset.kind = AssetKind(kind)
        return asset

    def remove(self, asset_id: str) -> CustomAsset:
        try:
            return self._assets.pop(asset_id)
        except KeyError:
            raise AssetNotFoundError(asset_id) from None

    # ---------- Queries ----------

    def get(self, asset_id: str) -> CustomAsset:
        try:
            return self._assets[asset_id]
        except KeyError:
            raise AssetNotFoundError(asset_id) from None

    def find(self, asset_id: str) -> Optional[CustomAsset]:
        return self._assets.get(asset_id)

    def by_kind(self, kind: AssetKind) -> List[CustomAsset]:
        return [asset for asset in self._assets.values() if asset.kind == kind]

    def plannable(self) -> List[CustomAsset]:
        """Characters and environments, i.e. everything the planner may reference."""
        return [asset for asset in self._assets.values() if asset.kind != AssetKind.SCALE_REF]

    def scale_refs(self) -> List[CustomAsset]:
        return self.by_kind(AssetKind.SCALE_REF)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._assets

    def __iter__(self) -> Iterator[CustomAsset]:
        return iter(list(self._assets.values()))

    def __len__(self) -> int:
        return len(self._assets)

    # ---------- Upload + analysis ----------

    async def upload(
        self,
        path: str | Path,
        client: GenerativeClient,
        *,
        name: Optional[str] = None,
        model: Optional[str] = None,
        log: Optional[EventLog] = None,
    ) -> CustomAsset:
        """Ingest an image file and classify it with a vision completion.

        The asset is added as ``pending`` before the model call so observers
        can show it immediately; it ends up ``done`` whatever the outcome.
        """
        source = Path(path)
        asset = self.add(
            CustomAsset(
                id=self._new_id(),
                kind=AssetKind.CHARACTER,
                name=name or source.stem[:10],
                image_ref=self.load_image_ref(source),
                description=self.DEFAULT_DESCRIPTION,
            )
        )
        await self.analyze(asset.id, client, model=model, log=log)
        return asset

    async def analyze(
        self,
        asset_id: str,
        client: GenerativeClient,
        *,
        model: Optional[str] = None,
        log: Optional[EventLog] = None,
    ) -> CustomAsset:
        asset = self.get(asset_id)
        asset.analysis_state = AnalysisState.PENDING
        prompt = load_prompt("analyze_asset", {"asset_name": asset.name})
        messages = [{"role": "user", "content": user_content(prompt, [asset.image_ref])}]
        try:
            raw = await client.text_complete(messages, json_mode=True, model=model)
            analysis = AssetAnalysis.model_validate_json(clean_json_text(raw))
        except (GenerativeError, ValueError) as exc:
            if log is not None:
                log.warning(f"⚠️ 素材分析失败 ({asset.name}): {exc}，按角色处理")
        else:
            asset.kind = analysis.kind
            asset.description = analysis.description or asset.description
            if log is not None:
                log.info(f"🏷️ {asset.name} 识别为 {analysis.kind.value}")
        asset.analysis_state = AnalysisState.DONE
        return asset

    @classmethod
    def load_image_ref(cls, path: str | Path) -> str:
        """Read an image file and return it as a normalised ``data:`` URL."""
        raw_bytes = read_binary(path)
        buffer = BytesIO(raw_bytes)
        try:
            with Image.open(buffer) as image:
                if getattr(image, "n_frames", 1) > 1:
                    image.seek(0)
                image = ImageOps.exif_transpose(image)
                if image.mode not in {"RGB", "RGBA"}:
                    image = image.convert("RGBA" if "A" in image.getbands() else "RGB")
                if max(image.size) > cls.MAX_REFERENCE_DIM:
                    image.thumbnail((cls.MAX_REFERENCE_DIM, cls.MAX_REFERENCE_DIM), Image.LANCZOS)

                has_alpha = "A" in image.getbands()
                output = BytesIO()
                if has_alpha:
                    image.save(output, format="PNG", optimize=True)
                    return to_data_url(output.getvalue(), "image/png")
                image.save(output, format="JPEG", quality=90, optimize=True)
                return to_data_url(output.getvalue(), "image/jpeg")
        except (UnidentifiedImageError, OSError):
            return to_data_url(raw_bytes, guess_mime(path))

    def _new_id(self) -> str:
        return f"custom_{int(time.time() * 1000)}_{next(self._counter)}"
