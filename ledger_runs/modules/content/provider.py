from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import Lock
from typing import Protocol

from ledger_runs.modules.content.schemas import Manifest, SceneDef

logger = logging.getLogger(__name__)


class ContentProvider(Protocol):
    def get_scene(self, content_id: str, scene_id: str) -> SceneDef | None: ...

    def get_manifest(self, content_id: str) -> Manifest: ...


class FileContentProvider:
    """Reads pre-validated content packs laid out as::

        <root>/<content_id>/manifest.json
        <root>/<content_id>/scenes/scene_<scene_id>.json

    Parsed scenes are cached for the lifetime of the provider; scene codes in
    arrivals are normalized once at parse time.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self._lock = Lock()
        self._scenes: dict[tuple[str, str], SceneDef | None] = {}
        self._manifests: dict[str, Manifest] = {}

    def _read_json(self, path: Path) -> dict | None:
        if not path.is_file():
            return None
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)

    def get_scene(self, content_id: str, scene_id: str) -> SceneDef | None:
        key = (str(content_id), str(scene_id))
        with self._lock:
            if key in self._scenes:
                return self._scenes[key]
        raw = self._read_json(self.root / key[0] / "scenes" / f"scene_{key[1]}.json")
        scene = None
        if raw is None:
            logger.warning("scene %s missing from content pack %s", key[1], key[0])
        else:
            raw.setdefault("scene_id", key[1])
            raw.setdefault("content_id", key[0])
            scene = SceneDef.model_validate(raw)
        with self._lock:
            self._scenes[key] = scene
        return scene

    def get_manifest(self, content_id: str) -> Manifest:
        with self._lock:
            cached = self._manifests.get(content_id)
        if cached is not None:
            return cached
        raw = self._read_json(self.root / content_id / "manifest.json")
        manifest = Manifest.model_validate(raw or {"content_id": content_id})
        with self._lock:
            self._manifests[content_id] = manifest
        return manifest

    def clear_cache(self) -> None:
        with self._lock:
            self._scenes.clear()
            self._manifests.clear()


class InMemoryContentProvider:
    def __init__(self, content_id: str = "genesis", version: str = "1") -> None:
        self._scenes: dict[tuple[str, str], SceneDef] = {}
        self._manifests: dict[str, Manifest] = {content_id: Manifest(content_id=content_id, version=version)}

    def add_scene(self, scene: SceneDef | dict, content_id: str = "genesis") -> SceneDef:
        parsed = scene if isinstance(scene, SceneDef) else SceneDef.model_validate(scene)
        self._scenes[(content_id, parsed.scene_id)] = parsed
        self._manifests.setdefault(content_id, Manifest(content_id=content_id))
        return parsed

    def get_scene(self, content_id: str, scene_id: str) -> SceneDef | None:
        return self._scenes.get((str(content_id), str(scene_id)))

    def get_manifest(self, content_id: str) -> Manifest:
        return self._manifests.get(content_id) or Manifest(content_id=content_id)
