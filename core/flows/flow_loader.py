"""FlowCache: loads, validates and caches flow descriptor JSON.

Expected layout (by convention):

    <assets_root>/flows/<flow_id>.json

The JSON structure is expected to look like:

    {
      "type": "flow",
      "flowId": "auth",
      "properties": { ... },
      "screens": {
        "login": { ... },
        "register": { ... }
      }
    }

This cache provides a simple API:

    await load_flow(flow_id, source_path) -> dict

and hides the details of locating, parsing and validating flow files.
Every read returns a deep copy, so a caller mutating its descriptor can
never corrupt the cache or another caller's copy.
"""

import asyncio
import copy
import inspect
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Dict, Iterable, List, Mapping, Optional, Protocol, Union

from pydantic import BaseModel, Field

from exceptions.exceptions import CacheMiss, FlowNotFoundError, StructureError


logger = logging.getLogger(__name__)

FLOW_ROOT_TYPE = "flow"


class AssetTextLoader(Protocol):
    """Collaborator that returns the raw text of a flow file."""

    def load_string(self, path: str) -> Union[str, Awaitable[str]]:
        ...


class FileTextLoader:
    """Read flow files from a directory on disk.

    Parameters
    ----------
    assets_root:
        Directory that relative paths are resolved against. Absolute paths
        are used as given.
    """

    def __init__(self, assets_root: Union[str, Path] = "assets") -> None:
        self.assets_root = Path(assets_root)

    def load_string(self, path: str) -> str:
        file_path = Path(path)
        if not file_path.is_absolute():
            file_path = self.assets_root / file_path
        if not file_path.is_file():
            raise FileNotFoundError(f"Flow file not found: {file_path}")
        with file_path.open("r", encoding="utf-8") as f:
            return f.read()


class CachedFlow(BaseModel):
    key: str
    descriptor: Dict[str, Any]
    loaded_at: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


def validate_flow_structure(data: Any, source: Optional[str] = None) -> Dict[str, Any]:
    """Check the required shape of a flow descriptor.

    Raises
    ------
    StructureError
        Naming the first missing or invalid field.
    """
    if not isinstance(data, dict):
        raise StructureError("<document>", "expected a JSON object", source)

    if data.get("type") != FLOW_ROOT_TYPE:
        raise StructureError(
            "type", f"expected {FLOW_ROOT_TYPE!r}, got {data.get('type')!r}", source
        )

    flow_id = data.get("flowId")
    if not isinstance(flow_id, str) or not flow_id:
        raise StructureError("flowId", "expected a non-empty string", source)

    properties = data.get("properties")
    if properties is not None and not isinstance(properties, dict):
        raise StructureError("properties", "expected an object", source)

    screens = data.get("screens")
    if not isinstance(screens, dict):
        raise StructureError("screens", "expected an object of screenId -> screen", source)
    if not screens:
        raise StructureError("screens", "must contain at least one screen", source)
    for screen_id, screen in screens.items():
        if not isinstance(screen, dict):
            raise StructureError(f"screens.{screen_id}", "expected an object", source)

    return data


class FlowCache:
    """Load-through cache of parsed flow descriptors.

    Parameters
    ----------
    text_loader:
        Collaborator returning raw JSON text for a path. Defaults to a
        FileTextLoader rooted at "assets".
    flow_configs:
        Optional initial mapping of flow_id -> source path.
    """

    def __init__(
        self,
        text_loader: Optional[AssetTextLoader] = None,
        flow_configs: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.text_loader = text_loader or FileTextLoader()
        # flow_id -> source path
        self._flow_configs: Dict[str, str] = dict(flow_configs or {})
        # flow_id -> CachedFlow
        self._cache: Dict[str, CachedFlow] = {}
        # flow_id -> in-flight load shared by concurrent callers
        self._loading: Dict[str, asyncio.Future] = {}

    # ------------------------------------------------------------------
    # Flow configs
    # ------------------------------------------------------------------

    def register_flow_configs(self, flow_configs: Mapping[str, str]) -> None:
        logger.info("[FLOWS] Registering %d flow configs", len(flow_configs))
        self._flow_configs.update(flow_configs)

    def source_for(self, flow_id: str) -> Optional[str]:
        return self._flow_configs.get(flow_id)

    # ------------------------------------------------------------------
    # Cache access
    # ------------------------------------------------------------------

    def _lookup(self, flow_id: str) -> Dict[str, Any]:
        entry = self._cache.get(flow_id)
        if entry is None:
            raise CacheMiss(flow_id)
        return copy.deepcopy(entry.descriptor)

    def is_cached(self, flow_id: str) -> bool:
        return flow_id in self._cache

    def get_cached(self, flow_id: str) -> Optional[Dict[str, Any]]:
        """Return a copy of a cached flow, or None if it is not cached."""
        try:
            return self._lookup(flow_id)
        except CacheMiss:
            return None

    def cache_flow(self, key: str, descriptor: Dict[str, Any]) -> None:
        """Insert an already parsed descriptor (validated first)."""
        validate_flow_structure(descriptor, source=key)
        logger.info("[FLOWS] Caching flow with key: %s", key)
        self._cache[key] = CachedFlow(key=key, descriptor=copy.deepcopy(descriptor))

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_flow(self, flow_id: str, source_path: Optional[str] = None) -> Dict[str, Any]:
        """Return a copy of the flow, loading and caching it on a miss.

        Raises
        ------
        FlowNotFoundError
            If the flow is not cached and no source path is known.
        StructureError
            If the file is not valid JSON or misses a required field.
        """
        try:
            descriptor = self._lookup(flow_id)
        except CacheMiss:
            pass
        else:
            logger.info("[FLOWS] Using cached flow: %s", flow_id)
            return descriptor

        pending = self._loading.get(flow_id)
        if pending is not None:
            logger.info("[FLOWS] Waiting for concurrent load of %s", flow_id)
            entry = await asyncio.shield(pending)
            return copy.deepcopy(entry.descriptor)

        path = source_path or self._flow_configs.get(flow_id)
        if not path:
            raise FlowNotFoundError(flow_id)

        future = asyncio.get_running_loop().create_future()
        self._loading[flow_id] = future
        try:
            entry = await self._read_and_validate(flow_id, path)
        except Exception as exc:
            logger.error("[FLOWS] Failed to load flow %s from %s: %s", flow_id, path, exc)
            future.set_exception(exc)
            # Mark retrieved so an unawaited failure is not reported by asyncio.
            future.exception()
            raise
        else:
            self._cache[flow_id] = entry
            self._flow_configs.setdefault(flow_id, path)
            future.set_result(entry)
            logger.info("[FLOWS] Flow loaded successfully: %s", flow_id)
            return copy.deepcopy(entry.descriptor)
        finally:
            self._loading.pop(flow_id, None)

    async def _read_and_validate(self, flow_id: str, path: str) -> CachedFlow:
        logger.info("[FLOWS] Loading flow: %s from %s", flow_id, path)
        load_string = self.text_loader.load_string
        if inspect.iscoroutinefunction(load_string):
            text = await load_string(path)
        else:
            # Blocking readers (disk) run off the event loop.
            text = await asyncio.to_thread(load_string, path)
        if inspect.isawaitable(text):
            text = await text

        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise StructureError("<document>", f"invalid JSON: {exc}", path) from exc

        validate_flow_structure(data, source=path)

        if data["flowId"] != flow_id:
            raise StructureError(
                "flowId",
                f"requested flow {flow_id!r} but file declares {data['flowId']!r}",
                path,
            )
        return CachedFlow(key=flow_id, descriptor=data)

    async def get_flow(self, flow_id: str) -> Dict[str, Any]:
        """Return a cached flow or load it from its registered path."""
        if self.is_cached(flow_id):
            return self._lookup(flow_id)
        if flow_id in self._flow_configs:
            return await self.load_flow(flow_id, self._flow_configs[flow_id])
        raise FlowNotFoundError(flow_id)

    async def preload_flows(self, flow_ids: Iterable[str]) -> Dict[str, Any]:
        """Load several flows ahead of navigation.

        A failing flow is logged and reported but never aborts the batch.
        Returns {"loaded": [...], "failed": {flow_id: message}}.
        """
        ids: List[str] = list(dict.fromkeys(flow_ids))
        logger.info("[FLOWS] Preloading %d flows", len(ids))

        results = await asyncio.gather(
            *(self.get_flow(flow_id) for flow_id in ids),
            return_exceptions=True,
        )

        loaded: List[str] = []
        failed: Dict[str, str] = {}
        for flow_id, result in zip(ids, results):
            if isinstance(result, BaseException):
                logger.warning("[FLOWS] Preload failed for %s: %s", flow_id, result)
                failed[flow_id] = str(result)
            else:
                loaded.append(flow_id)

        logger.info("[FLOWS] Preload completed: %d loaded, %d failed", len(loaded), len(failed))
        return {"loaded": loaded, "failed": failed}

    # ------------------------------------------------------------------
    # Invalidation / stats
    # ------------------------------------------------------------------

    def clear_cache(self, key: Optional[str] = None) -> None:
        if key is not None:
            logger.info("[FLOWS] Clearing cache for key: %s", key)
            self._cache.pop(key, None)
        else:
            logger.info("[FLOWS] Clearing entire cache")
            self._cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        return {
            "count": len(self._cache),
            "keys": list(self._cache.keys()),
            "loading": list(self._loading.keys()),
        }
