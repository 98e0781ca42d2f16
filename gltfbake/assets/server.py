# gltfbake/assets/server.py
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional, Union

from gltfbake.assets.animation.baking import ClipSelector, SkinBaker
from gltfbake.assets.animation.index import AnimationIndex
from gltfbake.assets.cache import MeshCache
from gltfbake.assets.errors import AssetError
from gltfbake.assets.handle import AssetHandle, asset_id_for
from gltfbake.assets.importers.mesh import GltfMeshImporter
from gltfbake.assets.paths import AssetPath, resolve_asset_path, resolve_file
from gltfbake.assets.registry import AssetRegistry
from gltfbake.assets.settings import AssetSettings
from gltfbake.assets.types import (
    AnimationLibrary,
    BakedSkinningFrames,
    LoadResult,
    MeshData,
)

logger = logging.getLogger(__name__)


class AssetServer:
    """
    Entry point for renderer and catalog code. Every call returns a
    LoadResult instead of raising; the message carries the failure reason.
    """

    def __init__(self, settings: Optional[AssetSettings] = None) -> None:
        self.settings = settings if settings is not None else AssetSettings()
        self.root = Path(self.settings.asset_root)

        self.registry = AssetRegistry()  # AssetId -> MeshData
        self.cache = (
            MeshCache(self.settings.cache_dir)
            if self.settings.cache_dir is not None
            else None
        )
        self.animations = AnimationIndex()
        self.baker = SkinBaker(self.settings.sample_rate)
        self._mesh_importer = GltfMeshImporter()

        self._executor = ThreadPoolExecutor(
            max_workers=self.settings.max_workers, thread_name_prefix="AssetWorker"
        )

    def resolve(self, path: str) -> AssetPath:
        return resolve_asset_path(self.root, path)

    def handle(self, path: str) -> AssetHandle[MeshData]:
        resolved = str(self.resolve(path))
        return AssetHandle(asset_id_for(resolved), resolved)

    def load_mesh(self, path: str) -> LoadResult[MeshData]:
        """
        Memory first, then the disk cache, then a fresh extraction (which
        is written back to the disk cache).
        """
        handle = self.handle(path)

        mesh = self.registry.get(handle.id)
        if mesh is not None:
            return LoadResult.success(mesh)

        if self.cache is not None:
            mesh = self.cache.get(handle.id)
            if mesh is not None:
                return LoadResult.success(
                    self.registry.setdefault(handle.id, mesh), "cache"
                )

        resolved = AssetPath.parse(handle.path)
        if not self._mesh_importer.accepts(resolved.file):
            logger.warning("No importer for %s", resolved.file)
            return LoadResult.failure(f"Unsupported model format: {resolved.file}")

        try:
            mesh = self._mesh_importer.import_file(resolved.file, resolved.selectors)
        except AssetError as exc:
            logger.warning("Failed to load model %s: %s", handle.path, exc)
            return LoadResult.failure(str(exc))

        if self.cache is not None:
            self.cache.put(handle.id, mesh)

        return LoadResult.success(self.registry.setdefault(handle.id, mesh))

    def load_many(self, paths: Iterable[str]) -> List[LoadResult[MeshData]]:
        """Load independent meshes on the worker pool; results keep input order."""
        return list(self._executor.map(self.load_mesh, paths))

    def index_animations(self, path: str) -> LoadResult[AnimationLibrary]:
        resolved = resolve_file(self.root, path)
        try:
            return LoadResult.success(self.animations.index_clips(resolved))
        except AssetError as exc:
            logger.warning("Failed to load animation %s: %s", resolved, exc)
            return LoadResult.failure(str(exc))

    def bake_skin(
        self,
        model_path: str,
        animation_path: Optional[str] = None,
        clip: ClipSelector = None,
    ) -> LoadResult[BakedSkinningFrames]:
        model = resolve_file(self.root, AssetPath.parse(model_path).file)
        animation: Union[str, None] = (
            resolve_file(self.root, animation_path) if animation_path else None
        )
        try:
            frames = self.baker.bake(model, animation, clip=clip)
        except AssetError as exc:
            logger.warning(
                "Failed to bake %s with %s: %s", model, animation or model, exc
            )
            return LoadResult.failure(str(exc))
        return LoadResult.success(frames)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def __enter__(self) -> "AssetServer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()
