# gltfbake/assets/__init__.py
from gltfbake.assets.animation import AnimationIndex, SkinBaker
from gltfbake.assets.cache import MeshCache
from gltfbake.assets.errors import (
    AssetError,
    AssetFormatError,
    AssetIOError,
    BoundsError,
    EmptySkinError,
    InvalidHierarchyError,
    MeshNotFoundError,
    MissingPositionError,
    NoAnimationsError,
    NoSkinError,
)
from gltfbake.assets.handle import AssetHandle, AssetId
from gltfbake.assets.importers.mesh import GltfMeshImporter
from gltfbake.assets.server import AssetServer
from gltfbake.assets.settings import AssetSettings
from gltfbake.assets.types import (
    AnimationClip,
    AnimationLibrary,
    BakedSkinningFrames,
    LoadResult,
    MeshData,
    SkinDefinition,
    VertexLayout,
)

__all__ = [
    "AnimationClip",
    "AnimationIndex",
    "AnimationLibrary",
    "AssetError",
    "AssetFormatError",
    "AssetHandle",
    "AssetId",
    "AssetIOError",
    "AssetServer",
    "AssetSettings",
    "BakedSkinningFrames",
    "BoundsError",
    "EmptySkinError",
    "GltfMeshImporter",
    "InvalidHierarchyError",
    "LoadResult",
    "MeshCache",
    "MeshData",
    "MeshNotFoundError",
    "MissingPositionError",
    "NoAnimationsError",
    "NoSkinError",
    "SkinBaker",
    "SkinDefinition",
    "VertexLayout",
]
