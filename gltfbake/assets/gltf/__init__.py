# gltfbake/assets/gltf/__init__.py
from gltfbake.assets.gltf.accessor import AccessorDecoder
from gltfbake.assets.gltf.document import (
    Accessor,
    Animation,
    AnimationChannel,
    AnimationSampler,
    BufferView,
    GltfDocument,
    MeshDef,
    Node,
    Primitive,
    Skin,
)

__all__ = [
    "Accessor",
    "AccessorDecoder",
    "Animation",
    "AnimationChannel",
    "AnimationSampler",
    "BufferView",
    "GltfDocument",
    "MeshDef",
    "Node",
    "Primitive",
    "Skin",
]
