# gltfbake/assets/animation/__init__.py
from gltfbake.assets.animation.baking import SkinBaker, frame_count_for
from gltfbake.assets.animation.hierarchy import NodeHierarchy
from gltfbake.assets.animation.index import AnimationIndex
from gltfbake.assets.animation.retarget import JointNameMap, canonical_name

__all__ = [
    "AnimationIndex",
    "JointNameMap",
    "NodeHierarchy",
    "SkinBaker",
    "canonical_name",
    "frame_count_for",
]
