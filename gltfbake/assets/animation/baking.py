# gltfbake/assets/animation/baking.py
import logging
import math
import os
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import numpy as np

from gltfbake.assets.animation.hierarchy import NodeHierarchy
from gltfbake.assets.animation.index import clip_duration
from gltfbake.assets.animation.retarget import JointNameMap
from gltfbake.assets.animation.tracks import (
    PATH_WIDTHS,
    ROTATION,
    SCALE,
    TRANSLATION,
    NodeTracks,
    read_track,
)
from gltfbake.assets.errors import (
    AssetFormatError,
    EmptySkinError,
    NoAnimationsError,
    NoSkinError,
)
from gltfbake.assets.gltf.accessor import AccessorDecoder
from gltfbake.assets.gltf.document import (
    Animation,
    AnimationChannel,
    GltfDocument,
)
from gltfbake.assets.types import BakedSkinningFrames, SkinDefinition
from gltfbake.math import batch_transform_to_matrix

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 30.0
STATIC_POSE_EPSILON = 1e-4

ClipSelector = Union[str, int, None]


def frame_count_for(duration: float, sample_rate: float) -> int:
    """A near-zero duration is a static pose: exactly one frame."""
    if duration > STATIC_POSE_EPSILON:
        return max(2, math.ceil(duration * sample_rate) + 1)
    return 1


def load_skin(document: GltfDocument, index: int = 0) -> SkinDefinition:
    if not document.skins:
        raise NoSkinError(f"No skin in {document.path}")
    if not 0 <= index < len(document.skins):
        raise NoSkinError(
            f"Skin {index} requested but {document.path} has {len(document.skins)}"
        )

    skin = document.skins[index]
    if not skin.joints:
        raise EmptySkinError(f"Skin '{skin.name}' in {document.path} has no joints")

    for joint in skin.joints:
        if not 0 <= joint < len(document.nodes):
            raise AssetFormatError(
                f"Skin '{skin.name}' references missing node {joint}"
            )

    joint_count = len(skin.joints)
    inverse_bind = np.tile(np.eye(4), (joint_count, 1, 1))
    if skin.inverse_bind_matrices is None:
        logger.debug("Skin '%s' has no inverse bind matrices", skin.name)
    else:
        matrices = AccessorDecoder(document).read_matrices(skin.inverse_bind_matrices)
        used = min(len(matrices), joint_count)
        if used < joint_count:
            logger.debug(
                "Skin '%s': %d inverse bind matrices for %d joints",
                skin.name,
                len(matrices),
                joint_count,
            )
        inverse_bind[:used] = matrices[:used]

    return SkinDefinition(joints=skin.joints, inverse_bind_matrices=inverse_bind)


def select_animation(document: GltfDocument, clip: ClipSelector = None) -> Animation:
    """First clip by default; otherwise by index or by name."""
    if not document.animations:
        raise NoAnimationsError(f"No animations in {document.path}")

    if clip is None:
        return document.animations[0]
    if isinstance(clip, int):
        if 0 <= clip < len(document.animations):
            return document.animations[clip]
    else:
        for animation in document.animations:
            if animation.name == clip:
                return animation

    raise NoAnimationsError(f"Clip {clip!r} not found in {document.path}")


class SkinBaker:
    """
    Bakes one animation clip into per-frame joint palettes for a skinned
    model. The clip may live in another file; its channels are then matched
    to model nodes by name.
    """

    def __init__(self, sample_rate: float = DEFAULT_SAMPLE_RATE) -> None:
        if sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {sample_rate}")
        self.sample_rate = sample_rate

    def bake(
        self,
        model_path: Union[str, Path],
        animation_path: Union[str, Path, None] = None,
        clip: ClipSelector = None,
        skin: int = 0,
    ) -> BakedSkinningFrames:
        model = GltfDocument.load(model_path)

        if animation_path is None or os.path.abspath(animation_path) == os.path.abspath(
            model_path
        ):
            animation_doc = model
        else:
            animation_doc = GltfDocument.load(animation_path)

        return self.bake_documents(model, animation_doc, clip=clip, skin=skin)

    def bake_documents(
        self,
        model: GltfDocument,
        animation_doc: GltfDocument,
        clip: ClipSelector = None,
        skin: int = 0,
    ) -> BakedSkinningFrames:
        skin_def = load_skin(model, skin)
        animation = select_animation(animation_doc, clip)
        hierarchy = NodeHierarchy(model.nodes)

        decoder = AccessorDecoder(animation_doc)
        duration = clip_duration(decoder, animation)
        tracks = self._collect_tracks(model, animation_doc, animation, decoder)

        frame_count = frame_count_for(duration, self.sample_rate)
        times = np.arange(frame_count, dtype=np.float64) / self.sample_rate

        locals_ = self._sample_locals(hierarchy, tracks, times)
        globals_ = hierarchy.global_transforms(locals_)

        joints = np.asarray(skin_def.joints, dtype=np.intp)
        palette = globals_[:, joints] @ skin_def.inverse_bind_matrices

        # (frame, joint, row, col) -> column-major floats per joint
        matrices = np.ascontiguousarray(
            palette.transpose(0, 1, 3, 2), dtype=np.float32
        ).reshape(-1)
        matrices.setflags(write=False)

        logger.debug(
            "Baked '%s': %d joints x %d frames (%.3fs)",
            animation.name,
            skin_def.joint_count,
            frame_count,
            duration,
        )
        return BakedSkinningFrames(
            joint_count=skin_def.joint_count,
            frame_count=frame_count,
            duration=duration,
            sample_rate=self.sample_rate,
            matrices=matrices,
        )

    def _collect_tracks(
        self,
        model: GltfDocument,
        animation_doc: GltfDocument,
        animation: Animation,
        decoder: AccessorDecoder,
    ) -> Dict[int, NodeTracks]:
        name_map = None
        if animation_doc is not model:
            name_map = JointNameMap(model.node_names())

        tracks: Dict[int, NodeTracks] = {}
        unmapped = 0

        for channel in animation.channels:
            if channel.path not in PATH_WIDTHS:
                logger.debug("Ignoring '%s' channel", channel.path)
                continue
            if not 0 <= channel.sampler < len(animation.samplers):
                logger.debug("Channel references missing sampler %d", channel.sampler)
                continue

            target = self._map_target(channel, model, animation_doc, name_map)
            if target is None:
                unmapped += 1
                continue

            track = read_track(decoder, animation.samplers[channel.sampler], channel.path)
            if track is not None:
                tracks.setdefault(target, NodeTracks()).tracks[channel.path] = track

        if unmapped:
            logger.warning(
                "%d of %d channels of '%s' matched no node in %s",
                unmapped,
                len(animation.channels),
                animation.name,
                model.path,
            )
        return tracks

    def _map_target(
        self,
        channel: AnimationChannel,
        model: GltfDocument,
        animation_doc: GltfDocument,
        name_map: Optional[JointNameMap],
    ) -> Optional[int]:
        if channel.node is None:
            return None

        if name_map is None:
            if 0 <= channel.node < len(model.nodes):
                return channel.node
            return None

        if not 0 <= channel.node < len(animation_doc.nodes):
            return None
        return name_map.find(animation_doc.nodes[channel.node].name)

    def _sample_locals(
        self,
        hierarchy: NodeHierarchy,
        tracks: Dict[int, NodeTracks],
        times: np.ndarray,
    ) -> np.ndarray:
        """(frames, nodes, 4, 4) local matrices; untouched nodes keep rest pose."""
        frames = len(times)
        locals_ = np.repeat(hierarchy.rest_locals[None], frames, axis=0)

        for index, node_tracks in tracks.items():
            node = hierarchy.nodes[index]
            if node.has_matrix:
                logger.debug("Node '%s' has a matrix; its tracks are ignored", node.name)
                continue

            translation, rotation, scale = self._sample_trs(node_tracks, node, times)
            locals_[:, index] = batch_transform_to_matrix(translation, rotation, scale)

        return locals_

    @staticmethod
    def _sample_trs(
        node_tracks: NodeTracks, node, times: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        frames = len(times)

        def rest(values) -> np.ndarray:
            return np.tile(np.asarray(tuple(values), dtype=np.float64), (frames, 1))

        track = node_tracks.get(TRANSLATION)
        translation = track.sample(times) if track is not None else rest(node.translation)

        track = node_tracks.get(ROTATION)
        rotation = (
            track.sample(times, rotation=True)
            if track is not None
            else rest(node.rotation.normalized())
        )

        track = node_tracks.get(SCALE)
        scale = track.sample(times) if track is not None else rest(node.scale)

        return translation, rotation, scale
