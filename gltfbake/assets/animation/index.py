# gltfbake/assets/animation/index.py
import logging
import os
from pathlib import Path
from typing import Optional, Union

from gltfbake.assets.errors import AssetError, AssetFormatError, NoAnimationsError
from gltfbake.assets.gltf.accessor import AccessorDecoder
from gltfbake.assets.gltf.document import Animation, GltfDocument
from gltfbake.assets.registry import AssetRegistry
from gltfbake.assets.types import AnimationClip, AnimationLibrary

logger = logging.getLogger(__name__)


def clip_duration(decoder: AccessorDecoder, animation: Animation) -> float:
    """
    Latest final keyframe over the clip's channels. Channels whose sampler
    input cannot be read are left out.
    """
    duration = 0.0
    for channel in animation.channels:
        if not 0 <= channel.sampler < len(animation.samplers):
            logger.debug("Channel references missing sampler %d", channel.sampler)
            continue
        try:
            times = decoder.read_scalars(animation.samplers[channel.sampler].input)
        except AssetFormatError as exc:
            logger.debug("Skipping channel of '%s': %s", animation.name, exc)
            continue
        if len(times):
            duration = max(duration, float(times[-1]))
    return duration


def index_document(document: GltfDocument) -> AnimationLibrary:
    if not document.animations:
        raise NoAnimationsError(f"No animations in {document.path}")

    decoder = AccessorDecoder(document)
    clips = tuple(
        AnimationClip(name=a.name, duration=clip_duration(decoder, a))
        for a in document.animations
    )
    return AnimationLibrary(path=str(document.path), clips=clips)


class AnimationIndex:
    """
    Clip names and durations per animation file, memoized by resolved
    absolute path. The first outcome is kept, failures included, and later
    changes to the file are not noticed until the entry is forgotten.
    """

    def __init__(self, registry: Optional[AssetRegistry] = None) -> None:
        self._memo = registry if registry is not None else AssetRegistry()

    def index_clips(self, path: Union[str, Path]) -> AnimationLibrary:
        key = os.path.abspath(path)

        outcome = self._memo.get(key)
        if outcome is None:
            outcome = self._memo.setdefault(key, self._load(key))

        if isinstance(outcome, AssetError):
            # Drop frames left over from earlier raises of the memoized error
            raise outcome.with_traceback(None)
        return outcome

    def is_cached(self, path: Union[str, Path]) -> bool:
        return os.path.abspath(path) in self._memo

    def forget(self, path: Union[str, Path]) -> None:
        self._memo.discard(os.path.abspath(path))

    def clear(self) -> None:
        self._memo.clear()

    def _load(self, path: str) -> Union[AnimationLibrary, AssetError]:
        try:
            return index_document(GltfDocument.load(path))
        except AssetError as exc:
            logger.debug("Animation index failed for %s: %s", path, exc)
            return exc
