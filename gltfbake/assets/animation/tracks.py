# gltfbake/assets/animation/tracks.py
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np

from gltfbake.assets.gltf.accessor import AccessorDecoder
from gltfbake.assets.gltf.document import AnimationSampler
from gltfbake.math import lerp, nlerp

logger = logging.getLogger(__name__)

TRANSLATION = "translation"
ROTATION = "rotation"
SCALE = "scale"

PATH_WIDTHS = {TRANSLATION: 3, ROTATION: 4, SCALE: 3}

STEP = "STEP"
CUBICSPLINE = "CUBICSPLINE"


def _bracket(
    times: np.ndarray, ts: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    For each sample time: the keyframe pair around it and the blend factor.
    Times outside the track clamp to the first/last keyframe.
    """
    n = len(times)
    if n == 1:
        zero = np.zeros(len(ts), dtype=np.intp)
        return zero, zero, np.zeros(len(ts))

    i0 = np.clip(np.searchsorted(times, ts, side="right") - 1, 0, n - 2)
    i1 = i0 + 1
    t0 = times[i0]
    t1 = times[i1]
    span = t1 - t0

    alpha = np.divide(
        ts - t0,
        span,
        out=(ts >= t1).astype(np.float64),
        where=span > 0,
    )
    return i0, i1, np.clip(alpha, 0.0, 1.0)


@dataclass
class Track:
    """Keyframes of one node property."""

    times: np.ndarray  # (K,)
    values: np.ndarray  # (K, width)
    interpolation: str = "LINEAR"

    def sample(self, ts: np.ndarray, rotation: bool = False) -> np.ndarray:
        """Values at every time in ts, shape (len(ts), width)."""
        ts = np.atleast_1d(np.asarray(ts, dtype=np.float64))

        if self.interpolation == STEP:
            idx = np.clip(
                np.searchsorted(self.times, ts, side="right") - 1,
                0,
                len(self.times) - 1,
            )
            return self.values[idx]

        i0, i1, alpha = _bracket(self.times, ts)
        if rotation:
            return nlerp(self.values[i0], self.values[i1], alpha)
        return lerp(self.values[i0], self.values[i1], alpha)


@dataclass
class NodeTracks:
    tracks: Dict[str, Track] = field(default_factory=dict)

    def get(self, path: str) -> Optional[Track]:
        return self.tracks.get(path)


def read_track(
    decoder: AccessorDecoder, sampler: AnimationSampler, path: str
) -> Optional[Track]:
    """
    Keyframes for a channel. CUBICSPLINE outputs carry in/out tangents
    around every value; only the values are kept and blended linearly.
    """
    width = PATH_WIDTHS[path]
    times = decoder.read_scalars(sampler.input).astype(np.float64)
    values = decoder.read_floats(sampler.output, width).astype(np.float64)

    if sampler.interpolation == CUBICSPLINE:
        values = values[1::3]

    count = min(len(times), len(values))
    if count == 0:
        return None
    if len(times) != len(values):
        logger.debug(
            "Sampler has %d times and %d values, using %d keyframes",
            len(times),
            len(values),
            count,
        )

    return Track(
        times=times[:count],
        values=values[:count],
        interpolation=sampler.interpolation,
    )
