# gltfbake/assets/types.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, List, Optional, Tuple, TypeVar

import numpy as np

from gltfbake.types import BoundingBox3D, Vector3

T = TypeVar("T")

DEFAULT_WEIGHT = (1.0, 0.0, 0.0, 0.0)


@dataclass(frozen=True)
class VertexLayout:
    """Describes vertex attributes for VAO creation."""

    attributes: List[str]  # e.g. ["in_pos", "in_normal", "in_uv"]
    format: str  # moderngl buffer format string e.g. "3f 3f 2f"
    stride_bytes: int  # e.g. 32


SKINNED_LAYOUT = VertexLayout(
    attributes=[
        "in_pos",
        "in_normal",
        "in_uv",
        "in_color",
        "in_joints",
        "in_weights",
    ],
    format="3f 3f 2f 4f 4u 4f",
    stride_bytes=80,
)

_interleaved_dtype = np.dtype(
    [
        ("pos", "<f4", 3),
        ("normal", "<f4", 3),
        ("uv", "<f4", 2),
        ("color", "<f4", 4),
        ("joints", "<u4", 4),
        ("weights", "<f4", 4),
    ]
)


_FIELD_DTYPES = (
    ("positions", np.float32),
    ("normals", np.float32),
    ("uvs", np.float32),
    ("colors", np.float32),
    ("joints", np.uint32),
    ("weights", np.float32),
)


def _empty(width: int, dtype=np.float32) -> np.ndarray:
    return np.zeros((0, width), dtype=dtype)


@dataclass(frozen=True, eq=False)
class MeshData:
    """
    Flat, non-indexed triangle list ready for GPU upload.
    uvs and colors are empty arrays when the source had none.
    """

    positions: np.ndarray  # (N, 3) float32
    normals: np.ndarray  # (N, 3) float32
    uvs: np.ndarray = field(default_factory=lambda: _empty(2))  # (N, 2) or (0, 2)
    colors: np.ndarray = field(default_factory=lambda: _empty(4))  # (N, 4) or (0, 4)
    joints: Optional[np.ndarray] = None  # (N, 4) uint32
    weights: Optional[np.ndarray] = None  # (N, 4) float32

    def __post_init__(self) -> None:
        for name, dtype in _FIELD_DTYPES:
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(
                    self, name, np.ascontiguousarray(value, dtype=dtype)
                )

        count = len(self.positions)
        if self.joints is None:
            object.__setattr__(
                self, "joints", np.zeros((count, 4), dtype=np.uint32)
            )
        if self.weights is None:
            object.__setattr__(
                self,
                "weights",
                np.tile(np.array(DEFAULT_WEIGHT, dtype=np.float32), (count, 1)),
            )

        if count % 3 != 0:
            raise ValueError(f"Vertex count {count} is not a triangle list")

        for name, width in (
            ("positions", 3),
            ("normals", 3),
            ("uvs", 2),
            ("colors", 4),
            ("joints", 4),
            ("weights", 4),
        ):
            arr = getattr(self, name)
            if arr.ndim != 2 or arr.shape[1] != width:
                raise ValueError(f"{name} must be (N, {width}), got {arr.shape}")
            if len(arr) not in (0, count) or (
                name in ("normals", "joints", "weights") and len(arr) != count
            ):
                raise ValueError(
                    f"{name} has {len(arr)} entries for {count} vertices"
                )

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def has_uv(self) -> bool:
        return len(self.uvs) > 0

    @property
    def has_colors(self) -> bool:
        return len(self.colors) > 0

    @property
    def has_default_skin(self) -> bool:
        """Every vertex bound to joint 0 with full weight."""
        return bool(
            not self.joints.any()
            and np.array_equal(
                self.weights,
                np.broadcast_to(
                    np.array(DEFAULT_WEIGHT, dtype=np.float32), self.weights.shape
                ),
            )
        )

    @property
    def aabb(self) -> BoundingBox3D:
        if self.vertex_count == 0:
            return BoundingBox3D(Vector3.zero(), Vector3.zero())
        lo = self.positions.min(axis=0)
        hi = self.positions.max(axis=0)
        return BoundingBox3D(
            Vector3.from_sequence(lo.tolist()), Vector3.from_sequence(hi.tolist())
        )

    def interleave(self) -> Tuple[bytes, VertexLayout]:
        """Pack all attributes into one vertex blob (see SKINNED_LAYOUT)."""
        out = np.zeros(self.vertex_count, dtype=_interleaved_dtype)
        out["pos"] = self.positions
        out["normal"] = self.normals
        if self.has_uv:
            out["uv"] = self.uvs
        out["color"] = self.colors if self.has_colors else 1.0
        out["joints"] = self.joints
        out["weights"] = self.weights
        return out.tobytes(), SKINNED_LAYOUT

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MeshData):
            return NotImplemented
        # Bit-for-bit, so NaN payloads compare equal to themselves
        for name in ("positions", "normals", "uvs", "colors", "joints", "weights"):
            a = getattr(self, name)
            b = getattr(other, name)
            if a.shape != b.shape or a.dtype != b.dtype:
                return False
            if a.tobytes() != b.tobytes():
                return False
        return True


@dataclass(frozen=True)
class AnimationClip:
    name: str
    duration: float


@dataclass(frozen=True)
class AnimationLibrary:
    """Clip metadata for one animation file, without any baking."""

    path: str
    clips: Tuple[AnimationClip, ...]

    def names(self) -> List[str]:
        return [c.name for c in self.clips]

    def find(self, name: str) -> Optional[AnimationClip]:
        for clip in self.clips:
            if clip.name == name:
                return clip
        return None


@dataclass(frozen=True, eq=False)
class SkinDefinition:
    joints: Tuple[int, ...]
    inverse_bind_matrices: np.ndarray  # (len(joints), 4, 4)

    @property
    def joint_count(self) -> int:
        return len(self.joints)


@dataclass(frozen=True, eq=False)
class BakedSkinningFrames:
    """
    Per-frame joint palettes. `matrices` is flat float32 of
    frame_count * joint_count * 16, each matrix column-major.
    """

    joint_count: int
    frame_count: int
    duration: float
    sample_rate: float
    matrices: np.ndarray

    def palette(self, frame: int) -> np.ndarray:
        """Flat column-major floats for every joint of one frame."""
        if not 0 <= frame < self.frame_count:
            raise IndexError(frame)
        size = self.joint_count * 16
        return self.matrices[frame * size : (frame + 1) * size]

    def joint_matrix(self, frame: int, joint: int) -> np.ndarray:
        """One joint matrix as a regular (4, 4) array."""
        if not 0 <= joint < self.joint_count:
            raise IndexError(joint)
        start = (frame * self.joint_count + joint) * 16
        if not 0 <= frame < self.frame_count:
            raise IndexError(frame)
        return self.matrices[start : start + 16].reshape(4, 4).T


@dataclass(frozen=True)
class LoadResult(Generic[T]):
    """Outcome handed to renderer/catalog code: a flag plus a message."""

    ok: bool
    message: str = ""
    value: Optional[T] = None

    @staticmethod
    def success(value: T, message: str = "") -> LoadResult[T]:
        return LoadResult(True, message, value)

    @staticmethod
    def failure(message: str) -> LoadResult[T]:
        return LoadResult(False, message, None)

    def __bool__(self) -> bool:
        return self.ok
