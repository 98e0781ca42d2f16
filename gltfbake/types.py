# gltfbake/types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Sequence, TypeAlias

import numpy as np

Scalar: TypeAlias = float

# 4x4 float matrix, row-major in memory, applied to column vectors.
Mat4: TypeAlias = np.ndarray


@dataclass(frozen=True, slots=True)
class Vector3:
    x: Scalar
    y: Scalar
    z: Scalar

    @staticmethod
    def zero() -> Vector3:
        return Vector3(0.0, 0.0, 0.0)

    @staticmethod
    def one() -> Vector3:
        return Vector3(1.0, 1.0, 1.0)

    @staticmethod
    def from_sequence(values: Sequence[float]) -> Vector3:
        if len(values) != 3:
            raise ValueError(f"Vector3 needs 3 components, got {len(values)}")
        return Vector3(float(values[0]), float(values[1]), float(values[2]))

    def __iter__(self) -> Iterator[Scalar]:
        yield self.x
        yield self.y
        yield self.z

    def __len__(self) -> int:
        return 3


@dataclass(frozen=True, slots=True)
class Quaternion:
    x: Scalar
    y: Scalar
    z: Scalar
    w: Scalar

    def __iter__(self) -> Iterator[Scalar]:
        yield self.x
        yield self.y
        yield self.z
        yield self.w

    @staticmethod
    def identity() -> Quaternion:
        return Quaternion(0.0, 0.0, 0.0, 1.0)

    @staticmethod
    def from_sequence(values: Sequence[float]) -> Quaternion:
        """glTF order: (x, y, z, w)."""
        if len(values) != 4:
            raise ValueError(
                f"Quaternion needs 4 components, got {len(values)}"
            )
        return Quaternion(
            float(values[0]),
            float(values[1]),
            float(values[2]),
            float(values[3]),
        )

    def dot(self, other: Quaternion) -> Scalar:
        return (
            self.x * other.x
            + self.y * other.y
            + self.z * other.z
            + self.w * other.w
        )

    def normalized(self) -> Quaternion:
        n = self.dot(self) ** 0.5
        if n == 0.0:
            return Quaternion(0.0, 0.0, 0.0, 1.0)
        inv = 1.0 / n
        return Quaternion(
            self.x * inv,
            self.y * inv,
            self.z * inv,
            self.w * inv,
        )


@dataclass(frozen=True, slots=True)
class BoundingBox3D:
    min: Vector3
    max: Vector3

    def within(self, low: float, high: float) -> bool:
        """True when every corner coordinate lies in [low, high]."""
        return all(low <= c <= high for c in (*self.min, *self.max))
