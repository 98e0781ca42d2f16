# gltfbake/math.py
from typing import Sequence

import numpy as np

from gltfbake.types import Mat4, Quaternion, Vector3


def batch_transform_to_matrix(
    pos: np.ndarray,
    rot: np.ndarray,
    scale: np.ndarray,
    dtype=np.float64,
) -> np.ndarray:
    """
    Vectorized calculation of T * R * S local matrices.
    pos: (N, 3)
    rot: (N, 4) - Quaternions (x, y, z, w)
    scale: (N, 3)
    Returns: (N, 4, 4)
    """
    N = len(pos)

    # 1. Rotation Matrix from Quaternion (Vectorized)
    x, y, z, w = rot[:, 0], rot[:, 1], rot[:, 2], rot[:, 3]

    xx, yy, zz = x * x, y * y, z * z
    xy, xz, yz = x * y, x * z, y * z
    wx, wy, wz = w * x, w * y, w * z

    R = np.zeros((N, 3, 3), dtype=dtype)

    R[:, 0, 0] = 1.0 - 2.0 * (yy + zz)
    R[:, 0, 1] = 2.0 * (xy - wz)
    R[:, 0, 2] = 2.0 * (xz + wy)

    R[:, 1, 0] = 2.0 * (xy + wz)
    R[:, 1, 1] = 1.0 - 2.0 * (xx + zz)
    R[:, 1, 2] = 2.0 * (yz - wx)

    R[:, 2, 0] = 2.0 * (xz - wy)
    R[:, 2, 1] = 2.0 * (yz + wx)
    R[:, 2, 2] = 1.0 - 2.0 * (xx + yy)

    # 2. Build 4x4 Matrices
    M = np.eye(4, dtype=dtype).reshape(1, 4, 4).repeat(N, axis=0)

    # Scale is diagonal, so R * S scales the columns of R
    M[:, :3, 0] = R[:, :3, 0] * scale[:, 0, None]
    M[:, :3, 1] = R[:, :3, 1] * scale[:, 1, None]
    M[:, :3, 2] = R[:, :3, 2] * scale[:, 2, None]

    M[:, :3, 3] = pos

    return M


def compose_trs(
    translation: Vector3, rotation: Quaternion, scale: Vector3
) -> Mat4:
    """Single local matrix, T * R * S."""
    q = rotation.normalized()
    return batch_transform_to_matrix(
        np.array([tuple(translation)], dtype=np.float64),
        np.array([tuple(q)], dtype=np.float64),
        np.array([tuple(scale)], dtype=np.float64),
    )[0]


def matrix_from_column_major(values: Sequence[float]) -> Mat4:
    """glTF stores matrices as 16 column-major floats."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size != 16:
        raise ValueError(f"matrix needs 16 values, got {arr.size}")
    return arr.reshape(4, 4).T.copy()


def lerp(a: np.ndarray, b: np.ndarray, t: np.ndarray) -> np.ndarray:
    t = np.asarray(t)[..., None]
    return a + (b - a) * t


def nlerp(a: np.ndarray, b: np.ndarray, t) -> np.ndarray:
    """
    Shortest-path normalized linear blend of quaternions (x, y, z, w).
    Works on single quaternions (4,) or batches (N, 4).
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)

    dot = np.sum(a * b, axis=-1, keepdims=True)
    b = np.where(dot < 0.0, -b, b)

    out = lerp(a, b, t)
    norm = np.linalg.norm(out, axis=-1, keepdims=True)
    # Only possible for zero-length inputs; fall back to identity
    identity = np.array([0.0, 0.0, 0.0, 1.0])
    safe = np.where(norm > 1e-12, norm, 1.0)
    return np.where(norm > 1e-12, out / safe, identity)
