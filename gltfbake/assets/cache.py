# gltfbake/assets/cache.py
import logging
import os
import struct
import tempfile
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

from gltfbake.assets.handle import fnv1a_64
from gltfbake.assets.types import MeshData

logger = logging.getLogger(__name__)

CACHE_MAGIC = 0x4853454D  # "MESH" little-endian
CACHE_VERSION = 1
CACHE_SUFFIX = ".mesh"

_header = struct.Struct("<III")
_count = struct.Struct("<I")


class _Truncated(Exception):
    pass


class MeshCache:
    """
    Content-addressed on-disk store for extracted meshes.

    Record layout (little-endian):
        [magic u32][version u32][has_uv u32]
        [positions][normals][uvs][colors]
    each array being [count u32][count float32]. Meshes with a non-default
    skin binding append [joints: count u32 + u32s][weights: count u32 + f32s].

    Bumping CACHE_VERSION invalidates every existing entry: a record with a
    different magic or version reads as a miss.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    @staticmethod
    def key_for(path: str) -> int:
        """64-bit FNV-1a of the resolved asset path (selectors included)."""
        return fnv1a_64(path.encode("utf-8"))

    def path_for(self, key: int) -> Path:
        return self.directory / f"{key:016x}{CACHE_SUFFIX}"

    def get(self, key: int) -> Optional[MeshData]:
        """Cached mesh, or None on a miss."""
        path = self.path_for(key)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.debug("Mesh cache read failed for %s: %s", path, exc)
            return None

        mesh = decode_mesh(data)
        if mesh is None:
            logger.debug("Stale or corrupt mesh cache entry %s", path)
        return mesh

    def put(self, key: int, mesh: MeshData) -> bool:
        """Write an entry. Failures are logged and reported, never raised."""
        payload = encode_mesh(mesh)
        target = self.path_for(key)
        tmp_name = None
        try:
            self._ensure_directory()
            with tempfile.NamedTemporaryFile(
                dir=self.directory, suffix=".tmp", delete=False
            ) as f:
                tmp_name = f.name
                f.write(payload)
            os.replace(tmp_name, target)
        except OSError as exc:
            logger.warning("Could not write mesh cache %s: %s", target, exc)
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass
            return False
        return True

    def invalidate(self, key: int) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            pass

    def _ensure_directory(self) -> None:
        # One segment at a time; a segment that already exists is fine.
        for segment in [*reversed(self.directory.parents), self.directory]:
            if segment.is_dir():
                continue
            try:
                segment.mkdir()
            except FileExistsError:
                pass


def _pack_array(arr: np.ndarray, dtype: str) -> bytes:
    flat = np.ascontiguousarray(arr, dtype=dtype).reshape(-1)
    return _count.pack(flat.size) + flat.tobytes()


def encode_mesh(mesh: MeshData) -> bytes:
    chunks = [_header.pack(CACHE_MAGIC, CACHE_VERSION, 1 if mesh.has_uv else 0)]
    for arr in (mesh.positions, mesh.normals, mesh.uvs, mesh.colors):
        chunks.append(_pack_array(arr, "<f4"))
    if not mesh.has_default_skin:
        chunks.append(_pack_array(mesh.joints, "<u4"))
        chunks.append(_pack_array(mesh.weights, "<f4"))
    return b"".join(chunks)


def _read_array(data: bytes, offset: int, dtype: str) -> Tuple[np.ndarray, int]:
    if offset + _count.size > len(data):
        raise _Truncated()
    (count,) = _count.unpack_from(data, offset)
    offset += _count.size
    end = offset + count * 4
    if end > len(data):
        raise _Truncated()
    arr = np.frombuffer(data, dtype=dtype, count=count, offset=offset)
    return arr.astype(np.dtype(dtype).newbyteorder("=")), end


def decode_mesh(data: bytes) -> Optional[MeshData]:
    """Parse a cache record; None when it is stale, foreign or damaged."""
    if len(data) < _header.size:
        return None
    magic, version, has_uv = _header.unpack_from(data, 0)
    if magic != CACHE_MAGIC or version != CACHE_VERSION:
        return None

    try:
        offset = _header.size
        positions, offset = _read_array(data, offset, "<f4")
        normals, offset = _read_array(data, offset, "<f4")
        uvs, offset = _read_array(data, offset, "<f4")
        colors, offset = _read_array(data, offset, "<f4")

        joints = weights = None
        if offset < len(data):
            joints, offset = _read_array(data, offset, "<u4")
            weights, offset = _read_array(data, offset, "<f4")
        if offset != len(data):
            return None

        return MeshData(
            positions=positions.reshape(-1, 3),
            normals=normals.reshape(-1, 3),
            uvs=uvs.reshape(-1, 2) if has_uv else np.zeros((0, 2), np.float32),
            colors=colors.reshape(-1, 4),
            joints=joints.reshape(-1, 4) if joints is not None else None,
            weights=weights.reshape(-1, 4) if weights is not None else None,
        )
    except (_Truncated, ValueError):
        return None
