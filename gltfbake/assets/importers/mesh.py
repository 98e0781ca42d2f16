# gltfbake/assets/importers/mesh.py
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import numpy as np

from gltfbake.assets.errors import (
    AssetFormatError,
    BoundsError,
    MeshNotFoundError,
    MissingPositionError,
)
from gltfbake.assets.gltf.accessor import AccessorDecoder
from gltfbake.assets.gltf.document import (
    MODE_TRIANGLE_FAN,
    MODE_TRIANGLE_STRIP,
    MODE_TRIANGLES,
    GltfDocument,
    Primitive,
)
from gltfbake.assets.importers.base import AssetImporter
from gltfbake.assets.paths import AssetPath
from gltfbake.assets.types import DEFAULT_WEIGHT, MeshData
from gltfbake.types import BoundingBox3D, Vector3

logger = logging.getLogger(__name__)

# Assets authored inside [0, 1]^3 are shifted to be centered on the origin.
UNIT_CUBE_MIN = -0.001
UNIT_CUBE_MAX = 1.001
UNIT_CUBE_OFFSET = 0.5

DEGENERATE_EDGE = 1e-6

_TRIANGLE_MODES = (MODE_TRIANGLES, MODE_TRIANGLE_STRIP, MODE_TRIANGLE_FAN)


@dataclass
class _Part:
    positions: np.ndarray
    normals: np.ndarray
    uvs: Optional[np.ndarray]
    colors: Optional[np.ndarray]
    joints: np.ndarray
    weights: np.ndarray


class GltfMeshImporter(AssetImporter[MeshData]):
    """
    Turns the selected meshes of a glTF file into one flat, non-indexed
    triangle list. Shared vertices are duplicated per triangle.
    """

    extensions = (".gltf", ".glb")

    def import_file(
        self, path: Path | str, selectors: Sequence[str] = ()
    ) -> MeshData:
        document = GltfDocument.load(path)
        return self.extract_document(document, selectors)

    def extract(self, path: str) -> MeshData:
        """`path`, `path#mesh` or `path#mesh_a#mesh_b`."""
        parsed = AssetPath.parse(path)
        return self.import_file(parsed.file, parsed.selectors)

    def extract_document(
        self, document: GltfDocument, selectors: Sequence[str] = ()
    ) -> MeshData:
        decoder = AccessorDecoder(document)

        parts: List[_Part] = []
        for mesh_index in self._resolve_meshes(document, selectors):
            mesh = document.meshes[mesh_index]
            for prim_index, primitive in enumerate(mesh.primitives):
                label = f"{document.path} mesh {mesh_index} primitive {prim_index}"
                part = self._expand_primitive(decoder, primitive, label)
                if part is not None:
                    parts.append(part)

        if not parts:
            raise MissingPositionError(
                f"No selected primitive in {document.path} has POSITION"
            )

        return _merge(parts)

    def _resolve_meshes(
        self, document: GltfDocument, selectors: Sequence[str]
    ) -> List[int]:
        if not selectors:
            return list(range(len(document.meshes)))

        resolved = []
        for selector in selectors:
            index = _find_mesh(document, selector)
            if index is None:
                raise MeshNotFoundError(selector, str(document.path))
            resolved.append(index)
        return resolved

    def _expand_primitive(
        self, decoder: AccessorDecoder, primitive: Primitive, label: str
    ) -> Optional[_Part]:
        if primitive.mode not in _TRIANGLE_MODES:
            logger.warning("Skipping %s: mode %d is not triangles", label, primitive.mode)
            return None

        attrs = primitive.attributes
        if "POSITION" not in attrs:
            logger.debug("Skipping %s: no POSITION", label)
            return None

        positions = decoder.read_floats(attrs["POSITION"], 3)
        count = len(positions)

        normals = _optional(decoder, attrs, "NORMAL", 3, count)
        uvs = _optional(decoder, attrs, "TEXCOORD_0", 2, count)
        colors = _optional(decoder, attrs, "COLOR_0", 4, count, allow_fewer=True)
        if colors is not None and colors.shape[1] == 3:
            colors = np.hstack([colors, np.ones((count, 1), dtype=np.float32)])

        if "JOINTS_0" in attrs and "WEIGHTS_0" in attrs:
            joints = decoder.read_uints(attrs["JOINTS_0"])
            weights = decoder.read_floats(attrs["WEIGHTS_0"], 4)
            if joints.ndim != 2 or joints.shape != (count, 4) or len(weights) != count:
                raise AssetFormatError(f"{label}: JOINTS_0/WEIGHTS_0 do not match POSITION")
        else:
            joints = np.zeros((count, 4), dtype=np.uint32)
            weights = np.tile(np.array(DEFAULT_WEIGHT, dtype=np.float32), (count, 1))

        if primitive.indices is not None:
            indices = decoder.read_uints(primitive.indices)
            if indices.ndim != 1:
                raise AssetFormatError(f"{label}: index accessor must be SCALAR")
        else:
            indices = np.arange(count, dtype=np.uint32)

        indices = _triangulate(indices, primitive.mode, label)
        if len(indices) and int(indices.max()) >= count:
            raise BoundsError(
                f"{label}: index {int(indices.max())} out of range for {count} vertices"
            )

        out_positions = positions[indices]
        if normals is not None:
            out_normals = normals[indices]
        else:
            out_normals = flat_normals(out_positions)

        return _Part(
            positions=out_positions,
            normals=out_normals,
            uvs=uvs[indices] if uvs is not None else None,
            colors=colors[indices] if colors is not None else None,
            joints=joints[indices],
            weights=weights[indices],
        )


def _find_mesh(document: GltfDocument, selector: str) -> Optional[int]:
    for i, mesh in enumerate(document.meshes):
        if mesh.name == selector:
            return i

    for node in document.nodes:
        if node.name == selector and node.mesh is not None:
            if not 0 <= node.mesh < len(document.meshes):
                raise AssetFormatError(
                    f"Node '{node.name}' references missing mesh {node.mesh}"
                )
            return node.mesh

    return None


def _optional(
    decoder: AccessorDecoder,
    attrs,
    name: str,
    components: int,
    count: int,
    allow_fewer: bool = False,
) -> Optional[np.ndarray]:
    if name not in attrs:
        return None
    values = decoder.read_floats(attrs[name], components, allow_fewer=allow_fewer)
    if len(values) != count:
        raise AssetFormatError(
            f"{name} has {len(values)} entries, POSITION has {count}"
        )
    return values


def _triangulate(indices: np.ndarray, mode: int, label: str) -> np.ndarray:
    """Index list for a plain triangle list."""
    n = len(indices)

    if mode == MODE_TRIANGLE_STRIP:
        if n < 3:
            return indices[:0]
        i = np.arange(n - 2)
        odd = i % 2
        tris = np.stack([i, i + 1 + odd, i + 2 - odd], axis=1)
        return indices[tris.reshape(-1)]

    if mode == MODE_TRIANGLE_FAN:
        if n < 3:
            return indices[:0]
        i = np.arange(n - 2)
        tris = np.stack([i + 1, i + 2, np.zeros_like(i)], axis=1)
        return indices[tris.reshape(-1)]

    remainder = n % 3
    if remainder:
        logger.warning(
            "%s: dropping %d trailing vertices of an incomplete triangle",
            label,
            remainder,
        )
        indices = indices[: n - remainder]
    return indices


def flat_normals(positions: np.ndarray) -> np.ndarray:
    """
    One normal per triangle from the cross product of its first two edges,
    repeated for each of its three vertices. Degenerate triangles keep a
    zero normal.
    """
    tris = positions.reshape(-1, 3, 3).astype(np.float64)
    e1 = tris[:, 1] - tris[:, 0]
    e2 = tris[:, 2] - tris[:, 0]
    n = np.cross(e1, e2)

    length = np.linalg.norm(n, axis=1, keepdims=True)
    ok = length > DEGENERATE_EDGE
    n = np.where(ok, n / np.where(ok, length, 1.0), 0.0)

    return np.repeat(n, 3, axis=0).astype(np.float32)


def center_unit_cube(positions: np.ndarray) -> np.ndarray:
    """Shift [0, 1]^3 authored meshes so they are centered on the origin."""
    if len(positions) == 0:
        return positions

    box = BoundingBox3D(
        Vector3.from_sequence(positions.min(axis=0).tolist()),
        Vector3.from_sequence(positions.max(axis=0).tolist()),
    )
    if box.within(UNIT_CUBE_MIN, UNIT_CUBE_MAX):
        return (positions - np.float32(UNIT_CUBE_OFFSET)).astype(np.float32)
    return positions


def _merge(parts: List[_Part]) -> MeshData:
    any_uv = any(p.uvs is not None for p in parts)
    any_color = any(p.colors is not None for p in parts)

    positions = np.concatenate([p.positions for p in parts]).astype(np.float32)

    uvs = None
    if any_uv:
        uvs = np.concatenate(
            [
                p.uvs if p.uvs is not None
                else np.zeros((len(p.positions), 2), dtype=np.float32)
                for p in parts
            ]
        )

    colors = None
    if any_color:
        colors = np.concatenate(
            [
                p.colors if p.colors is not None
                else np.ones((len(p.positions), 4), dtype=np.float32)
                for p in parts
            ]
        )

    return MeshData(
        positions=center_unit_cube(positions),
        normals=np.concatenate([p.normals for p in parts]).astype(np.float32),
        uvs=uvs.astype(np.float32) if uvs is not None else np.zeros((0, 2), np.float32),
        colors=colors.astype(np.float32) if colors is not None else np.zeros((0, 4), np.float32),
        joints=np.concatenate([p.joints for p in parts]).astype(np.uint32),
        weights=np.concatenate([p.weights for p in parts]).astype(np.float32),
    )
