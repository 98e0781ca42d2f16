# gltfbake/assets/gltf/document.py
from __future__ import annotations

import base64
import json
import logging
import struct
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, unquote_to_bytes

import numpy as np

from gltfbake.assets.errors import AssetFormatError, AssetIOError
from gltfbake.math import compose_trs, matrix_from_column_major
from gltfbake.types import Quaternion, Vector3

logger = logging.getLogger(__name__)

GLB_MAGIC = 0x46546C67  # "glTF"
GLB_VERSION = 2
CHUNK_JSON = 0x4E4F534A
CHUNK_BIN = 0x004E4942

_glb_header = struct.Struct("<III")
_chunk_header = struct.Struct("<II")

# Primitive topology
MODE_POINTS = 0
MODE_LINES = 1
MODE_LINE_LOOP = 2
MODE_LINE_STRIP = 3
MODE_TRIANGLES = 4
MODE_TRIANGLE_STRIP = 5
MODE_TRIANGLE_FAN = 6


@dataclass(frozen=True, slots=True)
class BufferView:
    buffer: int
    byte_offset: int
    byte_length: int
    byte_stride: int = 0  # 0 = tightly packed


@dataclass(frozen=True, slots=True)
class Accessor:
    buffer_view: Optional[int]
    byte_offset: int
    component_type: int
    type: str  # SCALAR | VEC2 | VEC3 | VEC4 | MAT4
    count: int
    normalized: bool = False


@dataclass(frozen=True, slots=True)
class Primitive:
    attributes: Dict[str, int]
    indices: Optional[int] = None
    mode: int = MODE_TRIANGLES


@dataclass(frozen=True, slots=True)
class MeshDef:
    name: str
    primitives: Tuple[Primitive, ...]


@dataclass(frozen=True, slots=True)
class Node:
    name: str
    children: Tuple[int, ...] = ()
    mesh: Optional[int] = None
    skin: Optional[int] = None
    matrix: Optional[Tuple[float, ...]] = None  # 16 floats, column-major
    translation: Vector3 = field(default_factory=Vector3.zero)
    rotation: Quaternion = field(default_factory=Quaternion.identity)
    scale: Vector3 = field(default_factory=Vector3.one)

    @property
    def has_matrix(self) -> bool:
        return self.matrix is not None

    def local_matrix(self) -> np.ndarray:
        """Explicit matrix if present, else T * R * S."""
        if self.matrix is not None:
            return matrix_from_column_major(self.matrix)
        return compose_trs(self.translation, self.rotation, self.scale)


@dataclass(frozen=True, slots=True)
class Skin:
    name: str
    joints: Tuple[int, ...]
    inverse_bind_matrices: Optional[int] = None


@dataclass(frozen=True, slots=True)
class AnimationSampler:
    input: int
    output: int
    interpolation: str = "LINEAR"


@dataclass(frozen=True, slots=True)
class AnimationChannel:
    sampler: int
    node: Optional[int]
    path: str  # translation | rotation | scale | weights


@dataclass(frozen=True, slots=True)
class Animation:
    name: str
    channels: Tuple[AnimationChannel, ...]
    samplers: Tuple[AnimationSampler, ...]


class GltfDocument:
    """
    A parsed glTF 2.0 asset: the JSON scene description plus its binary
    buffers, resolved and loaded into memory.
    """

    def __init__(
        self,
        path: Path,
        document: Dict[str, Any],
        buffers: List[bytes],
    ) -> None:
        self.path = path
        self.json = document
        self.buffers = buffers

        try:
            self.buffer_views = [
                _parse_buffer_view(v) for v in document.get("bufferViews", [])
            ]
            self.accessors = [
                _parse_accessor(a) for a in document.get("accessors", [])
            ]
            self.meshes = [
                _parse_mesh(m) for m in document.get("meshes", [])
            ]
            self.nodes = [
                _parse_node(i, n) for i, n in enumerate(document.get("nodes", []))
            ]
            self.skins = [
                _parse_skin(i, s) for i, s in enumerate(document.get("skins", []))
            ]
            self.animations = [
                _parse_animation(a) for a in document.get("animations", [])
            ]
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise AssetFormatError(f"Malformed glTF {path}: {exc!r}") from exc

    @classmethod
    def load(cls, path: Path | str) -> GltfDocument:
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise AssetIOError(f"Could not read {path}: {exc}") from exc

        if data[:4] == b"glTF":
            document, bin_chunk = _split_glb(path, data)
        else:
            document, bin_chunk = _decode_json(path, data), None

        buffers = _load_buffers(path, document, bin_chunk)
        _check_images(path, document)
        return cls(path, document, buffers)

    def accessor(self, index: int) -> Accessor:
        if not 0 <= index < len(self.accessors):
            raise AssetFormatError(
                f"Accessor {index} out of range ({len(self.accessors)})"
            )
        return self.accessors[index]

    def buffer_view(self, index: int) -> BufferView:
        if not 0 <= index < len(self.buffer_views):
            raise AssetFormatError(
                f"BufferView {index} out of range ({len(self.buffer_views)})"
            )
        return self.buffer_views[index]

    def buffer(self, index: int) -> bytes:
        if not 0 <= index < len(self.buffers):
            raise AssetFormatError(
                f"Buffer {index} out of range ({len(self.buffers)})"
            )
        return self.buffers[index]

    def node_names(self) -> List[str]:
        return [n.name for n in self.nodes]

    def __repr__(self) -> str:
        return (
            f"GltfDocument({self.path}, meshes={len(self.meshes)}, "
            f"nodes={len(self.nodes)}, animations={len(self.animations)})"
        )


# -- Container --


def _decode_json(path: Path, raw: bytes) -> Dict[str, Any]:
    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise AssetFormatError(f"Invalid glTF JSON in {path}: {exc}") from exc

    if not isinstance(document, dict):
        raise AssetFormatError(f"glTF root of {path} is not an object")
    return document


def _split_glb(path: Path, data: bytes) -> Tuple[Dict[str, Any], Optional[bytes]]:
    """
    Format: [magic][version][length] then chunks of [length][type][payload].
    The first chunk must be JSON; the first BIN chunk backs buffer 0.
    """
    if len(data) < _glb_header.size:
        raise AssetFormatError(f"Truncated GLB header in {path}")

    magic, version, length = _glb_header.unpack_from(data, 0)
    if magic != GLB_MAGIC:
        raise AssetFormatError(f"Bad GLB magic in {path}")
    if version != GLB_VERSION:
        raise AssetFormatError(f"Unsupported GLB version {version} in {path}")
    if length > len(data):
        raise AssetFormatError(
            f"GLB {path} declares {length} bytes but has {len(data)}"
        )

    document: Optional[Dict[str, Any]] = None
    bin_chunk: Optional[bytes] = None

    offset = _glb_header.size
    while offset + _chunk_header.size <= length:
        chunk_length, chunk_type = _chunk_header.unpack_from(data, offset)
        start = offset + _chunk_header.size
        end = start + chunk_length
        if end > length:
            raise AssetFormatError(f"GLB chunk overruns file in {path}")

        if document is None:
            if chunk_type != CHUNK_JSON:
                raise AssetFormatError(f"First GLB chunk is not JSON in {path}")
            document = _decode_json(path, data[start:end])
        elif chunk_type == CHUNK_BIN and bin_chunk is None:
            bin_chunk = data[start:end]
        # Unknown chunk types must be ignored

        offset = end

    if document is None:
        raise AssetFormatError(f"GLB {path} has no JSON chunk")
    return document, bin_chunk


def _decode_data_uri(uri: str) -> bytes:
    header, sep, payload = uri.partition(",")
    if not sep:
        raise AssetFormatError(f"Malformed data URI: {uri[:32]}...")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except ValueError as exc:
            raise AssetFormatError(f"Bad base64 data URI: {exc}") from exc
    return unquote_to_bytes(payload)


def _resolve_uri(path: Path, uri: str) -> Path:
    target = Path(unquote(uri))
    if target.is_absolute():
        return target
    return path.parent / target


def _load_buffers(
    path: Path, document: Dict[str, Any], bin_chunk: Optional[bytes]
) -> List[bytes]:
    buffers: List[bytes] = []

    for i, desc in enumerate(document.get("buffers", [])):
        uri = desc.get("uri")
        if uri is None:
            if i != 0 or bin_chunk is None:
                raise AssetFormatError(
                    f"Buffer {i} in {path} has no uri and no GLB BIN chunk"
                )
            data = bin_chunk
        elif uri.startswith("data:"):
            data = _decode_data_uri(uri)
        else:
            target = _resolve_uri(path, uri)
            try:
                data = target.read_bytes()
            except OSError as exc:
                raise AssetIOError(
                    f"Could not read buffer '{uri}' referenced by {path}: {exc}"
                ) from exc

        declared = int(desc.get("byteLength", len(data)))
        if len(data) < declared:
            logger.warning(
                "Buffer %d in %s is %d bytes, declared %d",
                i,
                path,
                len(data),
                declared,
            )
        buffers.append(data)

    return buffers


def _check_images(path: Path, document: Dict[str, Any]) -> None:
    # Pixels are the renderer's business; a dangling file reference is still
    # a broken asset.
    for image in document.get("images", []):
        uri = image.get("uri")
        if not uri or uri.startswith("data:"):
            continue
        target = _resolve_uri(path, uri)
        if not target.is_file():
            raise AssetIOError(
                f"Image '{uri}' referenced by {path} not found at {target}"
            )


# -- Scene description --


def _parse_buffer_view(d: Dict[str, Any]) -> BufferView:
    return BufferView(
        buffer=int(d["buffer"]),
        byte_offset=int(d.get("byteOffset", 0)),
        byte_length=int(d["byteLength"]),
        byte_stride=int(d.get("byteStride", 0)),
    )


def _parse_accessor(d: Dict[str, Any]) -> Accessor:
    view = d.get("bufferView")
    return Accessor(
        buffer_view=int(view) if view is not None else None,
        byte_offset=int(d.get("byteOffset", 0)),
        component_type=int(d["componentType"]),
        type=str(d["type"]),
        count=int(d["count"]),
        normalized=bool(d.get("normalized", False)),
    )


def _parse_mesh(d: Dict[str, Any]) -> MeshDef:
    primitives = []
    for p in d.get("primitives", []):
        indices = p.get("indices")
        primitives.append(
            Primitive(
                attributes={str(k): int(v) for k, v in p["attributes"].items()},
                indices=int(indices) if indices is not None else None,
                mode=int(p.get("mode", MODE_TRIANGLES)),
            )
        )
    return MeshDef(name=d.get("name", ""), primitives=tuple(primitives))


def _parse_node(index: int, d: Dict[str, Any]) -> Node:
    matrix = d.get("matrix")
    if matrix is not None and len(matrix) != 16:
        raise ValueError(f"node {index} matrix has {len(matrix)} values")
    mesh = d.get("mesh")
    skin = d.get("skin")

    return Node(
        name=d.get("name", ""),
        children=tuple(int(c) for c in d.get("children", [])),
        mesh=int(mesh) if mesh is not None else None,
        skin=int(skin) if skin is not None else None,
        matrix=tuple(float(v) for v in matrix) if matrix is not None else None,
        translation=Vector3.from_sequence(d.get("translation", (0.0, 0.0, 0.0))),
        rotation=Quaternion.from_sequence(d.get("rotation", (0.0, 0.0, 0.0, 1.0))),
        scale=Vector3.from_sequence(d.get("scale", (1.0, 1.0, 1.0))),
    )


def _parse_skin(index: int, d: Dict[str, Any]) -> Skin:
    ibm = d.get("inverseBindMatrices")
    return Skin(
        name=d.get("name", f"skin_{index}"),
        joints=tuple(int(j) for j in d.get("joints", [])),
        inverse_bind_matrices=int(ibm) if ibm is not None else None,
    )


def _parse_animation(d: Dict[str, Any]) -> Animation:
    samplers = tuple(
        AnimationSampler(
            input=int(s["input"]),
            output=int(s["output"]),
            interpolation=str(s.get("interpolation", "LINEAR")),
        )
        for s in d.get("samplers", [])
    )
    channels = []
    for c in d.get("channels", []):
        target = c.get("target", {})
        node = target.get("node")
        channels.append(
            AnimationChannel(
                sampler=int(c["sampler"]),
                node=int(node) if node is not None else None,
                path=str(target.get("path", "")),
            )
        )
    return Animation(
        name=d.get("name") or "default",
        channels=tuple(channels),
        samplers=samplers,
    )
