import base64
import json
import struct
from pathlib import Path

import numpy as np
import pytest

from gltfbake.assets.gltf.accessor import (
    FLOAT,
    UNSIGNED_BYTE,
    UNSIGNED_INT,
    UNSIGNED_SHORT,
)
from gltfbake.assets.gltf.document import GltfDocument

_DTYPES = {
    FLOAT: "<f4",
    UNSIGNED_BYTE: "<u1",
    UNSIGNED_SHORT: "<u2",
    UNSIGNED_INT: "<u4",
}

_WIDTHS = {"SCALAR": 1, "VEC2": 2, "VEC3": 3, "VEC4": 4, "MAT4": 16}


class GltfBuilder:
    """Assembles small glTF assets in memory for tests."""

    def __init__(self) -> None:
        self.blob = bytearray()
        self.doc = {
            "asset": {"version": "2.0"},
            "buffers": [],
            "bufferViews": [],
            "accessors": [],
            "meshes": [],
            "nodes": [],
        }

    # -- buffers --

    def _align(self) -> None:
        while len(self.blob) % 4:
            self.blob.append(0)

    def add_view(self, data: bytes, stride: int = 0) -> int:
        self._align()
        view = {"buffer": 0, "byteOffset": len(self.blob), "byteLength": len(data)}
        if stride:
            view["byteStride"] = stride
        self.blob.extend(data)
        self.doc["bufferViews"].append(view)
        return len(self.doc["bufferViews"]) - 1

    def add_accessor(
        self,
        values,
        type="VEC3",
        component_type=FLOAT,
        stride=0,
        normalized=False,
    ) -> int:
        arr = np.asarray(values, dtype=_DTYPES[component_type])
        width = _WIDTHS[type]
        arr = arr.reshape(-1, width)
        elem = arr.dtype.itemsize * width

        if stride:
            pad = bytes(stride - elem)
            data = b"".join(row.tobytes() + pad for row in arr)
        else:
            data = arr.tobytes()

        view = self.add_view(data, stride)
        return self.add_raw_accessor(
            view, len(arr), type, component_type, normalized=normalized
        )

    def add_raw_accessor(
        self,
        view,
        count,
        type="VEC3",
        component_type=FLOAT,
        byte_offset=0,
        normalized=False,
    ) -> int:
        accessor = {
            "componentType": component_type,
            "type": type,
            "count": count,
            "byteOffset": byte_offset,
        }
        if view is not None:
            accessor["bufferView"] = view
        if normalized:
            accessor["normalized"] = True
        self.doc["accessors"].append(accessor)
        return len(self.doc["accessors"]) - 1

    # -- scene --

    def add_mesh(self, name=None, primitives=()) -> int:
        mesh = {"primitives": list(primitives)}
        if name is not None:
            mesh["name"] = name
        self.doc["meshes"].append(mesh)
        return len(self.doc["meshes"]) - 1

    def triangle_primitive(
        self, positions, indices=None, index_type=UNSIGNED_SHORT, mode=None, **attrs
    ) -> dict:
        prim = {"attributes": {"POSITION": self.add_accessor(positions, "VEC3")}}
        for name, accessor in attrs.items():
            prim["attributes"][name] = accessor
        if indices is not None:
            prim["indices"] = self.add_accessor(indices, "SCALAR", index_type)
        if mode is not None:
            prim["mode"] = mode
        return prim

    def add_node(self, name=None, **fields) -> int:
        node = dict(fields)
        if name is not None:
            node["name"] = name
        self.doc["nodes"].append(node)
        return len(self.doc["nodes"]) - 1

    def add_skin(self, joints, inverse_bind=None) -> int:
        skin = {"joints": list(joints)}
        if inverse_bind is not None:
            # column-major storage
            mats = np.asarray(inverse_bind, dtype=np.float32).transpose(0, 2, 1)
            skin["inverseBindMatrices"] = self.add_accessor(mats.reshape(-1), "MAT4")
        self.doc.setdefault("skins", []).append(skin)
        return len(self.doc["skins"]) - 1

    def add_animation(self, channels, name=None) -> int:
        """channels: (node, path, times, values[, interpolation])"""
        anim = {"channels": [], "samplers": []}
        if name is not None:
            anim["name"] = name
        for channel in channels:
            node, path, times, values = channel[:4]
            interpolation = channel[4] if len(channel) > 4 else "LINEAR"
            width = "VEC4" if path == "rotation" else "VEC3"
            anim["samplers"].append(
                {
                    "input": self.add_accessor(times, "SCALAR"),
                    "output": self.add_accessor(values, width),
                    "interpolation": interpolation,
                }
            )
            anim["channels"].append(
                {
                    "sampler": len(anim["samplers"]) - 1,
                    "target": {"node": node, "path": path},
                }
            )
        self.doc.setdefault("animations", []).append(anim)
        return len(self.doc["animations"]) - 1

    # -- output --

    def json(self, uri=None) -> dict:
        doc = json.loads(json.dumps(self.doc))
        buffer = {"byteLength": len(self.blob)}
        if uri is not None:
            buffer["uri"] = uri
        doc["buffers"] = [buffer]
        return doc

    def document(self, path="memory.gltf") -> GltfDocument:
        return GltfDocument(Path(path), self.json(), [bytes(self.blob)])

    def write_gltf(self, path: Path, external_bin: bool = False) -> Path:
        if external_bin:
            bin_path = path.with_suffix(".bin")
            bin_path.write_bytes(bytes(self.blob))
            doc = self.json(uri=bin_path.name)
        else:
            encoded = base64.b64encode(bytes(self.blob)).decode("ascii")
            doc = self.json(uri="data:application/octet-stream;base64," + encoded)
        path.write_text(json.dumps(doc))
        return path

    def write_glb(self, path: Path) -> Path:
        path.write_bytes(make_glb(self.json(), bytes(self.blob)))
        return path


def make_glb(doc: dict, blob: bytes, version: int = 2) -> bytes:
    json_bytes = json.dumps(doc).encode("utf-8")
    json_bytes += b" " * (-len(json_bytes) % 4)
    blob = blob + bytes(-len(blob) % 4)

    chunks = struct.pack("<II", len(json_bytes), 0x4E4F534A) + json_bytes
    if blob:
        chunks += struct.pack("<II", len(blob), 0x004E4942) + blob

    header = struct.pack("<III", 0x46546C67, version, 12 + len(chunks))
    return header + chunks


TRIANGLE = [(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0)]


@pytest.fixture
def builder():
    """Returns a fresh GltfBuilder for each test."""
    return GltfBuilder()


@pytest.fixture
def builder_factory():
    """For tests that need more than one asset, e.g. model plus animation file."""
    return GltfBuilder


@pytest.fixture
def glb_factory():
    return make_glb


@pytest.fixture
def triangle():
    return list(TRIANGLE)
