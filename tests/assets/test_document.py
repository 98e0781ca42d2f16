import json

import numpy as np
import pytest

from gltfbake.assets.errors import AssetFormatError, AssetIOError
from gltfbake.assets.gltf.accessor import AccessorDecoder
from gltfbake.assets.gltf.document import GltfDocument


def _simple_asset(builder, triangle):
    builder.add_mesh("Tri", [builder.triangle_primitive(triangle)])
    builder.add_node("TriNode", mesh=0, translation=[1, 2, 3])
    return builder


def test_load_glb(tmp_path, builder, triangle):
    path = _simple_asset(builder, triangle).write_glb(tmp_path / "tri.glb")

    doc = GltfDocument.load(path)

    assert [m.name for m in doc.meshes] == ["Tri"]
    assert doc.nodes[0].mesh == 0
    assert tuple(doc.nodes[0].translation) == (1.0, 2.0, 3.0)
    positions = AccessorDecoder(doc).read_floats(0, 3)
    assert positions.tolist() == [list(p) for p in triangle]


def test_load_gltf_with_embedded_buffer(tmp_path, builder, triangle):
    path = _simple_asset(builder, triangle).write_gltf(tmp_path / "tri.gltf")

    doc = GltfDocument.load(path)

    assert len(doc.buffers) == 1
    assert AccessorDecoder(doc).read_floats(0, 3).shape == (3, 3)


def test_load_gltf_with_relative_buffer(tmp_path, builder, triangle):
    path = _simple_asset(builder, triangle).write_gltf(
        tmp_path / "tri.gltf", external_bin=True
    )

    doc = GltfDocument.load(path)

    assert doc.buffers[0] == bytes(builder.blob)


def test_missing_external_buffer_is_io_error(tmp_path, builder, triangle):
    path = _simple_asset(builder, triangle).write_gltf(
        tmp_path / "tri.gltf", external_bin=True
    )
    (tmp_path / "tri.bin").unlink()

    with pytest.raises(AssetIOError):
        GltfDocument.load(path)


def test_missing_image_file_is_io_error(tmp_path, builder, triangle):
    _simple_asset(builder, triangle)
    builder.doc["images"] = [{"uri": "textures/missing.png"}]
    path = builder.write_gltf(tmp_path / "tri.gltf")

    with pytest.raises(AssetIOError, match="missing.png"):
        GltfDocument.load(path)


def test_image_resolved_relative_to_asset(tmp_path, builder, triangle):
    _simple_asset(builder, triangle)
    (tmp_path / "textures").mkdir()
    (tmp_path / "textures" / "albedo.png").write_bytes(b"\x89PNG")
    builder.doc["images"] = [{"uri": "textures/albedo.png"}, {"uri": "data:image/png;base64,AAAA"}]
    path = builder.write_gltf(tmp_path / "tri.gltf")

    assert GltfDocument.load(path).meshes


def test_unreadable_file_is_io_error(tmp_path):
    with pytest.raises(AssetIOError):
        GltfDocument.load(tmp_path / "nope.glb")


def test_invalid_json_is_format_error(tmp_path):
    path = tmp_path / "broken.gltf"
    path.write_text("{not json")

    with pytest.raises(AssetFormatError):
        GltfDocument.load(path)


def test_glb_with_wrong_version(tmp_path, builder, triangle, glb_factory):
    _simple_asset(builder, triangle)
    path = tmp_path / "v1.glb"
    path.write_bytes(glb_factory(builder.json(), bytes(builder.blob), version=1))

    with pytest.raises(AssetFormatError, match="version"):
        GltfDocument.load(path)


def test_truncated_glb(tmp_path, builder, triangle, glb_factory):
    _simple_asset(builder, triangle)
    data = glb_factory(builder.json(), bytes(builder.blob))
    path = tmp_path / "cut.glb"
    path.write_bytes(data[:-8])

    with pytest.raises(AssetFormatError):
        GltfDocument.load(path)


def test_structurally_broken_document(tmp_path):
    path = tmp_path / "bad.gltf"
    path.write_text(json.dumps({"asset": {"version": "2.0"}, "accessors": [{"type": "VEC3"}]}))

    with pytest.raises(AssetFormatError):
        GltfDocument.load(path)


def test_node_matrix_is_column_major(builder):
    m = np.eye(4)
    m[:3, 3] = (5, 6, 7)
    builder.add_node("M", matrix=m.T.reshape(-1).tolist())

    node = builder.document().nodes[0]

    assert node.has_matrix
    np.testing.assert_array_equal(node.local_matrix(), m)


def test_unnamed_animation_is_called_default(builder):
    builder.add_node("Hip")
    builder.add_animation([(0, "translation", [0.0, 1.0], [(0, 0, 0), (1, 0, 0)])])

    assert builder.document().animations[0].name == "default"
