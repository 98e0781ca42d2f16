import numpy as np
import pytest

from gltfbake.assets.errors import AssetFormatError, BoundsError
from gltfbake.assets.gltf.accessor import (
    FLOAT,
    SHORT,
    UNSIGNED_BYTE,
    UNSIGNED_INT,
    UNSIGNED_SHORT,
    AccessorDecoder,
)


def test_read_floats_returns_count_elements(builder):
    acc = builder.add_accessor([(1, 2, 3), (4, 5, 6)], "VEC3")
    decoder = AccessorDecoder(builder.document())

    values = decoder.read_floats(acc, 3)

    assert values.shape == (2, 3)
    assert values.dtype == np.float32
    assert values.tolist() == [[1, 2, 3], [4, 5, 6]]


def test_read_floats_honours_byte_stride(builder):
    # 12 bytes of data + 4 bytes padding per element
    acc = builder.add_accessor([(1, 2, 3), (4, 5, 6), (7, 8, 9)], "VEC3", stride=16)
    decoder = AccessorDecoder(builder.document())

    values = decoder.read_floats(acc, 3)

    assert values.tolist() == [[1, 2, 3], [4, 5, 6], [7, 8, 9]]


def test_accessor_past_end_of_buffer_raises_bounds_error(builder):
    view = builder.add_view(np.zeros(6, dtype="<f4").tobytes())  # 2 x VEC3
    acc = builder.add_raw_accessor(view, count=3, type="VEC3")
    decoder = AccessorDecoder(builder.document())

    with pytest.raises(BoundsError):
        decoder.read_floats(acc, 3)


def test_accessor_offset_is_part_of_bounds_check(builder):
    view = builder.add_view(np.zeros(6, dtype="<f4").tobytes())
    acc = builder.add_raw_accessor(view, count=2, type="VEC3", byte_offset=4)
    decoder = AccessorDecoder(builder.document())

    with pytest.raises(BoundsError):
        decoder.read_floats(acc, 3)


def test_exact_fit_is_not_a_bounds_error(builder):
    view = builder.add_view(np.arange(6, dtype="<f4").tobytes())
    acc = builder.add_raw_accessor(view, count=1, type="VEC3", byte_offset=12)
    decoder = AccessorDecoder(builder.document())

    assert decoder.read_floats(acc, 3).tolist() == [[3, 4, 5]]


@pytest.mark.parametrize("stride", [-12, 4])
def test_invalid_byte_stride_is_a_format_error(builder, stride):
    view = builder.add_view(np.arange(6, dtype="<f4").tobytes(), stride=stride)
    acc = builder.add_raw_accessor(view, count=2, type="VEC3")
    decoder = AccessorDecoder(builder.document())

    with pytest.raises(AssetFormatError, match="byteStride"):
        decoder.read_floats(acc, 3)


@pytest.mark.parametrize("component_type", [UNSIGNED_BYTE, UNSIGNED_SHORT, UNSIGNED_INT])
def test_indices_are_widened_to_uint32(builder, component_type):
    acc = builder.add_accessor([0, 1, 2, 200], "SCALAR", component_type)
    decoder = AccessorDecoder(builder.document())

    indices = decoder.read_uints(acc)

    assert indices.dtype == np.uint32
    assert indices.tolist() == [0, 1, 2, 200]


def test_read_uints_rejects_float_components(builder):
    acc = builder.add_accessor([0.0, 1.0, 2.0], "SCALAR", FLOAT)
    decoder = AccessorDecoder(builder.document())

    with pytest.raises(AssetFormatError):
        decoder.read_uints(acc)


def test_joint_accessor_keeps_vec4_shape(builder):
    acc = builder.add_accessor([(0, 1, 2, 3)], "VEC4", UNSIGNED_BYTE)
    decoder = AccessorDecoder(builder.document())

    assert decoder.read_uints(acc).tolist() == [[0, 1, 2, 3]]


def test_normalized_bytes_map_to_unit_range(builder):
    acc = builder.add_accessor(
        [(0, 255), (51, 102)], "VEC2", UNSIGNED_BYTE, normalized=True
    )
    decoder = AccessorDecoder(builder.document())

    values = decoder.read_floats(acc, 2)

    np.testing.assert_allclose(values, [[0.0, 1.0], [0.2, 0.4]], atol=1e-6)


def test_shape_mismatch_is_rejected(builder):
    acc = builder.add_accessor([(1, 2)], "VEC2")
    decoder = AccessorDecoder(builder.document())

    with pytest.raises(AssetFormatError):
        decoder.read_floats(acc, 3)


def test_accessor_without_view_reads_zeros(builder):
    acc = builder.add_raw_accessor(None, count=4, type="VEC2")
    decoder = AccessorDecoder(builder.document())

    assert decoder.read_floats(acc, 2).tolist() == [[0, 0]] * 4


def test_empty_accessor(builder):
    view = builder.add_view(b"")
    acc = builder.add_raw_accessor(view, count=0, type="VEC3")
    decoder = AccessorDecoder(builder.document())

    assert decoder.read_floats(acc, 3).shape == (0, 3)


def test_missing_accessor_index_is_a_format_error(builder):
    decoder = AccessorDecoder(builder.document())

    with pytest.raises(AssetFormatError):
        decoder.read_floats(7, 3)


def test_missing_buffer_view_is_a_format_error(builder):
    acc = builder.add_raw_accessor(42, count=1, type="SCALAR")
    decoder = AccessorDecoder(builder.document())

    with pytest.raises(AssetFormatError):
        decoder.read_scalars(acc)


def test_unsupported_component_type(builder):
    view = builder.add_view(bytes(8))
    acc = builder.add_raw_accessor(view, count=1, type="SCALAR", component_type=5130)
    decoder = AccessorDecoder(builder.document())

    with pytest.raises(AssetFormatError):
        decoder.read_raw(acc)


def test_signed_short_reads_as_raw_floats(builder):
    view = builder.add_view(np.array([-2, 5], dtype="<i2").tobytes())
    acc = builder.add_raw_accessor(view, count=1, type="VEC2", component_type=SHORT)
    decoder = AccessorDecoder(builder.document())

    assert decoder.read_floats(acc, 2).tolist() == [[-2.0, 5.0]]


def test_matrices_are_read_column_major(builder):
    m = np.arange(16, dtype=np.float32).reshape(4, 4)
    acc = builder.add_accessor(m.T.reshape(-1), "MAT4")
    decoder = AccessorDecoder(builder.document())

    matrices = decoder.read_matrices(acc)

    assert matrices.shape == (1, 4, 4)
    np.testing.assert_array_equal(matrices[0], m)
