# gltfbake/assets/gltf/accessor.py
from typing import Dict

import numpy as np

from gltfbake.assets.errors import AssetFormatError, BoundsError
from gltfbake.assets.gltf.document import Accessor, GltfDocument

BYTE = 5120
UNSIGNED_BYTE = 5121
SHORT = 5122
UNSIGNED_SHORT = 5123
UNSIGNED_INT = 5125
FLOAT = 5126

COMPONENT_DTYPES: Dict[int, np.dtype] = {
    BYTE: np.dtype("<i1"),
    UNSIGNED_BYTE: np.dtype("<u1"),
    SHORT: np.dtype("<i2"),
    UNSIGNED_SHORT: np.dtype("<u2"),
    UNSIGNED_INT: np.dtype("<u4"),
    FLOAT: np.dtype("<f4"),
}

UNSIGNED_TYPES = (UNSIGNED_BYTE, UNSIGNED_SHORT, UNSIGNED_INT)

TYPE_COMPONENTS: Dict[str, int] = {
    "SCALAR": 1,
    "VEC2": 2,
    "VEC3": 3,
    "VEC4": 4,
    "MAT4": 16,
}


def element_size(accessor: Accessor) -> int:
    """Byte size of one tightly packed element."""
    return (
        TYPE_COMPONENTS[accessor.type]
        * COMPONENT_DTYPES[accessor.component_type].itemsize
    )


class AccessorDecoder:
    """
    Typed, strided reads of accessors over a document's buffers.

    Every read validates the full byte range once before touching the
    buffer, so a malformed accessor raises BoundsError instead of reading
    past the end. Results are fresh arrays; the document is never mutated.
    """

    def __init__(self, document: GltfDocument) -> None:
        self.document = document

    def read_raw(self, index: int) -> np.ndarray:
        """Returns (count, components) in the accessor's own component type."""
        accessor = self.document.accessor(index)

        components = TYPE_COMPONENTS.get(accessor.type)
        if components is None:
            raise AssetFormatError(
                f"Accessor {index}: unsupported type {accessor.type}"
            )
        dtype = COMPONENT_DTYPES.get(accessor.component_type)
        if dtype is None:
            raise AssetFormatError(
                f"Accessor {index}: unsupported component type "
                f"{accessor.component_type}"
            )
        if accessor.count < 0:
            raise AssetFormatError(f"Accessor {index}: negative count")

        native = dtype.newbyteorder("=")
        if accessor.count == 0:
            return np.empty((0, components), dtype=native)

        # No view: glTF defines the contents as zeros.
        if accessor.buffer_view is None:
            return np.zeros((accessor.count, components), dtype=native)

        view = self.document.buffer_view(accessor.buffer_view)
        buffer = self.document.buffer(view.buffer)

        size = element_size(accessor)
        if view.byte_stride < 0 or 0 < view.byte_stride < size:
            raise AssetFormatError(
                f"Accessor {index}: byteStride {view.byte_stride} is invalid "
                f"for {size}-byte elements"
            )
        stride = view.byte_stride or size
        start = view.byte_offset + accessor.byte_offset
        required = stride * (accessor.count - 1) + size

        if start < 0 or start + required > len(buffer):
            raise BoundsError(
                f"Accessor {index}: needs bytes [{start}, {start + required}) "
                f"but buffer {view.buffer} has {len(buffer)}"
            )

        strided = np.ndarray(
            shape=(accessor.count, components),
            dtype=dtype,
            buffer=buffer,
            offset=start,
            strides=(stride, dtype.itemsize),
        )
        return strided.astype(native, copy=True)

    def read_floats(
        self, index: int, components: int, allow_fewer: bool = False
    ) -> np.ndarray:
        """
        (count, components) float32. Normalized integer accessors are mapped
        to [0, 1] (unsigned) or [-1, 1] (signed).
        """
        accessor = self.document.accessor(index)
        raw = self.read_raw(index)

        width = raw.shape[1]
        if width != components and not (allow_fewer and width < components):
            raise AssetFormatError(
                f"Accessor {index}: expected {components} components, "
                f"got {accessor.type}"
            )

        if accessor.component_type == FLOAT:
            return raw.astype(np.float32, copy=False)

        if accessor.normalized:
            info = np.iinfo(raw.dtype)
            scaled = raw.astype(np.float32) / float(info.max)
            if info.min < 0:
                scaled = np.maximum(scaled, -1.0)
            return scaled.astype(np.float32, copy=False)

        return raw.astype(np.float32)

    def read_scalars(self, index: int) -> np.ndarray:
        return self.read_floats(index, 1)[:, 0]

    def read_uints(self, index: int) -> np.ndarray:
        """
        8/16/32-bit unsigned components widened to uint32.
        SCALAR accessors come back flat (count,), others (count, n).
        """
        accessor = self.document.accessor(index)
        if accessor.component_type not in UNSIGNED_TYPES:
            raise AssetFormatError(
                f"Accessor {index}: expected unsigned integer components, "
                f"got {accessor.component_type}"
            )

        raw = self.read_raw(index).astype(np.uint32)
        if raw.shape[1] == 1:
            return raw[:, 0]
        return raw

    def read_matrices(self, index: int) -> np.ndarray:
        """MAT4 accessor as (count, 4, 4), converted from column-major."""
        flat = self.read_floats(index, 16)
        return flat.reshape(-1, 4, 4).transpose(0, 2, 1).astype(np.float64)
