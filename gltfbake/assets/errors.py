# gltfbake/assets/errors.py


class AssetError(Exception):
    """Base class for every failure raised while loading an asset."""


class AssetIOError(AssetError):
    """A file (or a URI it references) could not be read."""


class AssetFormatError(AssetError):
    """The document is malformed or references something that is not there."""


class BoundsError(AssetFormatError):
    """A read would go past the end of the backing buffer."""


class InvalidHierarchyError(AssetFormatError):
    """The node graph is not a forest."""


class MeshNotFoundError(AssetError):
    def __init__(self, selector: str, path: str = "") -> None:
        self.selector = selector
        self.path = path
        where = f" in {path}" if path else ""
        super().__init__(f"Mesh not found: '{selector}'{where}")


class MissingPositionError(AssetError):
    """None of the selected primitives carries a POSITION attribute."""


class NoAnimationsError(AssetError):
    pass


class NoSkinError(AssetError):
    pass


class EmptySkinError(AssetError):
    pass
