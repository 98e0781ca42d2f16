# gltfbake/assets/importers/base.py
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Generic, Sequence, Tuple, TypeVar

T = TypeVar("T")


class AssetImporter(ABC, Generic[T]):
    # Lowercase file suffixes this importer reads, e.g. (".glb",)
    extensions: Tuple[str, ...] = ()

    def accepts(self, path: Path | str) -> bool:
        return Path(path).suffix.lower() in self.extensions

    @abstractmethod
    def import_file(self, path: Path | str, selectors: Sequence[str] = ()) -> T:
        """
        Read file from disk and return a CPU-side data object.
        Must be thread-safe: the AssetServer calls it from worker threads.
        """
