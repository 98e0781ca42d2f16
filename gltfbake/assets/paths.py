# gltfbake/assets/paths.py
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

RES_PREFIX = "res://"
SELECTOR_SEPARATOR = "#"


@dataclass(frozen=True)
class AssetPath:
    """
    A model file plus optional mesh selectors: `file`, `file#sel` or
    `file#sel1#sel2`. No selectors means "every mesh in the file".
    """

    file: str
    selectors: Tuple[str, ...] = ()

    @staticmethod
    def parse(path: str) -> AssetPath:
        file, _, fragment = path.partition(SELECTOR_SEPARATOR)
        selectors = tuple(s for s in fragment.split(SELECTOR_SEPARATOR) if s)
        return AssetPath(file, selectors)

    def with_file(self, file: str) -> AssetPath:
        return AssetPath(file, self.selectors)

    def __str__(self) -> str:
        if not self.selectors:
            return self.file
        return self.file + SELECTOR_SEPARATOR + SELECTOR_SEPARATOR.join(
            self.selectors
        )


def normalize_asset_path(path: str) -> str:
    """Strip engine prefixes: `res://` and a leading `./`."""
    if path.startswith(RES_PREFIX):
        path = path[len(RES_PREFIX) :]
    while path.startswith("./"):
        path = path[2:]
    return path


def resolve_file(root: Path, file: str) -> str:
    """Absolute, normalized filesystem path for an asset file."""
    file = normalize_asset_path(file)
    target = Path(file)
    if not target.is_absolute():
        target = root / target
    return os.path.abspath(target)


def resolve_asset_path(root: Path, path: str) -> AssetPath:
    """Resolve the file part against root, keeping the selectors."""
    parsed = AssetPath.parse(path)
    return parsed.with_file(resolve_file(root, parsed.file))
