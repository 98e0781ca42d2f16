# gltfbake/assets/settings.py
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


@dataclass(slots=True)
class AssetSettings:
    """
    Configuration for an AssetServer.
    """

    asset_root: Path = field(default_factory=lambda: Path("."))
    # Directory for extracted mesh records; None disables the disk cache.
    cache_dir: Optional[Path] = None
    sample_rate: float = 30.0
    max_workers: int = 2
