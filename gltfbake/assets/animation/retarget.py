# gltfbake/assets/animation/retarget.py
import re
from typing import Dict, Optional, Sequence

_NAMESPACE = re.compile(r"[:|]")
_NON_ALNUM = re.compile(r"[^0-9a-z]")


def canonical_name(name: str) -> str:
    """
    Joint name with DCC export decoration removed:
    "mixamorig:LeftArm" and "Armature|left_arm" both become "leftarm".
    Distinct names that differ only in punctuation collide.
    """
    tail = _NAMESPACE.split(name)[-1]
    return _NON_ALNUM.sub("", tail.lower())


class JointNameMap:
    """
    Finds model nodes for animation targets by name: exact match first,
    then canonical match. Unnamed nodes never match.
    """

    def __init__(self, model_names: Sequence[str]) -> None:
        self.exact: Dict[str, int] = {}
        self.canonical: Dict[str, int] = {}

        for index, name in enumerate(model_names):
            if not name:
                continue
            self.exact.setdefault(name, index)
            key = canonical_name(name)
            if key:
                self.canonical.setdefault(key, index)

    def find_exact(self, name: str) -> Optional[int]:
        if not name:
            return None
        return self.exact.get(name)

    def find_canonical(self, name: str) -> Optional[int]:
        key = canonical_name(name)
        if not key:
            return None
        return self.canonical.get(key)

    def find(self, name: str) -> Optional[int]:
        index = self.find_exact(name)
        if index is None:
            index = self.find_canonical(name)
        return index
