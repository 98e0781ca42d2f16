# gltfbake/assets/animation/hierarchy.py
import logging
from collections import deque
from typing import List, Optional, Sequence

import numpy as np

from gltfbake.assets.errors import InvalidHierarchyError
from gltfbake.assets.gltf.document import Node

logger = logging.getLogger(__name__)


def build_parents(nodes: Sequence[Node]) -> List[Optional[int]]:
    """
    Invert the children lists. A node listed under two parents keeps the
    last one seen.
    """
    parents: List[Optional[int]] = [None] * len(nodes)
    for parent, node in enumerate(nodes):
        for child in node.children:
            if not 0 <= child < len(nodes):
                logger.warning(
                    "Node %d lists missing child %d, ignoring", parent, child
                )
                continue
            parents[child] = parent
    return parents


def topological_order(parents: Sequence[Optional[int]]) -> List[int]:
    """Every node after its parent. Raises if the parent links form a cycle."""
    children: List[List[int]] = [[] for _ in parents]
    roots = []
    for node, parent in enumerate(parents):
        if parent is None:
            roots.append(node)
        else:
            children[parent].append(node)

    order: List[int] = []
    queue = deque(roots)
    while queue:
        node = queue.popleft()
        order.append(node)
        queue.extend(children[node])

    if len(order) != len(parents):
        stuck = sorted(set(range(len(parents))) - set(order))
        raise InvalidHierarchyError(f"Node hierarchy has a cycle through {stuck}")
    return order


class NodeHierarchy:
    """
    Index-addressed node arena. Parents and the parent-before-child order
    are computed once; transforms are then resolved in a single pass.
    """

    def __init__(self, nodes: Sequence[Node]) -> None:
        self.nodes = list(nodes)
        self.parents = build_parents(self.nodes)
        self.order = topological_order(self.parents)

        if self.nodes:
            self.rest_locals = np.stack([n.local_matrix() for n in self.nodes])
        else:
            self.rest_locals = np.zeros((0, 4, 4))

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def roots(self) -> List[int]:
        return [i for i, p in enumerate(self.parents) if p is None]

    def global_transforms(self, locals_: np.ndarray) -> np.ndarray:
        """
        locals_: (..., N, 4, 4) local matrices, any leading batch shape
        (e.g. one entry per frame). Returns globals of the same shape.
        """
        globals_ = np.empty_like(locals_)
        for node in self.order:
            parent = self.parents[node]
            if parent is None:
                globals_[..., node, :, :] = locals_[..., node, :, :]
            else:
                globals_[..., node, :, :] = (
                    globals_[..., parent, :, :] @ locals_[..., node, :, :]
                )
        return globals_

    def rest_globals(self) -> np.ndarray:
        return self.global_transforms(self.rest_locals)
