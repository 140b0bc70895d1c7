from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum

import numpy as np


class FeatureType(IntEnum):
    SCALAR = 1
    CATEGORICAL = 2


class NodeType(IntEnum):
    """Tag stored in ``Node.feature_type_code``."""

    LEAF = 0
    SCALAR = 1
    CATEGORICAL = 2


class BoostingMode(str, Enum):
    REGRESSION = "regression"
    CLASSIFICATION = "classification"


# Value stored in the threshold slot of a categorical node: rows whose
# indicator equals it go left.
CATEGORICAL_LEFT_FLAG = 1.0


def node_depth(node_id: int) -> int:
    """Level of a node under complete-binary-tree numbering (root is level 1)."""
    if node_id < 1:
        raise ValueError("node ids start at 1")
    return int(node_id).bit_length()


@dataclass(frozen=True)
class Node:
    node_id: int
    tree_id: int
    child_offset: int = 0
    feature_index: int = 0
    feature_type_code: NodeType = NodeType.LEAF
    threshold: float = 0.0
    leaf_value: float = 0.0

    @property
    def is_leaf(self) -> bool:
        return self.feature_type_code == NodeType.LEAF

    @property
    def depth(self) -> int:
        return node_depth(self.node_id)

    @classmethod
    def leaf(cls, node_id: int, tree_id: int, value: float) -> Node:
        return cls(node_id=node_id, tree_id=tree_id, leaf_value=float(value))


@dataclass
class TreeTable:
    """One tree as node records in creation (breadth-first) order.

    Position 0 is the root. An internal node at position ``p`` has its left
    child at ``p + child_offset`` and its right child right after it.
    """

    tree_id: int
    nodes: list[Node] = field(default_factory=list)

    def append(self, node: Node) -> None:
        if node.tree_id != self.tree_id:
            raise ValueError(
                f"node belongs to tree {node.tree_id}, not tree {self.tree_id}"
            )
        self.nodes.append(node)

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes)

    def __getitem__(self, position: int) -> Node:
        return self.nodes[position]

    @property
    def root(self) -> Node:
        return self.nodes[0]

    def leaves(self) -> list[Node]:
        return [node for node in self.nodes if node.is_leaf]

    def as_arrays(self) -> dict[str, np.ndarray]:
        """Parallel arrays used by vectorized traversal."""
        return {
            "child_offset": np.array([n.child_offset for n in self.nodes], dtype=np.int64),
            "feature_index": np.array([n.feature_index for n in self.nodes], dtype=np.int64),
            "feature_type_code": np.array(
                [int(n.feature_type_code) for n in self.nodes], dtype=np.int8
            ),
            "threshold": np.array([n.threshold for n in self.nodes], dtype=np.float64),
            "leaf_value": np.array([n.leaf_value for n in self.nodes], dtype=np.float64),
        }


@dataclass
class Forest:
    bias: float
    trees: list[TreeTable] = field(default_factory=list)
    learning_rate: float = 0.1
    mode: BoostingMode = BoostingMode.REGRESSION

    @property
    def n_trees(self) -> int:
        return len(self.trees)

    @property
    def n_nodes(self) -> int:
        return sum(len(tree) for tree in self.trees)
