from __future__ import annotations

import numpy as np

from data_structures import NodeType, TreeTable
from exceptions import CategoricalValueError


class TreeEvaluator:
    """Offset-based traversal of a flattened tree.

    Scalar nodes send ``value < threshold`` left. Categorical nodes send 1
    left and 0 right; any other value is rejected.
    """

    def __init__(self, tree: TreeTable) -> None:
        if len(tree) == 0:
            raise ValueError("cannot evaluate an empty tree")
        self.tree = tree
        arrays = tree.as_arrays()
        self.child_offset = arrays["child_offset"]
        self.feature_index = arrays["feature_index"]
        self.feature_type_code = arrays["feature_type_code"]
        self.threshold = arrays["threshold"]
        self.leaf_value = arrays["leaf_value"]
        self.n_nodes = len(tree)

    def predict_row(self, x: np.ndarray) -> float:
        x = np.asarray(x, dtype=np.float64)
        position = 0
        node = self.tree[position]
        while not node.is_leaf:
            value = float(x[node.feature_index])
            if node.feature_type_code == NodeType.SCALAR:
                go_left = value < node.threshold
            elif value == 1.0:
                go_left = True
            elif value == 0.0:
                go_left = False
            else:
                raise CategoricalValueError(node.feature_index, value)

            position += node.child_offset if go_left else node.child_offset + 1
            node = self.tree[position]

        return node.leaf_value

    def predict_batch(self, X: np.ndarray) -> np.ndarray:
        """Walk all rows together, one tree level per pass."""
        X = np.asarray(X, dtype=np.float64)
        if X.ndim != 2:
            raise ValueError("X must be 2D")

        n_rows = X.shape[0]
        positions = np.zeros(n_rows, dtype=np.int64)
        if n_rows == 0:
            return np.zeros(0, dtype=np.float64)

        for _ in range(self.n_nodes + 1):
            types = self.feature_type_code[positions]
            active_rows = np.flatnonzero(types != NodeType.LEAF)
            if active_rows.size == 0:
                break

            nodes = positions[active_rows]
            values = X[active_rows, self.feature_index[nodes]]
            go_left = np.empty(active_rows.size, dtype=bool)

            scalar = self.feature_type_code[nodes] == NodeType.SCALAR
            go_left[scalar] = values[scalar] < self.threshold[nodes[scalar]]

            categorical = ~scalar
            if np.any(categorical):
                cat_values = values[categorical]
                invalid = (cat_values != 1.0) & (cat_values != 0.0)
                if np.any(invalid):
                    first = int(np.flatnonzero(invalid)[0])
                    bad_node = nodes[categorical][first]
                    raise CategoricalValueError(
                        int(self.feature_index[bad_node]), float(cat_values[first])
                    )
                go_left[categorical] = cat_values == 1.0

            offsets = self.child_offset[nodes]
            positions[active_rows] = nodes + np.where(go_left, offsets, offsets + 1)
        else:
            raise ValueError("tree traversal did not reach a leaf; child offsets are invalid")

        return self.leaf_value[positions].astype(np.float64, copy=True)
