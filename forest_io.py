"""
Flattened table encoding of a trained forest.

The table has six rows and one column per record:

    0  node_id
    1  tree_id
    2  child_offset
    3  feature_index, counted from 1 (0 on leaves)
    4  feature_type_code
    5  threshold (internal nodes) or leaf value (leaves)

Column 0 is the bias record, with every field but the value left at 0. The
remaining columns are each tree's nodes in creation order, trees in round
order.
"""
from __future__ import annotations

import logging
import os

import numpy as np

from data_structures import BoostingMode, Forest, Node, NodeType, TreeTable
from exceptions import ForestFormatError

logger = logging.getLogger(__name__)

N_FIELDS = 6
NODE_ID, TREE_ID, CHILD_OFFSET, FEATURE_INDEX, FEATURE_TYPE_CODE, VALUE = range(N_FIELDS)


def forest_to_table(forest: Forest) -> np.ndarray:
    table = np.zeros((N_FIELDS, 1 + forest.n_nodes), dtype=np.float64)
    table[VALUE, 0] = forest.bias

    col = 1
    for tree in forest.trees:
        for node in tree:
            table[NODE_ID, col] = node.node_id
            table[TREE_ID, col] = node.tree_id
            table[CHILD_OFFSET, col] = node.child_offset
            table[FEATURE_INDEX, col] = 0 if node.is_leaf else node.feature_index + 1
            table[FEATURE_TYPE_CODE, col] = int(node.feature_type_code)
            table[VALUE, col] = node.leaf_value if node.is_leaf else node.threshold
            col += 1

    return table


def _as_int(value: float, field_name: str, col: int) -> int:
    if not np.isfinite(value) or value != np.floor(value):
        raise ForestFormatError(f"{field_name} in column {col} is not an integer: {value!r}")
    return int(value)


def _check_child_offsets(tree: TreeTable) -> None:
    # Offsets are counted within the node's own tree.
    for position, node in enumerate(tree):
        if node.is_leaf:
            continue
        if node.child_offset < 1 or position + node.child_offset + 1 >= len(tree):
            raise ForestFormatError(
                f"child_offset of node {node.node_id} in tree {tree.tree_id} "
                "points outside its tree"
            )


def forest_from_table(
    table: np.ndarray,
    learning_rate: float,
    mode: BoostingMode | str = BoostingMode.REGRESSION,
) -> Forest:
    table = np.asarray(table, dtype=np.float64)
    if table.ndim != 2 or table.shape[0] != N_FIELDS or table.shape[1] < 1:
        raise ForestFormatError(
            f"forest table must have shape ({N_FIELDS}, >=1), got {table.shape}"
        )

    forest = Forest(
        bias=float(table[VALUE, 0]),
        learning_rate=float(learning_rate),
        mode=BoostingMode(mode),
    )

    current: TreeTable | None = None
    for col in range(1, table.shape[1]):
        record = table[:, col]
        tree_id = _as_int(record[TREE_ID], "tree_id", col)
        try:
            type_code = NodeType(_as_int(record[FEATURE_TYPE_CODE], "feature_type_code", col))
        except ValueError as e:
            raise ForestFormatError(f"unknown feature_type_code in column {col}") from e

        if current is None or tree_id != current.tree_id:
            current = TreeTable(tree_id=tree_id)
            forest.trees.append(current)

        node_id = _as_int(record[NODE_ID], "node_id", col)
        if type_code == NodeType.LEAF:
            node = Node.leaf(node_id, tree_id, float(record[VALUE]))
        else:
            node = Node(
                node_id=node_id,
                tree_id=tree_id,
                child_offset=_as_int(record[CHILD_OFFSET], "child_offset", col),
                feature_index=_as_int(record[FEATURE_INDEX], "feature_index", col) - 1,
                feature_type_code=type_code,
                threshold=float(record[VALUE]),
            )
            if node.feature_index < 0:
                raise ForestFormatError(f"feature_index in column {col} must be >= 1")
        current.append(node)

    for tree in forest.trees:
        _check_child_offsets(tree)
    return forest


def save_forest(path: str | os.PathLike, forest: Forest) -> None:
    """Write the table plus the boosting settings needed to predict."""
    np.savez(
        path,
        table=forest_to_table(forest),
        learning_rate=np.float64(forest.learning_rate),
        mode=np.array(forest.mode.value),
    )
    logger.info("Saved forest with %d trees to %s", forest.n_trees, path)


def load_forest(path: str | os.PathLike) -> Forest:
    with np.load(path, allow_pickle=False) as archive:
        missing = {"table", "learning_rate", "mode"} - set(archive.files)
        if missing:
            raise ForestFormatError(f"forest archive is missing {sorted(missing)}")
        return forest_from_table(
            archive["table"],
            learning_rate=float(archive["learning_rate"]),
            mode=str(archive["mode"]),
        )
