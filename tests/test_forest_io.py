import numpy as np
import pytest

from data_structures import BoostingMode, Forest, Node, NodeType, TreeTable
from exceptions import ForestFormatError
from forest_io import forest_from_table, forest_to_table, load_forest, save_forest
from gbdt_trainer import predict, train


def test_table_layout(step_dataset):
    X, y = step_dataset
    forest = train(X, y, num_trees=2, learning_rate=0.5, max_depth=1, lambda_=0.0)
    table = forest_to_table(forest)

    assert table.shape == (6, 1 + forest.n_nodes)
    assert np.array_equal(table[:, 0], [0.0, 0.0, 0.0, 0.0, 0.0, 3.0])

    # First tree: scalar root on the first column (written as 1) at 2.5.
    assert np.array_equal(table[:, 1], [1.0, 1.0, 1.0, 1.0, 1.0, 2.5])
    assert np.array_equal(table[:5, 2], [2.0, 1.0, 0.0, 0.0, 0.0])
    assert np.array_equal(table[:5, 3], [3.0, 1.0, 0.0, 0.0, 0.0])
    assert np.array_equal(table[1, 4:], np.full(3, 2.0))


def test_round_trip_reproduces_predictions(mixed_dataset):
    X, y, feature_types = mixed_dataset
    forest = train(X, y, feature_types=feature_types, num_trees=6, learning_rate=0.2, max_depth=3)

    table = forest_to_table(forest)
    parsed = forest_from_table(table, learning_rate=forest.learning_rate, mode=forest.mode)

    assert parsed.n_trees == forest.n_trees
    assert [tree.nodes for tree in parsed.trees] == [tree.nodes for tree in forest.trees]
    assert np.array_equal(forest_to_table(parsed), table)
    assert np.array_equal(predict(parsed, X), predict(forest, X))


def test_save_and_load_classification_forest(binary_dataset, tmp_path):
    X, y = binary_dataset
    forest = train(X, y, mode="classification", num_trees=3, learning_rate=0.3, max_depth=2)

    path = tmp_path / "forest.npz"
    save_forest(path, forest)
    loaded = load_forest(path)

    assert loaded.mode == BoostingMode.CLASSIFICATION
    assert loaded.learning_rate == 0.3
    assert np.array_equal(predict(loaded, X), predict(forest, X))


def test_bias_only_table():
    forest = forest_from_table(np.array([[0.0], [0.0], [0.0], [0.0], [0.0], [1.5]]), learning_rate=0.1)

    assert forest.n_trees == 0
    assert np.array_equal(predict(forest, np.zeros((3, 2))), np.full(3, 1.5))


def test_malformed_tables_are_rejected():
    with pytest.raises(ForestFormatError):
        forest_from_table(np.zeros((5, 3)), learning_rate=0.1)

    table = forest_to_table(Forest(bias=0.0, trees=[_leaf_tree(1, 2.0)]))
    table[4, 1] = 7.0
    with pytest.raises(ForestFormatError):
        forest_from_table(table, learning_rate=0.1)

    table = forest_to_table(Forest(bias=0.0, trees=[_leaf_tree(1, 2.0)]))
    table[0, 1] = 1.5
    with pytest.raises(ForestFormatError):
        forest_from_table(table, learning_rate=0.1)


def test_child_offset_outside_table_is_rejected():
    tree = TreeTable(tree_id=1)
    tree.append(Node(1, 1, child_offset=5, feature_index=0, feature_type_code=1, threshold=0.0))
    with pytest.raises(ForestFormatError):
        forest_from_table(forest_to_table(Forest(bias=0.0, trees=[tree])), learning_rate=0.1)


def _leaf_tree(tree_id, value):
    tree = TreeTable(tree_id=tree_id)
    tree.append(Node.leaf(1, tree_id, value))
    return tree


def test_feature_index_is_one_based_in_table_only():
    tree = TreeTable(tree_id=1)
    tree.append(Node(1, 1, child_offset=1, feature_index=0, feature_type_code=NodeType.SCALAR, threshold=0.5))
    tree.append(Node.leaf(2, 1, -1.0))
    tree.append(Node(3, 1, child_offset=1, feature_index=4, feature_type_code=NodeType.CATEGORICAL, threshold=1.0))
    tree.append(Node.leaf(6, 1, 2.0))
    tree.append(Node.leaf(7, 1, 3.0))
    forest = Forest(bias=0.0, trees=[tree])

    table = forest_to_table(forest)
    assert np.array_equal(table[3, 1:], [1.0, 0.0, 5.0, 0.0, 0.0])

    parsed = forest_from_table(table, learning_rate=0.1)
    assert [node.feature_index for node in parsed.trees[0]] == [0, 0, 4, 0, 0]


def test_split_feature_index_zero_in_table_is_rejected():
    tree = TreeTable(tree_id=1)
    tree.append(Node(1, 1, child_offset=1, feature_index=0, feature_type_code=NodeType.SCALAR, threshold=0.5))
    tree.append(Node.leaf(2, 1, 0.0))
    tree.append(Node.leaf(3, 1, 0.0))
    table = forest_to_table(Forest(bias=0.0, trees=[tree]))
    table[3, 1] = 0.0

    with pytest.raises(ForestFormatError):
        forest_from_table(table, learning_rate=0.1)


def test_child_offset_into_next_tree_is_rejected():
    first = TreeTable(tree_id=1)
    first.append(Node(1, 1, child_offset=1, feature_index=0, feature_type_code=NodeType.SCALAR, threshold=0.5))
    first.append(Node.leaf(2, 1, 1.0))
    second = _leaf_tree(2, 4.0)
    table = forest_to_table(Forest(bias=0.0, trees=[first, second]))

    # The right child would be the first node of tree 2.
    with pytest.raises(ForestFormatError):
        forest_from_table(table, learning_rate=0.1)
