import numpy as np
import pytest

from data_structures import Node, NodeType, TreeTable
from exceptions import CategoricalValueError
from feature_catalog import FeatureCatalog
from grad_hess import ResidualProvider
from tree_builder import TreeBuilder, TreeBuilderParams
from tree_evaluator import TreeEvaluator


def _mixed_tree() -> TreeTable:
    """x0 < 2.5 -> (x1 == 1 -> 10 else 20), otherwise 5."""
    tree = TreeTable(tree_id=1)
    tree.append(
        Node(1, 1, child_offset=1, feature_index=0, feature_type_code=NodeType.SCALAR, threshold=2.5)
    )
    tree.append(
        Node(2, 1, child_offset=2, feature_index=1, feature_type_code=NodeType.CATEGORICAL, threshold=1.0)
    )
    tree.append(Node.leaf(3, 1, 5.0))
    tree.append(Node.leaf(4, 1, 10.0))
    tree.append(Node.leaf(5, 1, 20.0))
    return tree


def test_predict_row_follows_scalar_and_categorical_branches():
    evaluator = TreeEvaluator(_mixed_tree())

    assert evaluator.predict_row(np.array([1.0, 1.0])) == 10.0
    assert evaluator.predict_row(np.array([1.0, 0.0])) == 20.0
    assert evaluator.predict_row(np.array([3.0, 1.0])) == 5.0
    # Threshold itself goes right.
    assert evaluator.predict_row(np.array([2.5, 0.0])) == 5.0


def test_predict_batch_matches_row_walk():
    evaluator = TreeEvaluator(_mixed_tree())
    X = np.array([[1.0, 1.0], [1.0, 0.0], [3.0, 1.0], [2.5, 0.0], [-4.0, 1.0]])

    batch = evaluator.predict_batch(X)
    rows = np.array([evaluator.predict_row(x) for x in X])
    assert np.array_equal(batch, rows)
    assert np.array_equal(batch, [10.0, 20.0, 5.0, 5.0, 10.0])


def test_categorical_value_outside_indicator_is_rejected():
    evaluator = TreeEvaluator(_mixed_tree())

    with pytest.raises(CategoricalValueError):
        evaluator.predict_row(np.array([1.0, 2.0]))
    with pytest.raises(TypeError):
        evaluator.predict_batch(np.array([[1.0, 0.0], [1.0, 0.5]]))


def test_scalar_rows_never_check_categorical_values():
    evaluator = TreeEvaluator(_mixed_tree())
    # Row goes right at the root and never reaches the categorical node.
    assert evaluator.predict_row(np.array([9.0, 7.0])) == 5.0


def test_single_leaf_tree():
    tree = TreeTable(tree_id=3)
    tree.append(Node.leaf(1, 3, -1.25))
    evaluator = TreeEvaluator(tree)

    assert evaluator.predict_row(np.array([0.0])) == -1.25
    assert np.array_equal(evaluator.predict_batch(np.zeros((4, 1))), np.full(4, -1.25))
    assert evaluator.predict_batch(np.zeros((0, 1))).shape == (0,)


def test_batch_matches_rows_on_trained_tree(mixed_dataset):
    X, y, feature_types = mixed_dataset
    builder = TreeBuilder(
        X=X,
        catalog=FeatureCatalog.build(X.shape[1], feature_types),
        params=TreeBuilderParams(max_depth=4, lambda_=1.0),
    )
    tree = builder.build_tree(ResidualProvider(y=y, pred=np.zeros_like(y)))
    evaluator = TreeEvaluator(tree)

    batch = evaluator.predict_batch(X)
    rows = np.array([evaluator.predict_row(x) for x in X])
    assert np.array_equal(batch, rows)


def test_tree_table_rejects_foreign_nodes():
    tree = TreeTable(tree_id=1)
    with pytest.raises(ValueError):
        tree.append(Node.leaf(1, 2, 0.0))


def test_empty_tree_cannot_be_evaluated():
    with pytest.raises(ValueError):
        TreeEvaluator(TreeTable(tree_id=1))
