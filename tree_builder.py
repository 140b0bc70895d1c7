from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import time

import numpy as np

from data_structures import BoostingMode, FeatureType, Node, NodeType, TreeTable, node_depth
from exceptions import ConfigurationError
from feature_catalog import FeatureCatalog
from frontier_queue import FrontierQueue
from grad_hess import ResidualProvider
from simple_fit import rank_features
from split_search import SplitEvaluator, SplitSearchResult, leaf_output

logger = logging.getLogger(__name__)


class BuilderState(Enum):
    GROWING = "growing"
    DONE = "done"


@dataclass
class TreeBuildMetrics:
    nodes_visited: int = 0
    nodes_split: int = 0
    categorical_splits: int = 0
    leaves: int = 0
    forced_leaves: dict[str, int] = field(default_factory=dict)
    split_search_time_sec: float = 0.0
    node_metrics: list[dict] = field(default_factory=list)


@dataclass
class TreeBuilderParams:
    max_depth: int = 3
    lambda_: float = 1.0
    mode: BoostingMode = BoostingMode.REGRESSION

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ConfigurationError("max_depth must be >= 1")
        if self.lambda_ < 0.0:
            raise ConfigurationError("lambda_ must be >= 0")
        try:
            self.mode = BoostingMode(self.mode)
        except ValueError as e:
            raise ConfigurationError(f"Unsupported mode: {self.mode!r}") from e


class TreeBuilder:
    """Grows one tree breadth-first from a frontier of (node id, row mask) pairs.

    ``max_depth`` bounds the number of splits on any root-to-leaf path: a node
    at level ``max_depth + 1`` (root is level 1) is always a leaf.
    """

    def __init__(
        self,
        X: np.ndarray,
        catalog: FeatureCatalog,
        params: TreeBuilderParams,
        labels: np.ndarray | None = None,
    ) -> None:
        self.X = np.ascontiguousarray(np.asarray(X, dtype=np.float64))
        self.catalog = catalog
        self.params = params
        self.labels = None if labels is None else np.asarray(labels, dtype=np.float64)
        self.evaluator = SplitEvaluator(lambda_=params.lambda_)

        self.n_samples, self.n_features = self.X.shape
        if len(catalog) != self.n_features:
            raise ConfigurationError("catalog length must match the number of columns")
        if self.params.mode == BoostingMode.CLASSIFICATION and self.labels is None:
            raise ConfigurationError("classification trees need the training labels")

        self.state = BuilderState.DONE
        self.metrics = TreeBuildMetrics()

    def _leaf_reason(self, rows: np.ndarray, depth: int) -> str | None:
        if rows.size <= 1:
            return "single_row"
        if depth > self.params.max_depth:
            return "max_depth"
        if self.params.mode == BoostingMode.CLASSIFICATION:
            node_labels = self.labels[rows]
            if np.all(node_labels == node_labels[0]):
                return "pure"
        return None

    def _find_best_split(
        self,
        rows: np.ndarray,
        residual_provider: ResidualProvider,
    ) -> SplitSearchResult:
        start = time.perf_counter()
        residual = residual_provider.residual[rows]
        hessian = residual_provider.hessian[rows]

        feature = rank_features(self.X[rows], residual)
        result = self.evaluator.evaluate(
            feature=feature,
            column=self.X[rows, feature],
            feature_type=self.catalog[feature],
            residual=residual,
            hessian=hessian,
        )
        self.metrics.split_search_time_sec += time.perf_counter() - start
        return result

    def _partition_rows(
        self,
        mask: np.ndarray,
        split: SplitSearchResult,
    ) -> tuple[np.ndarray, np.ndarray]:
        active = mask == 1.0
        col = self.X[:, split.feature]

        if split.feature_type == FeatureType.CATEGORICAL:
            left_active = active & (col == split.threshold)
            right_active = active & (col == 0.0)
            unrouted = active & ~left_active & ~right_active
            left_mask = left_active.astype(np.float64)
            right_mask = right_active.astype(np.float64)
            left_mask[unrouted] = np.nan
            right_mask[unrouted] = np.nan
            return left_mask, right_mask

        go_left = col < split.threshold
        left_mask = (active & go_left).astype(np.float64)
        right_mask = (active & ~go_left).astype(np.float64)
        return left_mask, right_mask

    def _append_leaf(
        self,
        table: TreeTable,
        node_id: int,
        value: float,
        reason: str,
    ) -> None:
        table.append(Node.leaf(node_id, table.tree_id, value))
        self.metrics.leaves += 1
        self.metrics.forced_leaves[reason] = self.metrics.forced_leaves.get(reason, 0) + 1
        logger.debug("tree %d node %d -> leaf (%s), value=%.6g", table.tree_id, node_id, reason, value)

    def build_tree(
        self,
        residual_provider: ResidualProvider,
        tree_id: int = 1,
    ) -> TreeTable:
        if residual_provider.residual.shape[0] != self.n_samples:
            raise ConfigurationError("residuals must cover every training row")

        table = TreeTable(tree_id=tree_id)
        queue = FrontierQueue.seeded(self.n_samples)
        self.state = BuilderState.GROWING

        while queue:
            node_id, mask = queue.pop()
            self.metrics.nodes_visited += 1

            rows = np.flatnonzero(mask == 1.0)
            if rows.size == 0:
                self._append_leaf(table, node_id, 0.0, "empty")
                continue

            depth = node_depth(node_id)
            node_G, node_H = residual_provider.totals(rows)
            leaf_value = leaf_output(node_G, node_H, self.params.lambda_)

            reason = self._leaf_reason(rows, depth)
            split = None
            if reason is None:
                split = self._find_best_split(rows, residual_provider)
                if not split.has_split:
                    reason = "no_gain"

            if reason is not None:
                self._append_leaf(table, node_id, leaf_value, reason)
                continue

            left_mask, right_mask = self._partition_rows(mask, split)
            # Everything still queued is emitted before this node's children.
            child_offset = len(queue) + 1
            queue.push_children(node_id, left_mask, right_mask)

            if split.feature_type == FeatureType.CATEGORICAL:
                type_code = NodeType.CATEGORICAL
                self.metrics.categorical_splits += 1
            else:
                type_code = NodeType.SCALAR

            table.append(
                Node(
                    node_id=node_id,
                    tree_id=tree_id,
                    child_offset=child_offset,
                    feature_index=split.feature,
                    feature_type_code=type_code,
                    threshold=split.threshold,
                )
            )
            self.metrics.nodes_split += 1
            self.metrics.node_metrics.append(
                {
                    "node_id": node_id,
                    "depth": depth,
                    "available_rows": int(rows.size),
                    "left_rows": int(np.count_nonzero(left_mask == 1.0)),
                    "right_rows": int(np.count_nonzero(right_mask == 1.0)),
                    "unrouted_rows": int(np.count_nonzero(np.isnan(left_mask))),
                    "feature": split.feature,
                    "gain": split.gain,
                }
            )

        self.state = BuilderState.DONE
        return table
