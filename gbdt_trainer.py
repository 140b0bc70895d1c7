from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Iterable, Iterator

import numpy as np

from data_structures import BoostingMode, Forest
from exceptions import ConfigurationError, NotFittedError
from feature_catalog import FeatureCatalog
from grad_hess import ResidualProvider
from tree_builder import TreeBuilder, TreeBuilderParams
from tree_evaluator import TreeEvaluator

logger = logging.getLogger(__name__)


@dataclass
class GBDTParams:
    n_estimators: int = 100
    learning_rate: float = 0.1
    max_depth: int = 3
    lambda_: float = 1.0
    mode: BoostingMode = BoostingMode.REGRESSION

    def __post_init__(self) -> None:
        if self.n_estimators < 1:
            raise ConfigurationError("n_estimators must be >= 1")
        if not self.learning_rate > 0.0:
            raise ConfigurationError("learning_rate must be > 0")
        if self.max_depth < 1:
            raise ConfigurationError("max_depth must be >= 1")
        if self.lambda_ < 0.0:
            raise ConfigurationError("lambda_ must be >= 0")
        try:
            self.mode = BoostingMode(self.mode)
        except ValueError as e:
            raise ConfigurationError(f"Unsupported mode: {self.mode!r}") from e


def apply_round(
    pred: np.ndarray,
    leaf_values: np.ndarray,
    learning_rate: float,
    mode: BoostingMode,
) -> np.ndarray:
    """Fold one tree's per-row output into the running prediction.

    Classification recomputes the log-odds from the current probability each
    round; a probability of exactly 1 maps to log-odds 0.
    """
    if mode == BoostingMode.REGRESSION:
        return pred + learning_rate * leaf_values

    with np.errstate(divide="ignore", over="ignore", invalid="ignore"):
        log_odds = np.where(pred == 1.0, 0.0, np.log(pred / (1.0 - pred)))
        x = log_odds + learning_rate * leaf_values
        return 1.0 / (1.0 + np.exp(-x))


def _training_loss(y: np.ndarray, pred: np.ndarray, mode: BoostingMode) -> float:
    if mode == BoostingMode.REGRESSION:
        return float(np.mean((y - pred) ** 2))
    p = np.clip(pred, 1e-12, 1.0 - 1e-12)
    return float(-np.mean(y * np.log(p) + (1.0 - y) * np.log(1.0 - p)))


def _validate_inputs(X, y, mode: BoostingMode) -> tuple[np.ndarray, np.ndarray]:
    X = np.asarray(X, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if X.ndim != 2:
        raise ConfigurationError("X must be 2D")
    if y.ndim == 2:
        if y.shape[1] != 1:
            raise ConfigurationError(f"Y must have exactly one column, got {y.shape[1]}")
        y = y[:, 0]
    if y.ndim != 1 or y.shape[0] != X.shape[0]:
        raise ConfigurationError(
            f"Y has {y.shape[0] if y.ndim else 0} rows but X has {X.shape[0]}"
        )
    if X.shape[0] == 0:
        raise ConfigurationError("X must contain at least one row")
    if mode == BoostingMode.CLASSIFICATION and not np.all((y == 0.0) | (y == 1.0)):
        raise ConfigurationError("classification labels must be 0 or 1")
    return X, y


class GBDTTrainer:
    """Residual-fitting GBDT with exact split search over flattened trees."""

    def __init__(self, params: GBDTParams | None = None) -> None:
        self.params = params or GBDTParams()

        self.forest_: Forest | None = None
        self.catalog_: FeatureCatalog | None = None
        self.train_prediction_: np.ndarray | None = None
        self.metrics: dict = {}

    @property
    def base_score(self) -> float:
        if self.forest_ is None:
            raise NotFittedError("Model must be fitted before use")
        return self.forest_.bias

    def fit(
        self,
        X: np.ndarray,
        y: np.ndarray,
        feature_types: Iterable | None = None,
    ) -> "GBDTTrainer":
        mode = self.params.mode
        X, y = _validate_inputs(X, y, mode)
        self.catalog_ = FeatureCatalog.build(X.shape[1], feature_types)

        bias = float(np.median(y))
        pred = np.full(X.shape[0], bias, dtype=np.float64)
        forest = Forest(bias=bias, learning_rate=self.params.learning_rate, mode=mode)

        self.metrics = {
            "split_search_time_sec": 0.0,
            "total_nodes": 0,
            "tree_metrics": [],
        }
        tree_params = TreeBuilderParams(
            max_depth=self.params.max_depth,
            lambda_=self.params.lambda_,
            mode=mode,
        )
        labels = y if mode == BoostingMode.CLASSIFICATION else None

        logger.info(
            "Training %d %s trees on %d rows x %d features (bias=%.6g)",
            self.params.n_estimators,
            mode.value,
            X.shape[0],
            X.shape[1],
            bias,
        )

        for tree_idx in range(self.params.n_estimators):
            provider = ResidualProvider(y=y, pred=pred, mode=mode)
            builder = TreeBuilder(X=X, catalog=self.catalog_, params=tree_params, labels=labels)
            tree = builder.build_tree(provider, tree_id=tree_idx + 1)

            update = TreeEvaluator(tree).predict_batch(X)
            pred = apply_round(pred, update, self.params.learning_rate, mode)
            forest.trees.append(tree)

            loss = _training_loss(y, pred, mode)
            self.metrics["split_search_time_sec"] += builder.metrics.split_search_time_sec
            self.metrics["total_nodes"] += len(tree)
            self.metrics["tree_metrics"].append(
                {
                    "tree_idx": tree_idx,
                    "n_nodes": len(tree),
                    "nodes_split": builder.metrics.nodes_split,
                    "forced_leaves": dict(builder.metrics.forced_leaves),
                    "train_loss": loss,
                }
            )
            logger.debug(
                "round %d: %d nodes, train loss %.6g", tree_idx + 1, len(tree), loss
            )

        self.forest_ = forest
        self.train_prediction_ = pred
        logger.info(
            "Finished training: %d trees, %d nodes, final train loss %.6g",
            forest.n_trees,
            forest.n_nodes,
            self.metrics["tree_metrics"][-1]["train_loss"],
        )
        return self

    def _check_fitted(self) -> Forest:
        if self.forest_ is None:
            raise NotFittedError("Model must be fitted before prediction")
        return self.forest_

    def predict(self, X: np.ndarray) -> np.ndarray:
        return predict(self._check_fitted(), X)

    def staged_predict(self, X: np.ndarray) -> Iterator[np.ndarray]:
        return staged_predict(self._check_fitted(), X)


def staged_predict(forest: Forest, X: np.ndarray) -> Iterator[np.ndarray]:
    """Yield the prediction vector after each tree, starting from the bias."""
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise ConfigurationError("X must be 2D")

    pred = np.full(X.shape[0], forest.bias, dtype=np.float64)
    for tree in forest.trees:
        pred = apply_round(
            pred,
            TreeEvaluator(tree).predict_batch(X),
            forest.learning_rate,
            forest.mode,
        )
        yield pred


def predict(forest: Forest, X: np.ndarray) -> np.ndarray:
    X = np.asarray(X, dtype=np.float64)
    if X.ndim != 2:
        raise ConfigurationError("X must be 2D")

    pred = np.full(X.shape[0], forest.bias, dtype=np.float64)
    for tree in forest.trees:
        pred = apply_round(
            pred,
            TreeEvaluator(tree).predict_batch(X),
            forest.learning_rate,
            forest.mode,
        )
    return pred


def train(
    X: np.ndarray,
    Y: np.ndarray,
    feature_types: Iterable | None = None,
    mode: BoostingMode | str = BoostingMode.REGRESSION,
    num_trees: int = 100,
    learning_rate: float = 0.1,
    max_depth: int = 3,
    lambda_: float = 1.0,
) -> Forest:
    params = GBDTParams(
        n_estimators=num_trees,
        learning_rate=learning_rate,
        max_depth=max_depth,
        lambda_=lambda_,
        mode=mode,
    )
    trainer = GBDTTrainer(params).fit(X, Y, feature_types=feature_types)
    return trainer.forest_
