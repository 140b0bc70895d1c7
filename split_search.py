from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from data_structures import FeatureType
from data_structures.forest import CATEGORICAL_LEFT_FLAG


@dataclass
class SplitSearchResult:
    feature: int
    feature_type: FeatureType
    has_split: bool
    threshold: float
    gain: float
    node_G: float
    node_H: float
    n_candidates: int = 0


def structure_score(G, H, lambda_: float):
    """``G^2 / (H + lambda_)``, taken as 0 wherever the denominator is 0.

    Works on scalars and on arrays of candidate sums.
    """
    G = np.asarray(G, dtype=np.float64)
    denom = np.asarray(H, dtype=np.float64) + lambda_
    score = np.divide(G * G, denom, out=np.zeros(np.broadcast(G, denom).shape), where=denom != 0.0)
    if score.ndim == 0:
        return float(score)
    return score


def leaf_output(G: float, H: float, lambda_: float) -> float:
    denom = H + lambda_
    if denom == 0.0:
        return 0.0
    return float(G / denom)


class SplitEvaluator:
    """Exact split search for one feature column over one node's active rows.

    Every call receives values already restricted to the node's active rows.
    """

    def __init__(self, lambda_: float = 1.0) -> None:
        if lambda_ < 0.0:
            raise ValueError("lambda_ must be >= 0")
        self.lambda_ = float(lambda_)

    def gain(
        self,
        G_L: float,
        H_L: float,
        G_R: float,
        H_R: float,
        G: float,
        H: float,
    ) -> float:
        left = structure_score(G_L, H_L, self.lambda_)
        right = structure_score(G_R, H_R, self.lambda_)
        parent = structure_score(G, H, self.lambda_)
        return left + right - parent

    def leaf_value(self, residual: np.ndarray, hessian: np.ndarray) -> float:
        if residual.size == 0:
            return 0.0
        return leaf_output(float(residual.sum()), float(hessian.sum()), self.lambda_)

    def evaluate(
        self,
        feature: int,
        column: np.ndarray,
        feature_type: FeatureType,
        residual: np.ndarray,
        hessian: np.ndarray,
    ) -> SplitSearchResult:
        column = np.asarray(column, dtype=np.float64)
        residual = np.asarray(residual, dtype=np.float64)
        hessian = np.asarray(hessian, dtype=np.float64)
        if not (column.shape == residual.shape == hessian.shape):
            raise ValueError("column, residual and hessian must have the same shape")

        if feature_type == FeatureType.CATEGORICAL:
            return self._evaluate_categorical(feature, column, residual, hessian)
        return self._evaluate_scalar(feature, column, residual, hessian)

    def _evaluate_scalar(
        self,
        feature: int,
        column: np.ndarray,
        residual: np.ndarray,
        hessian: np.ndarray,
    ) -> SplitSearchResult:
        G = float(residual.sum())
        H = float(hessian.sum())

        # Stable sort keeps ties in row order; NaN sorts last and, like at
        # partition time, always lands on the right.
        order = np.argsort(column, kind="stable")
        values = column[order]
        G_prefix = np.cumsum(residual[order])
        H_prefix = np.cumsum(hessian[order])

        boundary = np.flatnonzero(
            np.isfinite(values[:-1]) & np.isfinite(values[1:]) & (values[:-1] != values[1:])
        )
        if boundary.size == 0:
            return SplitSearchResult(
                feature, FeatureType.SCALAR, False, float("nan"), -float("inf"), G, H
            )

        lo = values[boundary]
        hi = values[boundary + 1]
        # Adjacent floats can round their midpoint down onto the lower value,
        # which `value < threshold` would then send right.
        mid = (lo + hi) * 0.5
        thresholds = np.where(mid > lo, mid, hi)
        G_L = G_prefix[boundary]
        H_L = H_prefix[boundary]
        gains = (
            structure_score(G_L, H_L, self.lambda_)
            + structure_score(G - G_L, H - H_L, self.lambda_)
            - structure_score(G, H, self.lambda_)
        )

        # argmax returns the first maximum, i.e. the lowest threshold.
        best = int(np.argmax(gains))
        best_gain = float(gains[best])
        return SplitSearchResult(
            feature=feature,
            feature_type=FeatureType.SCALAR,
            has_split=best_gain > 0.0,
            threshold=float(thresholds[best]),
            gain=best_gain,
            node_G=G,
            node_H=H,
            n_candidates=int(boundary.size),
        )

    def _evaluate_categorical(
        self,
        feature: int,
        column: np.ndarray,
        residual: np.ndarray,
        hessian: np.ndarray,
    ) -> SplitSearchResult:
        G = float(residual.sum())
        H = float(hessian.sum())
        left = column == CATEGORICAL_LEFT_FLAG
        right = column == 0.0

        gain = self.gain(
            G_L=float(residual[left].sum()),
            H_L=float(hessian[left].sum()),
            G_R=float(residual[right].sum()),
            H_R=float(hessian[right].sum()),
            G=G,
            H=H,
        )
        # The indicator split is taken whatever its gain; the gain is only
        # reported.
        return SplitSearchResult(
            feature=feature,
            feature_type=FeatureType.CATEGORICAL,
            has_split=True,
            threshold=CATEGORICAL_LEFT_FLAG,
            gain=gain,
            node_G=G,
            node_H=H,
            n_candidates=1,
        )
