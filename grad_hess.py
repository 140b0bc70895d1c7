from __future__ import annotations

import numpy as np

from data_structures import BoostingMode


class ResidualProvider:
    """Per-round residual/second-derivative cache.

    The residual is ``y - pred`` in both modes. Regression weights every row
    by 1, so ``H`` over a row set is its size; classification weights a row
    by ``p * (1 - p)`` where ``p`` is the running predicted probability.
    """

    def __init__(
        self,
        y: np.ndarray,
        pred: np.ndarray,
        mode: BoostingMode = BoostingMode.REGRESSION,
    ) -> None:
        self.y = np.asarray(y, dtype=np.float64)
        self.pred = np.asarray(pred, dtype=np.float64)
        if self.y.shape != self.pred.shape:
            raise ValueError("y and pred must have the same shape")

        self.mode = BoostingMode(mode)
        self.residual, self.hessian = self._compute_residual_hessian()

    def _compute_residual_hessian(self) -> tuple[np.ndarray, np.ndarray]:
        residual = self.y - self.pred
        if self.mode == BoostingMode.REGRESSION:
            hessian = np.ones_like(residual, dtype=np.float64)
        else:
            hessian = self.pred * (1.0 - self.pred)
        return residual.astype(np.float64), hessian.astype(np.float64)

    def totals(self, rows: np.ndarray) -> tuple[float, float]:
        return float(self.residual[rows].sum()), float(self.hessian[rows].sum())
