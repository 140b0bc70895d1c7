"""One-variable least-squares fits used to pick the split feature of a node."""
import numpy as np


def single_feature_sse(x: np.ndarray, target: np.ndarray) -> float:
    """Sum of squared residuals after fitting ``target ~ a + b * x``."""
    return float(feature_sse(np.asarray(x, dtype=np.float64).reshape(-1, 1), target)[0])


def feature_sse(X: np.ndarray, target: np.ndarray) -> np.ndarray:
    """Column-wise SSE of a one-variable fit with intercept.

    Constant columns explain nothing and score the total sum of squares.
    Columns containing non-finite values cannot be fitted and score +inf.
    """
    X = np.asarray(X, dtype=np.float64)
    target = np.asarray(target, dtype=np.float64)
    if X.ndim != 2 or X.shape[0] != target.shape[0]:
        raise ValueError("X must be 2D with one row per target value")

    n_features = X.shape[1]
    if target.size == 0:
        return np.zeros(n_features, dtype=np.float64)

    t_centered = target - target.mean()
    syy = float(np.dot(t_centered, t_centered))

    finite_cols = np.all(np.isfinite(X), axis=0)
    sse = np.full(n_features, np.inf, dtype=np.float64)
    if not np.any(finite_cols):
        return sse

    Xf = X[:, finite_cols]
    x_centered = Xf - Xf.mean(axis=0)
    sxx = np.einsum("ij,ij->j", x_centered, x_centered)
    sxy = x_centered.T @ t_centered

    explained = np.zeros_like(sxx)
    fitted = sxx > 0.0
    explained[fitted] = (sxy[fitted] * sxy[fitted]) / sxx[fitted]
    sse[finite_cols] = np.maximum(syy - explained, 0.0)
    return sse


def rank_features(X: np.ndarray, target: np.ndarray) -> int:
    """Index of the column whose one-variable fit leaves the least residual.

    Ties go to the lowest column index.
    """
    sse = feature_sse(X, target)
    if not np.any(np.isfinite(sse)):
        return 0
    return int(np.argmin(sse))
