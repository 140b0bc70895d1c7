import numpy as np
import pytest


@pytest.fixture
def step_dataset() -> tuple[np.ndarray, np.ndarray]:
    """Four rows whose targets jump between x=2 and x=3."""
    X = np.array([[1.0], [2.0], [3.0], [4.0]])
    y = np.array([1.0, 1.0, 5.0, 5.0])
    return X, y


@pytest.fixture
def mixed_dataset() -> tuple[np.ndarray, np.ndarray, list[str]]:
    """Three scalar columns and one 0/1 indicator, target driven by both kinds."""
    rng = np.random.default_rng(5)
    n = 200
    X = rng.normal(size=(n, 4))
    X[:, 3] = (rng.uniform(size=n) < 0.5).astype(np.float64)
    y = 3.0 * X[:, 0] + 2.0 * X[:, 3] - X[:, 1] + 0.1 * rng.normal(size=n)
    return X, y, ["scalar", "scalar", "scalar", "categorical"]


@pytest.fixture
def binary_dataset() -> tuple[np.ndarray, np.ndarray]:
    """Balanced 0/1 labels so the median start is exactly 0.5."""
    rng = np.random.default_rng(13)
    n = 120
    X = rng.normal(size=(n, 3))
    order = np.argsort(X[:, 0] + 0.3 * rng.normal(size=n))
    y = np.zeros(n)
    y[order[n // 2:]] = 1.0
    return X, y
