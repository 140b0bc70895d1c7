import argparse
import logging
import time
import sys
from pathlib import Path

import numpy as np

# Allow running as: python experiments/quick_gbdt_eval.py
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from data_structures import FeatureType
from forest_io import load_forest, save_forest
from gbdt_trainer import GBDTParams, GBDTTrainer, predict


def _train_test_split(X, y, test_size, random_state, stratify=False):
    rng = np.random.default_rng(random_state)
    n = X.shape[0]

    if stratify:
        y_int = y.astype(int)
        classes = np.unique(y_int)
        train_parts = []
        test_parts = []
        for c in classes:
            idx = np.where(y_int == c)[0]
            rng.shuffle(idx)
            n_test = max(1, int(round(idx.size * test_size)))
            test_parts.append(idx[:n_test])
            train_parts.append(idx[n_test:])
        train_idx = np.concatenate(train_parts)
        test_idx = np.concatenate(test_parts)
        rng.shuffle(train_idx)
        rng.shuffle(test_idx)
    else:
        idx = np.arange(n)
        rng.shuffle(idx)
        n_test = max(1, int(round(n * test_size)))
        test_idx = idx[:n_test]
        train_idx = idx[n_test:]

    return X[train_idx], X[test_idx], y[train_idx], y[test_idx]


def _rmse(y_true, y_pred):
    return float(np.sqrt(np.mean((y_true - y_pred) ** 2)))


def _binary_auc(y_true, y_score):
    y = y_true.astype(int)
    pos = y == 1
    neg = y == 0
    n_pos = int(np.sum(pos))
    n_neg = int(np.sum(neg))
    if n_pos == 0 or n_neg == 0:
        return float("nan")

    order = np.argsort(y_score)
    ranks = np.empty_like(order, dtype=np.float64)
    ranks[order] = np.arange(1, y_score.size + 1, dtype=np.float64)
    rank_sum_pos = float(np.sum(ranks[pos]))
    auc = (rank_sum_pos - n_pos * (n_pos + 1) / 2.0) / (n_pos * n_neg)
    return float(auc)


def load_dataset(name: str, random_state: int, n_samples: int):
    """Six scalar columns plus one 0/1 indicator column."""
    rng = np.random.default_rng(random_state)
    key = name.lower()

    n_scalar = 6
    X_scalar = rng.normal(size=(n_samples, n_scalar))
    indicator = (rng.uniform(size=n_samples) < 0.4).astype(np.float64)
    X = np.column_stack([X_scalar, indicator])
    feature_types = [FeatureType.SCALAR] * n_scalar + [FeatureType.CATEGORICAL]

    signal = 2.0 * X[:, 0] - 1.5 * (X[:, 1] > 0.3) + 1.0 * indicator

    if key == "synthetic_reg":
        y = signal + rng.normal(scale=0.5, size=n_samples)
        task = "regression"
    elif key == "synthetic_clf":
        probs = 1.0 / (1.0 + np.exp(-signal))
        y = (rng.uniform(size=n_samples) < probs).astype(np.float64)
        task = "classification"
    else:
        raise ValueError(f"Unknown dataset '{name}'. Choose from: synthetic_reg, synthetic_clf")

    return X, y.astype(np.float64), feature_types, task


def evaluate_one(X, y, feature_types, task, n_estimators, max_depth, learning_rate, lambda_, random_state):
    X_train, X_test, y_train, y_test = _train_test_split(
        X,
        y,
        test_size=0.2,
        random_state=random_state,
        stratify=(task == "classification"),
    )

    params = GBDTParams(
        n_estimators=n_estimators,
        learning_rate=learning_rate,
        max_depth=max_depth,
        lambda_=lambda_,
        mode=task,
    )

    model = GBDTTrainer(params)
    t0 = time.perf_counter()
    model.fit(X_train, y_train, feature_types=feature_types)
    fit_time = time.perf_counter() - t0

    pred = model.predict(X_test)
    if task == "classification":
        pred_label = (pred >= 0.5).astype(int)
        acc = float(np.mean(pred_label == y_test.astype(int)))
        auc = _binary_auc(y_test.astype(int), pred)
        metrics = {"accuracy": acc, "auc": auc}
    else:
        metrics = {"rmse": _rmse(y_test, pred)}

    return {
        "model": model,
        "X_test": X_test,
        "fit_time_sec": fit_time,
        "metrics": metrics,
        "split_search_time_sec": model.metrics["split_search_time_sec"],
        "total_nodes": model.metrics["total_nodes"],
        "tree_metrics": model.metrics["tree_metrics"],
    }


def main():
    parser = argparse.ArgumentParser(description="Quick GBDT checks on synthetic datasets")
    parser.add_argument(
        "--datasets",
        type=str,
        default="synthetic_reg,synthetic_clf",
        help="Comma-separated: synthetic_reg, synthetic_clf",
    )
    parser.add_argument("--n-samples", type=int, default=1000)
    parser.add_argument("--n-estimators", type=int, default=20)
    parser.add_argument("--max-depth", type=int, default=3)
    parser.add_argument("--learning-rate", type=float, default=0.3)
    parser.add_argument("--lambda", dest="lambda_", type=float, default=1.0)
    parser.add_argument("--random-state", type=int, default=42)
    parser.add_argument(
        "--save-dir",
        type=Path,
        default=None,
        help="Write each trained forest here and check the reloaded copy predicts the same.",
    )
    parser.add_argument("--verbose", action="store_true")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    datasets = [d.strip() for d in args.datasets.split(",") if d.strip()]
    if not datasets:
        raise ValueError("No datasets provided")

    for ds_name in datasets:
        X, y, feature_types, task = load_dataset(ds_name, args.random_state, args.n_samples)
        print(f"\nDataset={ds_name} task={task} n={X.shape[0]} d={X.shape[1]}")

        out = evaluate_one(
            X,
            y,
            feature_types,
            task=task,
            n_estimators=args.n_estimators,
            max_depth=args.max_depth,
            learning_rate=args.learning_rate,
            lambda_=args.lambda_,
            random_state=args.random_state,
        )
        print(
            "GBDT"
            f" time={out['fit_time_sec']:.3f}s"
            f" split_search_time={out['split_search_time_sec']:.3f}s"
            f" nodes={out['total_nodes']}"
            f" metrics={out['metrics']}"
        )
        losses = [m["train_loss"] for m in out["tree_metrics"]]
        print(f"  train_loss first={losses[0]:.4f} last={losses[-1]:.4f}")

        if args.save_dir is not None:
            args.save_dir.mkdir(parents=True, exist_ok=True)
            path = args.save_dir / f"{ds_name}.npz"
            forest = out["model"].forest_
            save_forest(path, forest)
            reloaded = load_forest(path)
            same = np.array_equal(predict(reloaded, out["X_test"]), out["model"].predict(out["X_test"]))
            print(f"  saved={path} reload_matches={same}")


if __name__ == "__main__":
    main()
