from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from data_structures import FeatureType
from exceptions import ConfigurationError

_TYPE_ALIASES = {
    "scalar": FeatureType.SCALAR,
    "numeric": FeatureType.SCALAR,
    "categorical": FeatureType.CATEGORICAL,
}


def _coerce_type(value) -> FeatureType:
    if isinstance(value, FeatureType):
        return value
    if isinstance(value, str):
        key = value.strip().lower()
        if key not in _TYPE_ALIASES:
            raise ConfigurationError(f"Unknown feature type: {value!r}")
        return _TYPE_ALIASES[key]
    try:
        return FeatureType(int(value))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Unknown feature type: {value!r}") from e


class FeatureCatalog:
    """Per-column type metadata, fixed for a whole training run."""

    def __init__(self, feature_types: Sequence[FeatureType]) -> None:
        self._types = tuple(feature_types)

    @classmethod
    def build(
        cls,
        n_features: int,
        feature_types: Iterable | None = None,
    ) -> FeatureCatalog:
        """Validate user supplied types against the column count.

        ``None`` means every column is scalar.
        """
        if feature_types is None:
            return cls([FeatureType.SCALAR] * n_features)

        types = [_coerce_type(t) for t in np.ravel(np.asarray(feature_types, dtype=object))]
        if len(types) != n_features:
            raise ConfigurationError(
                f"feature_types has length {len(types)} but X has {n_features} columns"
            )
        return cls(types)

    def __len__(self) -> int:
        return len(self._types)

    def __getitem__(self, feature: int) -> FeatureType:
        return self._types[feature]

    def is_categorical(self, feature: int) -> bool:
        return self._types[feature] == FeatureType.CATEGORICAL

    @property
    def categorical_features(self) -> list[int]:
        return [j for j, t in enumerate(self._types) if t == FeatureType.CATEGORICAL]

    def codes(self) -> np.ndarray:
        return np.array([int(t) for t in self._types], dtype=np.int8)
