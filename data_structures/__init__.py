"""
Data structures for the boosting engine.

Plain records shared by the tree builder, the evaluator and the serializer:
feature and mode enums, flattened node records, trees and forests.
"""
from data_structures.forest import (
    BoostingMode,
    FeatureType,
    Forest,
    Node,
    NodeType,
    TreeTable,
    node_depth,
)

__all__ = [
    "BoostingMode",
    "FeatureType",
    "Forest",
    "Node",
    "NodeType",
    "TreeTable",
    "node_depth",
]
