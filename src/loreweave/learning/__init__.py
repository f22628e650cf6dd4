"""Feedback-driven weight learning."""

from loreweave.learning.engine import (
    LearningEngine,
    calculate_adjustments,
    feature_snapshot,
    replay_weights,
)
from loreweave.learning.metrics import AccuracyMetrics, compute_metrics

__all__ = [
    "LearningEngine",
    "calculate_adjustments",
    "feature_snapshot",
    "replay_weights",
    "AccuracyMetrics",
    "compute_metrics",
]
