"""Accuracy metrics of the suggestion model against human decisions."""

from dataclasses import asdict, dataclass

from loreweave.models import RelationshipSuggestion, UserActionType


@dataclass
class AccuracyMetrics:
    """Confusion counts at the high-confidence cutoff; rates are percentages."""

    true_positives: int = 0  # high confidence, accepted
    false_positives: int = 0  # high confidence, rejected
    true_negatives: int = 0  # low confidence, rejected
    false_negatives: int = 0  # low confidence, accepted

    @property
    def total_samples(self) -> int:
        return (
            self.true_positives
            + self.false_positives
            + self.true_negatives
            + self.false_negatives
        )

    @property
    def precision(self) -> float:
        denominator = self.true_positives + self.false_positives
        return round(self.true_positives / denominator * 100, 2) if denominator else 0.0

    @property
    def recall(self) -> float:
        denominator = self.true_positives + self.false_negatives
        return round(self.true_positives / denominator * 100, 2) if denominator else 0.0

    @property
    def f1_score(self) -> float:
        denominator = self.true_positives + self.false_positives
        precision = self.true_positives / denominator if denominator else 0.0
        denominator = self.true_positives + self.false_negatives
        recall = self.true_positives / denominator if denominator else 0.0
        if precision + recall <= 0:
            return 0.0
        return round(2 * precision * recall / (precision + recall) * 100, 2)

    @property
    def accuracy(self) -> float:
        total = self.total_samples
        if not total:
            return 0.0
        return round((self.true_positives + self.true_negatives) / total * 100, 2)

    def to_dict(self) -> dict:
        return {
            **asdict(self),
            "precision": self.precision,
            "recall": self.recall,
            "f1_score": self.f1_score,
            "accuracy": self.accuracy,
            "total_samples": self.total_samples,
        }


def compute_metrics(
    suggestions: list[RelationshipSuggestion],
    high_confidence_cutoff: float = 70.0,
) -> AccuracyMetrics:
    """Classify actioned suggestions; pending and dismissed ones are ignored."""
    metrics = AccuracyMetrics()
    for suggestion in suggestions:
        if suggestion.is_pending or suggestion.user_action_type is UserActionType.DISMISS:
            continue

        high_confidence = suggestion.confidence_score >= high_confidence_cutoff
        accepted = suggestion.status.is_positive

        if high_confidence and accepted:
            metrics.true_positives += 1
        elif high_confidence:
            metrics.false_positives += 1
        elif not accepted:
            metrics.true_negatives += 1
        else:
            metrics.false_negatives += 1
    return metrics
