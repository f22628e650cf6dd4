"""Configuration for feature extraction, prediction, learning and scheduling."""

from dataclasses import dataclass, field

from loreweave.config import Settings


@dataclass
class FeatureConfig:
    """Configuration for pairwise feature extraction."""

    cache_ttl: int = 300  # Per-pair feature cache, seconds

    # Normalization caps
    timeline_event_cap: int = 10
    shared_location_cap: int = 5
    mention_cap: int = 20

    location_relationship_types: tuple[str, ...] = ("located_at", "visited", "lives_in")
    faction_relationship_types: tuple[str, ...] = ("member_of",)


@dataclass
class PredictionConfig:
    """Configuration for the confidence and typing model."""

    min_confidence: float = 40.0  # Below this nothing is suggested
    auto_accept_threshold: float = 95.0

    max_graph_entities: int = 100  # Most important entities paired by predict_for_graph
    max_entity_candidates: int = 50  # Candidates considered by predict_for_entity

    evidence_threshold: float = 0.5  # Features shown as evidence
    reasoning_threshold: float = 0.6  # Features cited in reasoning
    hybrid_threshold: float = 0.7  # Feature value counted towards "hybrid"
    hybrid_min_features: int = 3


@dataclass
class LearningConfig:
    """Configuration for feedback-driven weight learning."""

    learning_rate: float = 0.1
    min_samples: int = 5  # New feedback rows needed before an update
    cooldown_seconds: int = 3600
    high_confidence_cutoff: float = 70.0  # Confidence counted as a "positive" prediction


@dataclass
class SchedulerConfig:
    """Configuration for background suggestion generation."""

    batch_size: int = 50
    batch_pause: float = 0.1  # Seconds between batches
    progress_every: int = 10  # Pairs between progress writes
    progress_ttl: int = 3600
    rate_limit: int = 5  # Jobs per graph per window
    rate_window: int = 3600
    refresh_stagger: float = 300.0  # Seconds between graphs in a full refresh
    refresh_interval: float = 86400.0
    workers: int = 1


@dataclass
class SuggestionConfig:
    """Combined configuration of the suggestion core."""

    features: FeatureConfig = field(default_factory=FeatureConfig)
    prediction: PredictionConfig = field(default_factory=PredictionConfig)
    learning: LearningConfig = field(default_factory=LearningConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SuggestionConfig":
        return cls(
            features=FeatureConfig(
                cache_ttl=settings.feature_cache_ttl,
                timeline_event_cap=settings.timeline_event_cap,
                shared_location_cap=settings.shared_location_cap,
                mention_cap=settings.mention_cap,
            ),
            prediction=PredictionConfig(
                min_confidence=settings.min_confidence,
                auto_accept_threshold=settings.auto_accept_threshold,
                max_graph_entities=settings.max_graph_entities,
                max_entity_candidates=settings.max_entity_candidates,
            ),
            learning=LearningConfig(
                learning_rate=settings.learning_rate,
                min_samples=settings.learning_min_samples,
                cooldown_seconds=settings.learning_cooldown,
                high_confidence_cutoff=settings.high_confidence_cutoff,
            ),
            scheduler=SchedulerConfig(
                batch_size=settings.generation_batch_size,
                batch_pause=settings.generation_batch_pause,
                progress_ttl=settings.generation_progress_ttl,
                rate_limit=settings.generation_rate_limit,
                rate_window=settings.generation_rate_window,
                refresh_stagger=settings.refresh_stagger,
                refresh_interval=settings.refresh_interval,
                workers=settings.scheduler_workers,
            ),
        )
