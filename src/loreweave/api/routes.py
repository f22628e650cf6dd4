"""API routes for Loreweave.

Provides:
- Generation job control per graph (schedule, progress, cancel)
- Pending suggestions and /v1/suggestions/{id}/feedback
- Learning metrics, weights and maintenance
- /health
"""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from loreweave.errors import SuggestionNotFoundError, ValidationError
from loreweave.learning import LearningEngine
from loreweave.models import FeedbackAction, RelationshipSuggestion
from loreweave.scheduler import SuggestionScheduler
from loreweave.storage.base import SuggestionStore

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# Models
# ============================================================================


class ScheduleResponse(BaseModel):
    graph_id: str
    scheduled: bool


class CancelResponse(BaseModel):
    graph_id: str
    cancelled: bool


class ProgressResponse(BaseModel):
    """Progress of a graph's generation job."""

    graph_id: str
    status: str
    total: int
    processed: int
    created: int
    percent: int
    started_at: datetime | None = None
    updated_at: datetime
    error: str | None = None


class EvidenceInfo(BaseModel):
    type: str
    value: float
    description: str


class SuggestionInfo(BaseModel):
    """A suggestion as shown in the review queue."""

    id: str
    graph_id: str
    source_entity_id: str
    target_entity_id: str
    suggested_type: str
    confidence_score: float
    strength: int
    priority_score: float
    reasoning: str
    evidence: list[EvidenceInfo] = []
    suggestion_method: str
    status: str
    created_at: datetime

    @classmethod
    def from_suggestion(cls, suggestion: RelationshipSuggestion) -> "SuggestionInfo":
        return cls(
            id=suggestion.id,
            graph_id=suggestion.graph_id,
            source_entity_id=suggestion.source_entity_id,
            target_entity_id=suggestion.target_entity_id,
            suggested_type=suggestion.suggested_type,
            confidence_score=suggestion.confidence_score,
            strength=suggestion.strength,
            priority_score=suggestion.priority_score,
            reasoning=suggestion.explanation(),
            evidence=[EvidenceInfo(**item.to_dict()) for item in suggestion.evidence],
            suggestion_method=suggestion.suggestion_method.value,
            status=suggestion.status.value,
            created_at=suggestion.created_at,
        )


class FeedbackRequest(BaseModel):
    """User decision on a suggestion."""

    action: FeedbackAction
    user_id: str
    modified_type: str | None = None
    modified_strength: int | None = Field(default=None, ge=0, le=100)
    feedback_text: str | None = None
    created_relationship_id: str | None = None


class FeedbackResponse(BaseModel):
    feedback_id: str
    suggestion_id: str
    action: FeedbackAction
    learning_value: float
    quality_score: float


class MetricsResponse(BaseModel):
    precision: float
    recall: float
    f1_score: float
    accuracy: float
    total_samples: int
    true_positives: int
    false_positives: int
    true_negatives: int
    false_negatives: int


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    neo4j_connected: bool
    scheduler_running: bool
    version: str = "0.1.0"


# ============================================================================
# Helper Functions
# ============================================================================


def get_scheduler(request: Request) -> SuggestionScheduler:
    return request.app.state.scheduler


def get_learning(request: Request) -> LearningEngine:
    return request.app.state.learning


def get_suggestion_store(request: Request) -> SuggestionStore:
    return request.app.state.suggestion_store


# ============================================================================
# Generation Jobs
# ============================================================================


@router.post("/v1/graphs/{graph_id}/suggestions/generate", response_model=ScheduleResponse)
async def schedule_generation(request: Request, graph_id: str) -> ScheduleResponse:
    """
    Queue background suggestion generation for a graph.

    Returns scheduled=false when a job is already queued or running, or the
    graph hit its hourly job limit.
    """
    scheduled = await get_scheduler(request).schedule_generation_job(graph_id)
    return ScheduleResponse(graph_id=graph_id, scheduled=scheduled)


@router.get("/v1/graphs/{graph_id}/suggestions/progress", response_model=ProgressResponse)
async def get_progress(request: Request, graph_id: str) -> ProgressResponse:
    progress = await get_scheduler(request).get_progress(graph_id)
    if progress is None:
        raise HTTPException(status_code=404, detail="No generation job for this graph")
    return ProgressResponse(graph_id=graph_id, **progress.to_dict())


@router.delete("/v1/graphs/{graph_id}/suggestions/job", response_model=CancelResponse)
async def cancel_job(request: Request, graph_id: str) -> CancelResponse:
    """Forget job progress and drop a job that has not started. Running jobs finish."""
    cancelled = await get_scheduler(request).cancel_job(graph_id)
    return CancelResponse(graph_id=graph_id, cancelled=cancelled)


# ============================================================================
# Suggestions & Feedback
# ============================================================================


@router.get("/v1/graphs/{graph_id}/suggestions", response_model=list[SuggestionInfo])
async def list_pending_suggestions(
    request: Request,
    graph_id: str,
    limit: int = 50,
) -> list[SuggestionInfo]:
    """Pending suggestions, highest priority first."""
    store = get_suggestion_store(request)
    suggestions = await store.find_pending(graph_id, limit=max(1, min(limit, 200)))
    return [SuggestionInfo.from_suggestion(s) for s in suggestions]


@router.post("/v1/suggestions/{suggestion_id}/feedback", response_model=FeedbackResponse)
async def submit_feedback(
    request: Request,
    suggestion_id: str,
    body: FeedbackRequest,
) -> FeedbackResponse:
    """
    Record a user decision.

    Actions:
    - accept / modify: the relationship is real (modify corrects its type)
    - reject: the relationship is wrong
    - dismiss: hide without a verdict; ignored by learning
    """
    try:
        feedback = await get_learning(request).record_feedback(
            suggestion_id=suggestion_id,
            action=body.action,
            user_id=body.user_id,
            modified_type=body.modified_type,
            modified_strength=body.modified_strength,
            feedback_text=body.feedback_text,
            created_relationship_id=body.created_relationship_id,
        )
    except SuggestionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return FeedbackResponse(
        feedback_id=feedback.id,
        suggestion_id=suggestion_id,
        action=feedback.action,
        learning_value=feedback.learning_value(),
        quality_score=feedback.quality_score(),
    )


# ============================================================================
# Learning
# ============================================================================


@router.get("/v1/graphs/{graph_id}/learning/metrics", response_model=MetricsResponse)
async def get_metrics(request: Request, graph_id: str) -> MetricsResponse:
    metrics = await get_learning(request).get_accuracy_metrics(graph_id)
    return MetricsResponse(**metrics.to_dict())


@router.get("/v1/graphs/{graph_id}/learning/weights")
async def get_weights(
    request: Request,
    graph_id: str,
    relationship_type: str | None = None,
) -> dict[str, float]:
    weights = await get_learning(request).get_optimal_weights(graph_id, relationship_type)
    return {feature_type.value: weight for feature_type, weight in weights.items()}


@router.get("/v1/graphs/{graph_id}/learning/stats")
async def get_learning_stats(request: Request, graph_id: str) -> dict:
    return await get_learning(request).get_learning_statistics(graph_id)


@router.post("/v1/graphs/{graph_id}/learning/update")
async def update_weights(request: Request, graph_id: str) -> dict[str, float]:
    """Recompute weights now, ignoring the cooldown."""
    weights = await get_learning(request).update_weights(graph_id)
    return {feature_type.value: weight for feature_type, weight in weights.items()}


@router.post("/v1/graphs/{graph_id}/learning/reset")
async def reset_learning(request: Request, graph_id: str) -> dict:
    reset = await get_learning(request).reset_learning(graph_id)
    if not reset:
        raise HTTPException(status_code=500, detail="Failed to reset learning data")
    return {"graph_id": graph_id, "reset": True}


# ============================================================================
# Admin Endpoints
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint."""
    db = getattr(request.app.state, "db", None)
    try:
        # Try a simple query to verify connection
        await db.execute_query("RETURN 1 as n")
        neo4j_connected = True
    except Exception:
        neo4j_connected = False

    return HealthResponse(
        status="healthy" if neo4j_connected else "degraded",
        neo4j_connected=neo4j_connected,
        scheduler_running=get_scheduler(request).is_running,
    )
