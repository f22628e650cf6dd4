"""Error taxonomy for the suggestion core."""


class SuggestionError(Exception):
    """Base class for all suggestion core errors."""


class ValidationError(SuggestionError, ValueError):
    """Rejected input: never persisted, raised synchronously to the caller."""


class InvalidPairError(ValidationError):
    """An entity was paired with itself."""

    def __init__(self, entity_id: str) -> None:
        super().__init__(f"Cannot relate entity {entity_id} to itself")
        self.entity_id = entity_id


class EntityNotFoundError(ValidationError):
    """Entity is unknown in the requested graph."""

    def __init__(self, entity_id: str, graph_id: str | None = None) -> None:
        where = f" in graph {graph_id}" if graph_id is not None else ""
        super().__init__(f"Entity not found: {entity_id}{where}")
        self.entity_id = entity_id
        self.graph_id = graph_id


class SuggestionNotFoundError(ValidationError):
    """Suggestion id does not exist."""

    def __init__(self, suggestion_id: str) -> None:
        super().__init__(f"Suggestion not found: {suggestion_id}")
        self.suggestion_id = suggestion_id


class ComputationError(SuggestionError):
    """Feature query or classifier failure for a single pair."""


class PersistenceError(SuggestionError):
    """A store read or write failed."""
