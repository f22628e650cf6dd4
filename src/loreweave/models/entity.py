"""Entity model - read-only view of story entities owned by the graph store."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

EntityType = Literal["character", "location", "faction", "event", "artifact", "concept"]


def parse_datetime(value: Any) -> datetime | None:
    """Parse datetime from various formats (string, Neo4j DateTime, or native datetime)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    # Neo4j DateTime object - convert to Python datetime
    if hasattr(value, "to_native"):
        return value.to_native()
    return datetime.fromisoformat(str(value))


@dataclass
class Entity:
    """
    A character, location, faction or event in one story graph.

    Examples: "Luke Skywalker" (character), "Tatooine" (location)
    """

    id: str
    graph_id: str
    name: str  # Canonical name, used for mention matching
    entity_type: str
    importance: float = 50.0  # 0-100

    def to_dict(self) -> dict:
        """Convert to dictionary for Neo4j storage."""
        return {
            "id": self.id,
            "graph_id": self.graph_id,
            "name": self.name,
            "entity_type": self.entity_type,
            "importance": self.importance,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Entity":
        """Create from dictionary (Neo4j record)."""
        return cls(
            id=data["id"],
            graph_id=data["graph_id"],
            name=data["name"],
            entity_type=data.get("entity_type", "character"),
            importance=float(data.get("importance") or 0.0),
        )
