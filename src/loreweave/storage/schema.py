"""Neo4j schema setup - constraints and indexes for the suggestion core."""

# Uniqueness constraints
SCHEMA_QUERIES = [
    "CREATE CONSTRAINT entity_id IF NOT EXISTS FOR (e:Entity) REQUIRE e.id IS UNIQUE",
    "CREATE CONSTRAINT suggestion_id IF NOT EXISTS FOR (s:Suggestion) REQUIRE s.id IS UNIQUE",
    # At most one suggestion per unordered pair per suggested type
    (
        "CREATE CONSTRAINT suggestion_pair_type IF NOT EXISTS "
        "FOR (s:Suggestion) REQUIRE s.pair_type_key IS UNIQUE"
    ),
    "CREATE CONSTRAINT feedback_id IF NOT EXISTS FOR (f:SuggestionFeedback) REQUIRE f.id IS UNIQUE",
    # One decision per suggestion
    (
        "CREATE CONSTRAINT feedback_suggestion IF NOT EXISTS "
        "FOR (f:SuggestionFeedback) REQUIRE f.suggestion_id IS UNIQUE"
    ),
    (
        "CREATE CONSTRAINT learning_weight_key IF NOT EXISTS "
        "FOR (w:LearningWeight) REQUIRE w.weight_key IS UNIQUE"
    ),
]

INDEX_QUERIES = [
    "CREATE INDEX entity_graph IF NOT EXISTS FOR (e:Entity) ON (e.graph_id)",
    "CREATE INDEX suggestion_graph_status IF NOT EXISTS FOR (s:Suggestion) ON (s.graph_id, s.status)",
    "CREATE INDEX suggestion_pair IF NOT EXISTS FOR (s:Suggestion) ON (s.pair_key)",
    "CREATE INDEX feedback_graph IF NOT EXISTS FOR (f:SuggestionFeedback) ON (f.graph_id)",
    "CREATE INDEX timeline_graph IF NOT EXISTS FOR (t:TimelineEvent) ON (t.graph_id)",
]

# Graph layout read by the stores:
# (e:Entity {id, graph_id, name, entity_type, importance})
# (e1:Entity)-[:RELATES_TO {type: "member_of"}]->(e2:Entity)
# (f:Fragment {id, text})-[:MENTIONS]->(e:Entity)
# (t:TimelineEvent {id, graph_id, timestamp})-[:INVOLVES]->(e:Entity)
# (s:Suggestion)-[:HAS_FEATURE]->(sf:SuggestionFeature)
# (fb:SuggestionFeedback)-[:ABOUT]->(s:Suggestion)
# (w:LearningWeight {weight_key: "graph|feature|relationship_type"})


def get_all_schema_queries() -> list[str]:
    """Get all schema setup queries."""
    return SCHEMA_QUERIES + INDEX_QUERIES
