#!/usr/bin/env python3
"""Run suggestion generation and learning maintenance from the command line.

Runs jobs in-process against Neo4j, without the API server.

Usage:
    # Generate suggestions for one graph and wait for the job
    uv run python scripts/suggestions.py generate graph-123

    # Generate for every graph
    uv run python scripts/suggestions.py refresh

    # Accuracy metrics and learned weights
    uv run python scripts/suggestions.py metrics graph-123

    # Recompute weights now, or drop them
    uv run python scripts/suggestions.py update-weights graph-123
    uv run python scripts/suggestions.py reset graph-123

    # Progress of a job run by the API (requires REDIS_URL)
    uv run python scripts/suggestions.py progress graph-123
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from loreweave.config import settings
from loreweave.learning import LearningEngine
from loreweave.prediction import FeatureExtractor, RelationshipPredictor, SuggestionConfig
from loreweave.scheduler import SuggestionScheduler
from loreweave.storage import (
    Neo4jClient,
    Neo4jGraphStore,
    Neo4jSuggestionStore,
    RedisCache,
    create_cache,
)

logger = logging.getLogger(__name__)


async def run(args: argparse.Namespace) -> int:
    config = SuggestionConfig.from_settings(settings)
    if args.no_pause:
        config.scheduler.batch_pause = 0.0
        config.scheduler.refresh_stagger = 0.0

    db = Neo4jClient()
    await db.connect()
    cache = create_cache(settings.redis_url, default_ttl=config.scheduler.progress_ttl)

    try:
        graph_store = Neo4jGraphStore(db)
        suggestion_store = Neo4jSuggestionStore(db)
        predictor = RelationshipPredictor(
            graph_store,
            suggestion_store,
            FeatureExtractor(graph_store, config.features),
            config.prediction,
        )
        scheduler = SuggestionScheduler(graph_store, predictor, cache, config.scheduler)
        learning = LearningEngine(suggestion_store, cache, config.learning)

        if args.command == "generate":
            if not await scheduler.schedule_generation_job(args.graph_id):
                logger.error(f"Could not schedule a job for graph {args.graph_id}")
                return 1
            await scheduler.start()
            await scheduler.join()
            await scheduler.stop()
            progress = await scheduler.get_progress(args.graph_id)
            print(json.dumps(progress.to_dict() if progress else {}, indent=2))
            return 0 if progress and progress.status.value == "completed" else 1

        if args.command == "refresh":
            await scheduler.start()
            scheduled = await scheduler.refresh_all_graphs()
            await scheduler.join()
            await scheduler.stop()
            print(f"Processed {scheduled} graph(s)")
            return 0

        if args.command == "progress":
            progress = await scheduler.get_progress(args.graph_id)
            if progress is None:
                print(f"No generation job for graph {args.graph_id}")
                return 1
            print(json.dumps(progress.to_dict(), indent=2))
            return 0

        if args.command == "metrics":
            stats = await learning.get_learning_statistics(args.graph_id)
            stats["prediction"] = await predictor.prediction_statistics(args.graph_id)
            print(json.dumps(stats, indent=2))
            return 0

        if args.command == "update-weights":
            weights = await learning.update_weights(args.graph_id)
            print(json.dumps({ft.value: w for ft, w in weights.items()}, indent=2))
            return 0

        if args.command == "reset":
            return 0 if await learning.reset_learning(args.graph_id) else 1

        return 2
    finally:
        if isinstance(cache, RedisCache):
            await cache.close()
        await db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Relationship suggestion maintenance")
    parser.add_argument(
        "--no-pause",
        action="store_true",
        help="Skip the pauses between batches and graphs",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (
        ("generate", "Generate suggestions for one graph"),
        ("progress", "Show the progress of a graph's job"),
        ("metrics", "Show accuracy metrics and weights"),
        ("update-weights", "Recompute learned weights now"),
        ("reset", "Drop learned weights for a graph"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("graph_id", help="Graph identifier")
    subparsers.add_parser("refresh", help="Generate suggestions for every graph")
    return parser


def main() -> None:
    args = build_parser().parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
