"""FastAPI application for Loreweave API.

Runs the suggestion scheduler workers in-process and exposes job control,
review feedback and learning endpoints.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from loreweave.ai import LLMClient, LLMTypeClassifier
from loreweave.api.routes import router
from loreweave.config import Settings, settings
from loreweave.learning import LearningEngine
from loreweave.prediction import FeatureExtractor, RelationshipPredictor, SuggestionConfig
from loreweave.scheduler import SuggestionScheduler
from loreweave.storage import (
    EphemeralCache,
    Neo4jClient,
    Neo4jGraphStore,
    Neo4jSuggestionStore,
    RedisCache,
    create_cache,
)

logger = logging.getLogger(__name__)


def build_components(app: FastAPI, db: Neo4jClient, cache: EphemeralCache, config: Settings) -> None:
    """Wire stores, predictor, learning engine and scheduler into app state."""
    suggestion_config = SuggestionConfig.from_settings(config)
    graph_store = Neo4jGraphStore(db)
    suggestion_store = Neo4jSuggestionStore(db)

    classifier = None
    if config.llm_enabled:
        classifier = LLMTypeClassifier(LLMClient())
        logger.info(f"LLM type refinement enabled ({config.llm_model})")

    extractor = FeatureExtractor(graph_store, suggestion_config.features)
    predictor = RelationshipPredictor(
        graph_store,
        suggestion_store,
        extractor,
        suggestion_config.prediction,
        classifier=classifier,
    )

    app.state.db = db
    app.state.cache = cache
    app.state.classifier = classifier
    app.state.suggestion_store = suggestion_store
    app.state.predictor = predictor
    app.state.learning = LearningEngine(suggestion_store, cache, suggestion_config.learning)
    app.state.scheduler = SuggestionScheduler(
        graph_store, predictor, cache, suggestion_config.scheduler
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan - startup and shutdown."""
    # Startup
    logger.info("Starting Loreweave API...")

    db = Neo4jClient()
    await db.connect()
    await db.setup_schema()

    cache = create_cache(settings.redis_url, default_ttl=settings.generation_progress_ttl)
    build_components(app, db, cache, settings)

    await app.state.scheduler.start(periodic_refresh=True)

    yield

    # Shutdown
    logger.info("Shutting down Loreweave API...")
    await app.state.scheduler.stop()
    if app.state.classifier is not None:
        await app.state.classifier.llm.close()
    if isinstance(cache, RedisCache):
        await cache.close()
    await db.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Loreweave",
        description="Predictive relationship suggestions for story knowledge graphs",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    uvicorn.run(
        "loreweave.api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
