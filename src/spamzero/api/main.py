from contextlib import asynccontextmanager, ExitStack
import logging
from typing import Final
from fastapi import FastAPI

from spamzero.api import classifier, config, metrics, static_config, store
from spamzero.api.errors import register_exception_handlers
from spamzero.api.logs import configure_logging
from spamzero.api.middleware import RequestContextMiddleware
from spamzero.api import routes

logger = logging.getLogger(f"{static_config.API_TITLE}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager for the SpamZero API.

    This is the composition root: it builds every shared runtime component
    once at startup, publishes it on `app.state`, and releases it at
    shutdown.

    - Settings are loaded first; a missing `SPAMZERO_MONGODB_URI` aborts
      startup here.
    - Structured logging is configured before any request handling.
    - The MongoDB client behind the history store and the HTTP client behind
      the remote classifier are opened as scoped resources and closed, in
      reverse order, when the application stops.

    Notes
    -----
    Settings, metrics, store and classifier factories all respect test-time
    overrides defined via `app.dependency_overrides`.
    """
    settings: config.Settings = app.dependency_overrides.get(
        config.get_settings, config.get_settings
    )()
    app.state.settings = settings

    configure_logging(json_logs=settings.LOG_JSON, level=settings.LOG_LEVEL)
    logger.info("Loaded settings")

    metrics_manager: metrics.MetricsManager = app.dependency_overrides.get(
        metrics.get_metrics_manager, metrics.get_metrics_manager
    )()
    app.state.metrics_manager = metrics_manager
    logger.info("Loaded metrics manager")

    store_opener: store.StoreOpener = app.dependency_overrides.get(
        store.get_store_opener, store.get_store_opener
    )()
    classifier_opener: classifier.ClassifierOpener = app.dependency_overrides.get(
        classifier.get_classifier_opener, classifier.get_classifier_opener
    )()

    with ExitStack() as resources:
        app.state.store = resources.enter_context(store_opener(settings))
        app.state.classifier = resources.enter_context(
            classifier_opener(settings, metrics_manager)
        )
        logger.info("SpamZero API ready")

        yield

    logger.info("Released history store and classifier")


app: Final[FastAPI] = FastAPI(
    lifespan=lifespan, title=static_config.API_TITLE, version=static_config.API_VERSION
)

register_exception_handlers(app)

app.add_middleware(RequestContextMiddleware)

app.include_router(routes.router)
