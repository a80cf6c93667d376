"""Composition root: logging setup and store construction.

Call ``configure_logging`` once at process start, then ``create_store`` to
build the storage medium, persister and store. Collaborators receive the
store as a parameter; there is no module-level store instance.
"""

import logging

import structlog

from src.config.settings import Environment, Settings, get_settings
from src.store.safety_store import SafetyStore
from src.store.storage import FileKeyValueStorage, KeyValueStorage, SnapshotPersister

_LOG_NAME_TO_LEVEL: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def configure_logging(settings: Settings | None = None) -> None:
    """Configure structlog and the stdlib root logger from settings."""
    settings = settings or get_settings()
    level = _LOG_NAME_TO_LEVEL[settings.LOG_LEVEL.value]

    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if settings.ENVIRONMENT == Environment.DEV
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def create_store(
    settings: Settings | None = None,
    storage: KeyValueStorage | None = None,
) -> SafetyStore:
    """Build a store bound to ``storage`` and rehydrate any saved snapshot.

    Defaults to file storage under ``settings.STORAGE_PATH``.
    """
    settings = settings or get_settings()
    medium = storage if storage is not None else FileKeyValueStorage(settings.STORAGE_PATH)
    persister = SnapshotPersister(medium, settings.STORAGE_NAME)
    store = SafetyStore.from_storage(persister, settings=settings)
    structlog.get_logger().info(
        "store_ready",
        storage=type(medium).__name__,
        name=settings.STORAGE_NAME,
        hazards=len(store.hazards),
    )
    return store
