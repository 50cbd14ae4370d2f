"""
Logging configuration for the Summer Camp Planner
"""
import logging
import logging.config
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional

import structlog
from pythonjsonlogger import jsonlogger

from .config import Settings, get_settings


def _file_handler(level: str, formatter: str, filename: Path) -> dict[str, Any]:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": formatter,
        "filename": filename,
        "maxBytes": 10485760,  # 10MB
        "backupCount": 5,
        "encoding": "utf8"
    }


def build_logging_config(settings: Settings) -> dict[str, Any]:
    """Build the dictConfig for the given settings"""
    app_level = "DEBUG" if settings.DEBUG else settings.LOG_LEVEL

    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": app_level,
            "formatter": "standard",
            "stream": sys.stdout
        }
    }
    app_handlers = ["console"]
    root_handlers = ["console"]

    if settings.LOG_TO_FILE or settings.LOG_JSON:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)

        if settings.LOG_TO_FILE:
            handlers["file_info"] = _file_handler("INFO", "detailed", log_dir / "planner.log")
            handlers["file_error"] = _file_handler("ERROR", "detailed", log_dir / "planner_errors.log")
            app_handlers += ["file_info", "file_error"]
            root_handlers += ["file_info", "file_error"]

        if settings.LOG_JSON:
            handlers["json_file"] = _file_handler("INFO", "json", log_dir / "planner_structured.log")
            app_handlers.append("json_file")

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "detailed": {
                "format": "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(funcName)s(): %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "json": {
                "()": jsonlogger.JsonFormatter,
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s %(pathname)s %(lineno)d %(funcName)s"
            }
        },
        "handlers": handlers,
        "loggers": {
            "": {
                "level": settings.LOG_LEVEL,
                "handlers": root_handlers,
                "propagate": False
            },
            "summer_planner": {
                "level": app_level,
                "handlers": app_handlers,
                "propagate": False
            },
            "planner.events": {
                "level": app_level,
                "handlers": app_handlers,
                "propagate": False
            },
            "uvicorn": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False
            },
            "httpx": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False
            }
        }
    }


def setup_logging(settings: Optional[Settings] = None):
    """Setup structured logging configuration"""
    settings = settings or get_settings()

    logging.config.dictConfig(build_logging_config(settings))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = logging.getLogger("summer_planner")
    logger.info(f"Logging configured - Debug: {settings.DEBUG}")


class PlannerEventLogger:
    """Structured events for store mutations, authorization and previews"""

    def __init__(self, logger_name: str = "planner.events"):
        self.logger = logging.getLogger(logger_name)
        self.structured_logger = structlog.get_logger(logger_name)

    def log_mutation(self, collection: str, operation: str, owner_id: str, entity_id: Optional[str] = None):
        """Log a successful store mutation"""
        self.structured_logger.info(
            "mutation_applied",
            collection=collection,
            operation=operation,
            owner_id=owner_id,
            entity_id=entity_id,
            timestamp=datetime.now().isoformat()
        )

    def log_dropped_fields(self, collection: str, fields: Iterable[str]):
        """Log update fields outside the allow-list"""
        self.structured_logger.warning(
            "update_fields_dropped",
            collection=collection,
            fields=sorted(fields),
            timestamp=datetime.now().isoformat()
        )

    def log_ownership_violation(self, collection: str, entity_id: str, caller_id: str, operation: str = "delete"):
        """Log an authorization failure"""
        self.structured_logger.warning(
            "ownership_violation",
            collection=collection,
            entity_id=entity_id,
            caller_id=caller_id,
            operation=operation,
            timestamp=datetime.now().isoformat()
        )

    def log_preview_commit(self, applied: int, total: int):
        self.structured_logger.info(
            "preview_committed",
            applied=applied,
            total=total,
            timestamp=datetime.now().isoformat()
        )

    def log_preview_commit_failed(self, failed_index: int, applied: int, total: int, error_kind: str):
        self.structured_logger.warning(
            "preview_commit_failed",
            failed_index=failed_index,
            applied=applied,
            total=total,
            error_kind=error_kind,
            timestamp=datetime.now().isoformat()
        )

    def log_invalidation(self, topic: str, subscriber_count: int):
        self.structured_logger.debug(
            "invalidation_published",
            topic=topic,
            subscribers=subscriber_count,
            timestamp=datetime.now().isoformat()
        )


class RequestLogger:
    """Logger for API request/response tracking"""

    def __init__(self):
        self.logger = logging.getLogger("summer_planner.requests")

    async def log_request(self, request, call_next):
        """Middleware for logging requests"""
        start_time = datetime.now()

        response = await call_next(request)

        duration = (datetime.now() - start_time).total_seconds()
        if response.status_code >= 400:
            self.logger.warning(
                f"Request completed with error: {request.method} {request.url.path} "
                f"-> {response.status_code} in {duration:.3f}s"
            )
        else:
            self.logger.info(
                f"Request completed: {request.method} {request.url.path} "
                f"-> {response.status_code} in {duration:.3f}s"
            )

        return response


# Export logger instances
event_logger = PlannerEventLogger()
request_logger = RequestLogger()
