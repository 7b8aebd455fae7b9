from __future__ import annotations

import atexit
import dataclasses
import logging
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from app.blueprints.api.cache import cache_api
from app.config import AppConfig, load_config, setup_logging
from app.domain.exceptions import ConfigurationError
from app.utils.http import exception_response

logger = logging.getLogger(__name__)


def _apply_overrides(config: AppConfig, overrides: dict[str, Any]) -> AppConfig:
    """Return *config* with overrides applied; keys match field names case-insensitively."""
    fields = {f.name.lower(): f.name for f in dataclasses.fields(config)}
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        name = fields.get(key.lower())
        if name is None:
            raise ConfigurationError(f"Unknown configuration override: {key}")
        changes[name] = value
    return dataclasses.replace(config, **changes)


def create_app(config_overrides: dict[str, Any] | None = None) -> Flask:
    config = load_config()
    if config_overrides:
        config = _apply_overrides(config, config_overrides)

    # Before the container so startup shows up in the console and farmrod.log
    setup_logging(debug=config.DEBUG, log_dir=config.log_dir, level=config.log_level)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())

    from app.services.container import ServiceContainer

    container = ServiceContainer.build(config)
    flask_app.config["CONTAINER"] = container
    container.database.init_app(flask_app)
    atexit.register(container.shutdown)

    # JSON envelope for every error under /api/, routing errors included
    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        if request.path.startswith("/api/"):
            return exception_response(exc, fallback_message="Unhandled API error")
        if isinstance(exc, HTTPException):
            return exc
        raise exc

    flask_app.register_blueprint(cache_api, url_prefix="/api")
    for rule in sorted(flask_app.url_map.iter_rules(), key=lambda r: r.rule):
        if rule.endpoint.startswith(f"{cache_api.name}."):
            logger.debug("Route %s %s", ",".join(sorted(rule.methods - {"HEAD", "OPTIONS"})), rule.rule)

    logger.info("FarmRod advisor initialized (generator=%s).", container.suggestion_generator.model_tag)
    return flask_app


__all__ = ["create_app"]
