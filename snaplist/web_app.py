"""
SnapList Web App
================
Flask application factory exposing the lifecycle engine over JSON.

    flask --app snaplist.web_app run
"""

from typing import Optional

import structlog
from flask import Flask, jsonify

from .config import AppConfig
from .errors import (
    ListingNotFoundError,
    PayoutNotFoundError,
    SettlementNotFoundError,
    ValidationError,
)
from .events import configure_logging
from .routes import BLUEPRINTS
from .services import Services, build_services


logger = structlog.get_logger(__name__)


def create_app(services: Optional[Services] = None) -> Flask:
    """
    Build the Flask app.

    Args:
        services: Pre-built services (tests); built from the environment otherwise
    """
    if services is None:
        config = AppConfig.from_env()
        configure_logging(config.log_level, config.json_logs)
        config.validate()
        services = build_services(config)

    app = Flask(__name__)
    app.config["SERVICES"] = services

    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)

    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        return jsonify({"success": False, "message": error.reason}), 400

    @app.errorhandler(ListingNotFoundError)
    @app.errorhandler(PayoutNotFoundError)
    @app.errorhandler(SettlementNotFoundError)
    def handle_not_found(error):
        return jsonify({"success": False, "message": str(error)}), 404

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "marketplaces": sorted(services.adapters)})

    logger.info("app_initialized", marketplaces=sorted(services.adapters))
    return app
