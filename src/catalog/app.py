import logging

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from catalog.blob import BlobStore
from catalog.config import Config
from catalog.config import config as default_config
from catalog.db import Database
from catalog.errors import CatalogError, PayloadTooLarge, classify_error
from catalog.instrument import InstrumentRepository
from catalog.log import configure_logging
from catalog.services import FileService, MaintenanceService

logger = logging.getLogger(__name__)

CORS_METHODS = "GET, POST, DELETE, OPTIONS"


def create_app(config: Config = None, database: Database = None) -> Flask:
    """Application factory."""
    config = config or default_config
    configure_logging(config.log_level)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.request_max_bytes
    app.catalog_config = config

    # Storage client and the components built on it
    app.database = database or Database(config.database_url, config.db_connect_timeout)
    app.instruments = InstrumentRepository(app.database)
    app.blobs = BlobStore(app.database, chunk_size=config.chunk_size)
    app.files = FileService(app.blobs, max_bytes=config.upload_max_bytes)
    app.maintenance = MaintenanceService(app.database, app.instruments, app.blobs)

    # Register blueprints
    from catalog.api.routes.files import bp as files_bp
    from catalog.api.routes.health import bp as health_bp
    from catalog.api.routes.instruments import bp as instruments_bp

    app.register_blueprint(health_bp, url_prefix="/api")
    app.register_blueprint(instruments_bp, url_prefix="/api/instruments")
    app.register_blueprint(files_bp, url_prefix="/api")

    @app.before_request
    def log_request():
        if request.path != "/api/health":
            logger.info("%s %s", request.method, request.full_path.rstrip("?"))

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = config.cors_origins
        response.headers["Access-Control-Allow-Methods"] = CORS_METHODS
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.errorhandler(CatalogError)
    def handle_catalog_error(error: CatalogError):
        if error.status_code == 507:
            logger.warning("%s %s hit storage capacity: %s", request.method, request.path, error.message)
        elif error.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.path, error.message)
        elif error.status_code == 413:
            logger.warning("%s %s rejected: %s", request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(error: RequestEntityTooLarge):
        return handle_catalog_error(PayloadTooLarge("Request body too large"))

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return jsonify({"error": error.description, "code": error.name}), error.code
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return handle_catalog_error(classify_error(error))

    return app
