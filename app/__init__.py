import warnings
from datetime import datetime, timezone
from time import perf_counter
from urllib.parse import urlparse, urlunparse

from flask import Flask, g, request
from sqlalchemy.pool import QueuePool, StaticPool
from werkzeug.middleware.proxy_fix import ProxyFix  # Ensure proxy headers are honored for HTTPS redirects

from config import Config, get_database_uri_from_env

from .cli import register_cli_commands
from .errors import register_error_handlers
from .extensions import cache, compress, limiter, migrate
from .models import db
from .routes.auth import bp as auth_bp
from .routes.heatmap import bp as heatmap_bp
from .routes.me import bp as me_bp
from .routes.missions import bp as missions_bp
from .routes.operator import bp as operator_bp
from .routes.places import bp as places_bp
from .routes.status import bp as status_bp
from .routes.users import bp as users_bp
from .utils.logger import configure_logging

SLOW_REQUEST_THRESHOLD_MS = 300


def _mask_database_uri(uri: str) -> str:
    try:
        parsed = urlparse(uri)
        if parsed.password:
            netloc = parsed.netloc.replace(parsed.password, "***")
            parsed = parsed._replace(netloc=netloc)
        return urlunparse(parsed)
    except ValueError:
        return "<unavailable>"


def _engine_options(app: Flask) -> dict:
    engine_defaults = {
        "pool_size": 5,
        "max_overflow": 5,
        "pool_pre_ping": True,
        "pool_recycle": 280,
    }
    engine_defaults.update(dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS", {})))

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "") or ""
    if database_uri.startswith("sqlite"):
        # SQLite (especially :memory:) does not accept pool sizing parameters.
        for key in ("pool_size", "max_overflow", "pool_recycle"):
            engine_defaults.pop(key, None)

    poolclass = engine_defaults.get("poolclass")
    if poolclass:
        try:
            is_static_pool = issubclass(poolclass, StaticPool)
            is_queue_pool = issubclass(poolclass, QueuePool)
        except TypeError:
            is_static_pool = False
            is_queue_pool = False

        if is_static_pool:
            for key in ("pool_size", "max_overflow", "pool_recycle"):
                engine_defaults.pop(key, None)
        elif not is_queue_pool:
            engine_defaults.pop("pool_size", None)
            engine_defaults.pop("max_overflow", None)

    return engine_defaults


def create_app(config_overrides: dict | None = None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    configure_logging(app.config.get("LOG_DIR"), app.config.get("LOG_LEVEL", "INFO"))
    warnings.filterwarnings("ignore", message="Using the in-memory storage")

    secret_key = app.config.get("SECRET_KEY")
    if app.config.get("TESTING"):
        if not secret_key or secret_key in {"dev", "change-me"}:
            app.config["SECRET_KEY"] = "test-secret-key"
        app.config.setdefault("RATELIMIT_ENABLED", False)
    elif not secret_key or secret_key in {"dev", "change-me"}:
        app.config["SECRET_KEY"] = "dev-secret-key"
        app.logger.warning(
            "[BOOT] SECRET_KEY not provided; using development fallback. Do not use in production."
        )

    app.config["START_TIME"] = datetime.now(timezone.utc)
    app.config.setdefault("COMPRESS_ALGORITHM", ["br", "gzip"])

    if not (config_overrides and config_overrides.get("SQLALCHEMY_DATABASE_URI")):
        database_url, database_source = get_database_uri_from_env()
        if database_url:
            app.config["SQLALCHEMY_DATABASE_URI"] = database_url
            app.logger.info(
                "[BOOT] SQLALCHEMY_DATABASE_URI resolved from %s: %s",
                database_source,
                _mask_database_uri(database_url),
            )
        else:
            app.logger.warning(
                "[BOOT] DATABASE_URL not set. Falling back to %s",
                Config.SQLALCHEMY_DATABASE_URI,
            )

    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = _engine_options(app)

    app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)  # type: ignore[attr-defined]

    db.init_app(app)
    migrate.init_app(app, db)

    redis_url = app.config.get("REDIS_URL")
    cache_config = {"CACHE_DEFAULT_TIMEOUT": app.config["MISSION_CATALOG_CACHE_TIMEOUT"]}
    if redis_url:
        cache_config.update({"CACHE_TYPE": "RedisCache", "CACHE_REDIS_URL": redis_url})
        app.config.setdefault("RATELIMIT_STORAGE_URI", redis_url)
    else:
        cache_config["CACHE_TYPE"] = "SimpleCache"
    cache.init_app(app, config=cache_config)
    compress.init_app(app)
    limiter.init_app(app)

    app.register_blueprint(auth_bp)
    app.register_blueprint(me_bp)
    app.register_blueprint(missions_bp)
    app.register_blueprint(places_bp)
    app.register_blueprint(operator_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(heatmap_bp)
    app.register_blueprint(status_bp)

    register_error_handlers(app)
    register_cli_commands(app)

    if app.config.get("AUTO_CREATE_SCHEMA"):
        with app.app_context():
            db.create_all()
        app.logger.info("[BOOT] Database schema ensured")

    @app.before_request
    def start_request_timer():  # pragma: no cover - tiny helper
        g._request_started_at = perf_counter()

    @app.after_request
    def finalize_response(response):  # pragma: no cover - thin instrumentation
        started_at = getattr(g, "_request_started_at", None)
        if started_at is not None:
            elapsed_ms = (perf_counter() - started_at) * 1000
            if elapsed_ms > SLOW_REQUEST_THRESHOLD_MS:
                app.logger.warning(
                    "[SLOW] %s %s took %.1f ms", request.method, request.path, elapsed_ms
                )
        return response

    return app
