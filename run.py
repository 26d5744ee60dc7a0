import json
import os
import logging
from flask import Flask
from animetracker.repo import SqliteRepo
from animetracker.tokens import TokenService
from animetracker.service import AnimeService, UserService
from animetracker.auth import init_auth
from animetracker.web import register_routes, register_error_handlers

DEFAULT_SECRET = "dev-jwt-secret"

DEFAULT_CFG = {
    "database": "data/anime.db",
    "debug": True,
    "host": "127.0.0.1",
    "port": 5000,
    "logging_level": "INFO",
    "jwt_secret": DEFAULT_SECRET,
    "token_lifetime_hours": 24,
    "bcrypt_rounds": 12,
    "cookie_name": "token",
    "cookie_secure": False,
}

logger = logging.getLogger(__name__)

def load_config(path="config.json"):
    cfg = DEFAULT_CFG.copy()
    if not os.path.exists(path):
        logger.info("%s not found - using defaults", path)
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                cfg.update(json.load(f))
        except (OSError, ValueError) as e:
            logger.warning("Failed to read %s: %s - using defaults", path, e)
    # environment wins over the file
    if os.environ.get("JWT_SECRET"):
        cfg["jwt_secret"] = os.environ["JWT_SECRET"]
    if os.environ.get("DATABASE"):
        cfg["database"] = os.environ["DATABASE"]
    return cfg

def configure_logging(level_name: str, debug: bool = False):
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # quieter werkzeug when not debugging
    logging.getLogger("werkzeug").setLevel(logging.INFO if debug else logging.WARNING)

def create_app(overrides=None, repo=None):
    """
    Build the Flask app. ``overrides`` is merged over the loaded config,
    ``repo`` replaces the sqlite repository (tests pass an InMemoryRepo).
    """
    cfg = load_config()
    if overrides:
        cfg.update(overrides)
    configure_logging(cfg.get("logging_level", "INFO"), cfg.get("debug", False))
    logger.info("Starting app with config: %s",
                {k: v for k, v in cfg.items() if k not in ("database", "jwt_secret")})
    if cfg["jwt_secret"] == DEFAULT_SECRET:
        logger.warning("Using the built-in JWT secret; set JWT_SECRET in production")

    app = Flask(__name__)
    if repo is None:
        repo = SqliteRepo(cfg["database"])
    repo.init_schema()

    tokens = TokenService(cfg["jwt_secret"], lifetime_hours=cfg["token_lifetime_hours"])
    app.config["TOKEN_COOKIE"] = cfg["cookie_name"]
    app.config["TOKEN_LIFETIME"] = tokens.lifetime
    app.config["COOKIE_SECURE"] = cfg["cookie_secure"]

    init_auth(app, tokens, cookie_name=cfg["cookie_name"])
    register_routes(app, AnimeService(repo), UserService(repo, tokens, bcrypt_rounds=cfg["bcrypt_rounds"]))
    register_error_handlers(app)
    return app

if __name__ == "__main__":
    cfg = load_config()
    app = create_app()
    app.run(host=cfg.get("host", "127.0.0.1"), port=cfg.get("port", 5000), debug=cfg.get("debug", True))
