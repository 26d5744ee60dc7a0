# animetracker/web.py
from flask import Blueprint, render_template, request, jsonify, current_app, redirect, url_for
from werkzeug.exceptions import HTTPException
from animetracker.service import AnimeService, UserService, MAX_SQL_INT
from animetracker.errors import AppError, ValidationError, NotFoundError, PersistenceError
from animetracker.auth import current_user_id, API_PREFIXES
import logging

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__, url_prefix="", template_folder="templates")  # blueprint name = 'main'

ANIME_FIELDS = ("title", "saison", "episodeWatched", "episodeTotal", "status")

def register_routes(app, anime_service: AnimeService, user_service: UserService):
    """
    Register blueprint and ensure both services are in app.config.
    Call this once during app creation (run.create_app does this).
    """
    app.config.setdefault("ANIME_SERVICE", anime_service)
    app.config.setdefault("USER_SERVICE", user_service)
    app.register_blueprint(bp)
    logger.debug("Registered blueprint 'main' and injected services")

def _is_api(path: str) -> bool:
    prefixes = ("/auth",) + tuple(current_app.config.get("AUTH_API_PREFIXES", API_PREFIXES))
    return any(path == p or path.startswith(p + "/") for p in prefixes)

def register_error_handlers(app):
    """Centralized handlers for service exceptions."""
    @app.errorhandler(AppError)
    def handle_app_error(e):
        if isinstance(e, PersistenceError):
            logger.error("PersistenceError: %s", e)
            return jsonify({"error": "internal server error"}), 500
        if isinstance(e, NotFoundError):
            logger.info("NotFoundError: %s", e)
        else:
            logger.warning("%s: %s", type(e).__name__, e)
        return jsonify({"error": str(e)}), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        if e.code == 404:
            if _is_api(request.path):
                return jsonify({"error": "not found"}), 404
            return render_template("404.html"), 404
        return e

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "internal server error"}), 500

# helpers to get service instances
def anime_service() -> AnimeService:
    return current_app.config["ANIME_SERVICE"]

def user_service() -> UserService:
    return current_app.config["USER_SERVICE"]

def _body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError("request body must be a JSON object")
    return data

def _require_fields(data: dict, names) -> None:
    missing = [n for n in names if data.get(n) is None]
    if missing:
        raise ValidationError("missing fields: " + ", ".join(missing))

def _parse_id(raw: str) -> int:
    try:
        anime_id = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("invalid anime id") from None
    if anime_id <= 0 or anime_id > MAX_SQL_INT:
        raise ValidationError("invalid anime id")
    return anime_id

def _with_token_cookie(payload: dict, status: int):
    resp = jsonify(payload)
    cfg = current_app.config
    resp.set_cookie(
        cfg["TOKEN_COOKIE"], payload["token"],
        max_age=int(cfg["TOKEN_LIFETIME"].total_seconds()),
        httponly=True, samesite="Lax", secure=cfg.get("COOKIE_SECURE", False),
    )
    return resp, status

# -----------------------
# Pages
# -----------------------
@bp.route("/")
def index():
    return render_template("index.html")

@bp.route("/dashboard")
def dashboard():
    try:
        user = user_service().get_user(current_user_id())
    except NotFoundError:
        # token outlived its account
        return redirect(url_for("main.index"))
    animes = anime_service().list_animes_for_user(user.id)
    return render_template("dashboard.html", user=user, animes=animes)

# -----------------------
# Auth
# -----------------------
@bp.route("/auth/register", methods=["POST"])
def register():
    data = _body()
    _require_fields(data, ("username", "email", "password"))
    result = user_service().register(data["username"], data["email"], data["password"],
                                     password_confirm=data.get("password2"))
    return _with_token_cookie(result, 201)

@bp.route("/auth/login", methods=["POST"])
def login():
    data = _body()
    _require_fields(data, ("email", "password"))
    result = user_service().login(data["email"], data["password"])
    return _with_token_cookie(result, 201)

@bp.route("/auth/logout", methods=["POST"])
def logout():
    resp = jsonify({"message": "logged out"})
    resp.delete_cookie(current_app.config["TOKEN_COOKIE"])
    return resp, 200

# -----------------------
# Animes
# -----------------------
@bp.route("/anime", methods=["POST"])
def anime_create():
    data = _body()
    _require_fields(data, ANIME_FIELDS)
    anime = anime_service().create_anime(
        current_user_id(), data["title"], data["saison"],
        data["episodeWatched"], data["episodeTotal"], data["status"])
    return jsonify({"message": f"{anime.title} created", "anime": anime.to_dict()}), 201

@bp.route("/anime", methods=["GET"])
def anime_list():
    animes = anime_service().list_animes_for_user(current_user_id())
    return jsonify({"animes": [a.to_dict() for a in animes]}), 200

@bp.route("/anime/<anime_id>", methods=["GET"])
def anime_get(anime_id):
    anime = anime_service().get_anime(_parse_id(anime_id), owner_id=current_user_id())
    return jsonify({"anime": anime.to_dict()}), 200

@bp.route("/anime/<anime_id>", methods=["PUT"])
def anime_update(anime_id):
    aid = _parse_id(anime_id)
    data = _body()
    _require_fields(data, ANIME_FIELDS)
    anime = anime_service().update_anime(
        aid, data["title"], data["saison"], data["episodeWatched"],
        data["episodeTotal"], data["status"], owner_id=current_user_id())
    return jsonify({"message": f"{anime.title} updated", "anime": anime.to_dict()}), 200

@bp.route("/anime/<anime_id>", methods=["DELETE"])
def anime_delete(anime_id):
    anime = anime_service().delete_anime(_parse_id(anime_id), owner_id=current_user_id())
    return jsonify({"message": f"{anime.title} deleted", "anime": anime.to_dict()}), 200
