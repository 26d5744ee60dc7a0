# animetracker/auth.py
from flask import g, request, jsonify, redirect, url_for
from animetracker.errors import AuthError
from animetracker.tokens import TokenService
import logging

logger = logging.getLogger(__name__)

API_PREFIXES = ("/anime",)
UI_PREFIXES = ("/dashboard",)

def _matches(path: str, prefixes) -> bool:
    return any(path == p or path.startswith(p + "/") for p in prefixes)

def init_auth(app, tokens: TokenService, cookie_name: str = "token",
              api_prefixes=API_PREFIXES, ui_prefixes=UI_PREFIXES):
    """
    Install the auth gate in front of every request.

    Without a token cookie protected API paths answer 401 and protected UI
    paths redirect to the login page. A token that fails verification answers
    401 on every protected path. On success the verified subject id is
    stored in ``g.user_id`` for the handlers.
    """
    app.config["AUTH_API_PREFIXES"] = tuple(api_prefixes)
    app.config["AUTH_UI_PREFIXES"] = tuple(ui_prefixes)

    @app.before_request
    def auth_gate():
        path = request.path
        is_api = _matches(path, api_prefixes)
        is_ui = _matches(path, ui_prefixes)
        if not (is_api or is_ui):
            return None

        token = request.cookies.get(cookie_name)
        if not token:
            logger.debug("auth_gate: no token for %s", path)
            if is_api:
                return jsonify({"error": "unauthorized"}), 401
            return redirect(url_for("main.index"))

        try:
            g.user_id = tokens.verify(token)
        except AuthError as e:
            logger.info("auth_gate: rejected token for %s: %s", path, e)
            return jsonify({"error": str(e)}), 401
        return None

def current_user_id() -> int:
    """Subject id verified by the auth gate for this request."""
    uid = g.get("user_id")
    if uid is None:
        raise AuthError("unauthorized")
    return uid
