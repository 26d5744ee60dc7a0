# animetracker/service.py
from typing import List, Optional
import logging

import bcrypt

from animetracker.models import User, Anime
from animetracker.repo import RepoError, DuplicateError
from animetracker.tokens import TokenService
from animetracker.errors import (
    ValidationError, NotFoundError, ConflictError, PersistenceError, InvalidCredentialsError,
)

logger = logging.getLogger(__name__)

DEFAULT_BCRYPT_ROUNDS = 12
# sqlite INTEGER is a signed 64-bit value
MAX_SQL_INT = 2**63 - 1
# bcrypt only reads the first 72 bytes
BCRYPT_MAX_BYTES = 72

def _require_text(value, name: str) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} required")
    return value.strip()

def _require_count(value, name: str) -> int:
    # zero is a legitimate value
    if value is None:
        raise ValidationError(f"{name} required")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0")
    if value > MAX_SQL_INT:
        raise ValidationError(f"{name} is too large")
    return value

def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]

def _require_flag(value, name: str) -> bool:
    if value is None:
        raise ValidationError(f"{name} required")
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be a boolean")
    return value


class UserService:
    """
    Registration and login.
    Passwords are hashed with bcrypt; a successful register or login returns a
    token issued by the injected TokenService.
    """

    def __init__(self, repo, tokens: TokenService, bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS):
        self.repo = repo
        self.tokens = tokens
        self.bcrypt_rounds = bcrypt_rounds
        logger.debug("UserService initialized with repo %s", type(repo).__name__)

    def _hash(self, password: str) -> str:
        return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(self.bcrypt_rounds)).decode("utf-8")

    def register(self, username: str, email: str, password: str,
                 password_confirm: Optional[str] = None) -> dict:
        """Create an account. Fails with ConflictError if username or email is taken."""
        username = _require_text(username, "username")
        email = _require_text(email, "email").lower()
        if password is None or not isinstance(password, str) or password == "":
            raise ValidationError("password required")
        if password_confirm is not None and password_confirm != password:
            raise ValidationError("passwords do not match")

        if self.repo.find_user_by_username_or_email(username, email):
            logger.warning("register: username or email already taken (%s)", username)
            raise ConflictError("email or username already in use")

        u = User(id=None, username=username, email=email, password=self._hash(password))
        try:
            created = self.repo.create_user(u)
        except DuplicateError as e:
            logger.warning("register: lost race on unique username/email (%s)", username)
            raise ConflictError("email or username already in use") from e
        except RepoError as e:
            raise PersistenceError(str(e)) from e
        logger.info("Registered user id=%s username=%s", created.id, created.username)
        return {
            "message": "user created",
            "token": self.tokens.issue(created.id, created.email),
            "user": created.public_dict(),
        }

    def login(self, email: str, password: str) -> dict:
        email = _require_text(email, "email").lower()
        if password is None or not isinstance(password, str) or password == "":
            raise ValidationError("password required")
        u = self.repo.find_user_by_email(email)
        if not u:
            logger.debug("login: no user for email")
            raise NotFoundError("user not found")
        if not bcrypt.checkpw(_password_bytes(password), u.password.encode("utf-8")):
            logger.warning("login: wrong password for user id=%s", u.id)
            raise InvalidCredentialsError("incorrect password")
        logger.info("User id=%s logged in", u.id)
        return {
            "message": "login successful",
            "token": self.tokens.issue(u.id, u.email),
            "user": u.public_dict(),
        }

    def get_user(self, user_id: int) -> User:
        """Get a user by id or raise NotFoundError."""
        u = self.repo.get_user(user_id)
        if not u:
            raise NotFoundError("user not found")
        return u


class AnimeService:
    """
    CRUD over anime records.
    Every read/update/delete accepts an optional owner_id; a record owned by
    somebody else is reported exactly like a missing one.
    """

    def __init__(self, repo):
        self.repo = repo
        logger.debug("AnimeService initialized with repo %s", type(repo).__name__)

    def create_anime(self, user_id: int, title: str, saison: int, episode_watched: int,
                     episode_total: int, status: bool) -> Anime:
        a = Anime(id=None, user_id=user_id,
                  title=_require_text(title, "title"),
                  saison=_require_count(saison, "saison"),
                  episode_watched=_require_count(episode_watched, "episodeWatched"),
                  episode_total=_require_count(episode_total, "episodeTotal"),
                  status=_require_flag(status, "status"))
        try:
            created = self.repo.create_anime(a)
        except RepoError as e:
            raise PersistenceError(str(e)) from e
        logger.info("Created anime id=%s title=%s user=%s", created.id, created.title, user_id)
        return created

    def get_anime(self, anime_id: int, owner_id: Optional[int] = None) -> Anime:
        a = self._load(anime_id, owner_id)
        try:
            a.owner = self.repo.get_user(a.user_id)
        except RepoError as e:
            raise PersistenceError(str(e)) from e
        return a

    def list_animes_for_user(self, user_id: int) -> List[Anime]:
        try:
            return self.repo.list_animes_for_user(user_id)
        except RepoError as e:
            raise PersistenceError(str(e)) from e

    def update_anime(self, anime_id: int, title: str, saison: int, episode_watched: int,
                     episode_total: int, status: bool, owner_id: Optional[int] = None) -> Anime:
        """Replace the five mutable fields; the owner never changes."""
        a = self._load(anime_id, owner_id)
        a.title = _require_text(title, "title")
        a.saison = _require_count(saison, "saison")
        a.episode_watched = _require_count(episode_watched, "episodeWatched")
        a.episode_total = _require_count(episode_total, "episodeTotal")
        a.status = _require_flag(status, "status")
        try:
            self.repo.update_anime(a)
        except RepoError as e:
            raise PersistenceError(str(e)) from e
        logger.info("Updated anime id=%s", anime_id)
        return a

    def delete_anime(self, anime_id: int, owner_id: Optional[int] = None) -> Anime:
        """Delete and return the removed record."""
        a = self._load(anime_id, owner_id)
        try:
            self.repo.delete_anime(anime_id)
        except RepoError as e:
            raise PersistenceError(str(e)) from e
        logger.info("Deleted anime id=%s", anime_id)
        return a

    def _load(self, anime_id: int, owner_id: Optional[int]) -> Anime:
        try:
            a = self.repo.get_anime(anime_id)
        except RepoError as e:
            raise PersistenceError(str(e)) from e
        if not a:
            logger.debug("anime %s not found", anime_id)
            raise NotFoundError("anime not found")
        if owner_id is not None and a.user_id != owner_id:
            logger.warning("user %s tried to access anime %s owned by %s", owner_id, anime_id, a.user_id)
            raise NotFoundError("anime not found")
        return a
