# animetracker/repo.py
import sqlite3
from typing import List, Optional, Dict
from animetracker.models import User, Anime
import os
import logging
from contextlib import contextmanager

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS animes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    title TEXT NOT NULL,
    saison INTEGER NOT NULL,
    episode_watched INTEGER NOT NULL,
    episode_total INTEGER NOT NULL,
    status INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (user_id) REFERENCES users(id)
);
"""

# --- Exceptions ---
class RepoError(Exception):
    pass

class DuplicateError(RepoError):
    """A UNIQUE constraint rejected the write."""
    pass

def _user(r) -> User:
    return User(r["id"], r["username"], r["email"], r["password"], r["created_at"])

def _anime(r) -> Anime:
    return Anime(r["id"], r["user_id"], r["title"], r["saison"],
                 r["episode_watched"], r["episode_total"], bool(r["status"]))

# --- SQLite repo ---
class SqliteRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path
        parent = os.path.dirname(db_path)
        if parent:
            os.makedirs(parent, exist_ok=True)

    @contextmanager
    def conn(self):
        try:
            con = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise RepoError(str(e)) from e
        con.row_factory = sqlite3.Row
        con.execute("PRAGMA foreign_keys = ON")
        try:
            yield con
            con.commit()
        except sqlite3.IntegrityError as e:
            con.rollback()
            if "UNIQUE" in str(e):
                raise DuplicateError(str(e)) from e
            logger.error("sqlite integrity error on %s: %s", self.db_path, e)
            raise RepoError(str(e)) from e
        except sqlite3.Error as e:
            con.rollback()
            logger.error("sqlite error on %s: %s", self.db_path, e)
            raise RepoError(str(e)) from e
        finally:
            con.close()

    def init_schema(self) -> None:
        with self.conn() as c:
            c.executescript(SCHEMA)
        logger.debug("Schema ensured at %s", self.db_path)

    # -- Users --
    def create_user(self, user: User) -> User:
        with self.conn() as c:
            cur = c.execute(
                "INSERT INTO users (username, email, password, created_at) VALUES (?, ?, ?, ?)",
                (user.username, user.email, user.password, user.created_at))
            user.id = cur.lastrowid
            return user

    def get_user(self, user_id: int) -> Optional[User]:
        with self.conn() as c:
            r = c.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return _user(r) if r else None

    def find_user_by_email(self, email: str) -> Optional[User]:
        with self.conn() as c:
            r = c.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
            return _user(r) if r else None

    def find_user_by_username_or_email(self, username: str, email: str) -> Optional[User]:
        with self.conn() as c:
            r = c.execute("SELECT * FROM users WHERE username = ? OR email = ? LIMIT 1",
                          (username, email)).fetchone()
            return _user(r) if r else None

    # -- Animes --
    def create_anime(self, anime: Anime) -> Anime:
        with self.conn() as c:
            cur = c.execute(
                "INSERT INTO animes (user_id, title, saison, episode_watched, episode_total, status) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (anime.user_id, anime.title, anime.saison, anime.episode_watched,
                 anime.episode_total, int(anime.status)))
            anime.id = cur.lastrowid
            return anime

    def get_anime(self, anime_id: int) -> Optional[Anime]:
        with self.conn() as c:
            r = c.execute("SELECT * FROM animes WHERE id = ?", (anime_id,)).fetchone()
            return _anime(r) if r else None

    def list_animes_for_user(self, user_id: int) -> List[Anime]:
        with self.conn() as c:
            rows = c.execute("SELECT * FROM animes WHERE user_id = ?", (user_id,)).fetchall()
            return [_anime(r) for r in rows]

    def update_anime(self, anime: Anime) -> None:
        with self.conn() as c:
            c.execute(
                "UPDATE animes SET title=?, saison=?, episode_watched=?, episode_total=?, status=? WHERE id=?",
                (anime.title, anime.saison, anime.episode_watched, anime.episode_total,
                 int(anime.status), anime.id))

    def delete_anime(self, anime_id: int) -> None:
        with self.conn() as c:
            c.execute("DELETE FROM animes WHERE id = ?", (anime_id,))

# --- In-memory repo (simple, used for unit tests) ---
class InMemoryRepo:
    def __init__(self):
        self._users: Dict[int, User] = {}
        self._animes: Dict[int, Anime] = {}
        self._next = {"user": 1, "anime": 1}

    # helper to assign id
    def _assign(self, kind: str) -> int:
        nid = self._next[kind]
        self._next[kind] += 1
        return nid

    def init_schema(self): pass

    # Users
    def create_user(self, u: User) -> User:
        if any(x.username == u.username or x.email == u.email for x in self._users.values()):
            raise DuplicateError("UNIQUE constraint failed: users")
        u.id = self._assign("user")
        self._users[u.id] = u
        return u
    def get_user(self, uid: int): return self._users.get(uid)
    def find_user_by_email(self, email: str):
        return next((u for u in self._users.values() if u.email == email), None)
    def find_user_by_username_or_email(self, username: str, email: str):
        return next((u for u in self._users.values()
                     if u.username == username or u.email == email), None)

    # Animes
    # stored rows are private copies
    def create_anime(self, a: Anime):
        a.id = self._assign("anime")
        self._animes[a.id] = Anime(a.id, a.user_id, a.title, a.saison,
                                   a.episode_watched, a.episode_total, a.status)
        return a
    def get_anime(self, aid: int):
        a = self._animes.get(aid)
        return Anime(a.id, a.user_id, a.title, a.saison, a.episode_watched,
                     a.episode_total, a.status) if a else None
    def list_animes_for_user(self, user_id: int):
        return [self.get_anime(aid) for aid, a in self._animes.items() if a.user_id == user_id]
    def update_anime(self, a: Anime):
        if a.id in self._animes:
            self._animes[a.id] = Anime(a.id, a.user_id, a.title, a.saison,
                                       a.episode_watched, a.episode_total, a.status)
    def delete_anime(self, aid: int): self._animes.pop(aid, None)
