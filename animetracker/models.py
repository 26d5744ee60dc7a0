# animetracker/models.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

@dataclass
class User:
    id: Optional[int]
    username: str
    email: str
    password: str  # bcrypt hash
    created_at: str = field(default_factory=now_iso)

    def public_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "email": self.email}

@dataclass
class Anime:
    id: Optional[int]
    user_id: int
    title: str
    saison: int
    episode_watched: int
    episode_total: int
    status: bool = False  # True -> finished
    owner: Optional[User] = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict:
        """JSON shape sent to clients (camelCase wire names)."""
        d = {
            "id": self.id,
            "userId": self.user_id,
            "title": self.title,
            "saison": self.saison,
            "episodeWatched": self.episode_watched,
            "episodeTotal": self.episode_total,
            "status": self.status,
        }
        if self.owner is not None:
            d["user"] = self.owner.public_dict()
        return d
