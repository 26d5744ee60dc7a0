import pytest
from animetracker.repo import InMemoryRepo
from animetracker.tokens import TokenService
from animetracker.service import AnimeService, UserService
from animetracker.errors import (
    ValidationError, NotFoundError, ConflictError, InvalidCredentialsError,
)

# ---------- Fixtures ----------
@pytest.fixture
def repo():
    return InMemoryRepo()

@pytest.fixture
def tokens():
    return TokenService("unit-secret", lifetime_hours=1)

@pytest.fixture
def users(repo, tokens):
    return UserService(repo, tokens, bcrypt_rounds=4)

@pytest.fixture
def svc(repo):
    return AnimeService(repo)

@pytest.fixture
def alice(users):
    return users.register("alice", "alice@x.com", "p1")["user"]

@pytest.fixture
def bob(users):
    return users.register("bob", "bob@x.com", "p2")["user"]

# ---------- Registration ----------
def test_register_returns_token_for_new_user(users, tokens, repo):
    res = users.register("a", "a@x.com", "p1")
    assert res["message"] == "user created"
    assert tokens.verify(res["token"]) == res["user"]["id"]
    assert repo.get_user(res["user"]["id"]).username == "a"

def test_register_hashes_password(users, repo):
    res = users.register("a", "a@x.com", "p1")
    stored = repo.get_user(res["user"]["id"]).password
    assert stored != "p1"
    assert stored.startswith("$2")

@pytest.mark.parametrize("username, email", [
    ("alice", "other@x.com"),
    ("other", "alice@x.com"),
    ("alice", "alice@x.com"),
])
def test_register_duplicate_is_conflict(users, repo, alice, username, email):
    with pytest.raises(ConflictError):
        users.register(username, email, "whatever")
    assert len(repo._users) == 1

def test_register_password_confirmation_mismatch(users):
    with pytest.raises(ValidationError, match="passwords do not match"):
        users.register("a", "a@x.com", "p1", password_confirm="p2")

@pytest.mark.parametrize("username, email, password", [
    ("", "a@x.com", "p"),
    ("a", "   ", "p"),
    ("a", "a@x.com", ""),
    (None, "a@x.com", "p"),
])
def test_register_missing_fields(users, username, email, password):
    with pytest.raises(ValidationError):
        users.register(username, email, password)

# ---------- Login ----------
def test_login_token_subject_matches_user(users, tokens, alice):
    res = users.login("alice@x.com", "p1")
    assert res["message"] == "login successful"
    assert tokens.verify(res["token"]) == alice["id"]

def test_login_email_is_case_insensitive(users, alice):
    assert users.login("Alice@X.com", "p1")["user"]["id"] == alice["id"]

def test_login_wrong_password(users, alice):
    with pytest.raises(InvalidCredentialsError):
        users.login("alice@x.com", "wrong")

def test_login_unknown_email(users):
    with pytest.raises(NotFoundError):
        users.login("nobody@x.com", "p1")

# ---------- Anime CRUD ----------
def test_create_and_get_anime_roundtrip(svc, alice):
    a = svc.create_anime(alice["id"], "X", 1, 0, 12, False)
    got = svc.get_anime(a.id)
    assert (got.title, got.saison, got.episode_watched, got.episode_total, got.status) == ("X", 1, 0, 12, False)
    assert got.user_id == alice["id"]
    assert got.owner.username == "alice"
    assert got.to_dict()["user"] == {"id": alice["id"], "username": "alice", "email": "alice@x.com"}

def test_zero_values_are_accepted(svc, alice):
    a = svc.create_anime(alice["id"], "Zero", 0, 0, 0, True)
    assert a.saison == 0 and a.episode_watched == 0 and a.episode_total == 0

def test_watched_may_exceed_total(svc, alice):
    a = svc.create_anime(alice["id"], "Over", 1, 30, 12, False)
    assert a.episode_watched == 30

@pytest.mark.parametrize("field, value", [
    ("title", ""),
    ("title", None),
    ("saison", -1),
    ("saison", "1"),
    ("episode_watched", None),
    ("episode_total", True),
    ("status", "yes"),
    ("status", None),
])
def test_create_anime_invalid_fields(svc, alice, field, value):
    args = {"title": "T", "saison": 1, "episode_watched": 0, "episode_total": 12, "status": False}
    args[field] = value
    with pytest.raises(ValidationError):
        svc.create_anime(alice["id"], **args)

def test_list_animes_for_user_only_returns_own(svc, alice, bob):
    svc.create_anime(alice["id"], "A1", 1, 0, 12, False)
    svc.create_anime(alice["id"], "A2", 2, 3, 12, False)
    svc.create_anime(bob["id"], "B1", 1, 0, 24, False)
    titles = sorted(a.title for a in svc.list_animes_for_user(alice["id"]))
    assert titles == ["A1", "A2"]
    assert svc.list_animes_for_user(999) == []

def test_update_replaces_mutable_fields_only(svc, alice):
    a = svc.create_anime(alice["id"], "Old", 1, 0, 12, False)
    updated = svc.update_anime(a.id, "New", 2, 12, 13, True)
    got = svc.get_anime(a.id)
    assert updated.title == "New"
    assert (got.title, got.saison, got.episode_watched, got.episode_total, got.status) == ("New", 2, 12, 13, True)
    assert got.user_id == alice["id"] and got.id == a.id

def test_update_missing_anime(svc):
    with pytest.raises(NotFoundError):
        svc.update_anime(9999, "T", 1, 0, 1, False)

def test_delete_returns_record_and_removes_it(svc, alice):
    a = svc.create_anime(alice["id"], "Gone", 1, 0, 12, False)
    deleted = svc.delete_anime(a.id)
    assert deleted.title == "Gone"
    with pytest.raises(NotFoundError):
        svc.get_anime(a.id)

def test_delete_nonexistent_is_not_found(svc):
    with pytest.raises(NotFoundError):
        svc.delete_anime(9999)

# ---------- Ownership ----------
def test_foreign_anime_looks_missing(svc, alice, bob):
    a = svc.create_anime(alice["id"], "Mine", 1, 0, 12, False)
    with pytest.raises(NotFoundError):
        svc.get_anime(a.id, owner_id=bob["id"])
    with pytest.raises(NotFoundError):
        svc.update_anime(a.id, "Stolen", 1, 0, 12, False, owner_id=bob["id"])
    with pytest.raises(NotFoundError):
        svc.delete_anime(a.id, owner_id=bob["id"])
    assert svc.get_anime(a.id, owner_id=alice["id"]).title == "Mine"

# ---------- Long passwords and races ----------
def test_register_and_login_with_80_char_password(users, tokens):
    password = "x" * 80
    reg = users.register("long", "long@x.com", password)
    res = users.login("long@x.com", password)
    assert tokens.verify(res["token"]) == reg["user"]["id"]

def test_long_password_still_checked(users):
    users.register("long", "long@x.com", "x" * 80)
    with pytest.raises(InvalidCredentialsError):
        users.login("long@x.com", "y" * 80)

class RacingRepo(InMemoryRepo):
    """Existence check never sees the competing registration."""
    def find_user_by_username_or_email(self, username, email):
        return None

def test_register_race_loser_gets_conflict(tokens):
    users = UserService(RacingRepo(), tokens, bcrypt_rounds=4)
    users.register("a", "a@x.com", "p1")
    with pytest.raises(ConflictError):
        users.register("a", "a@x.com", "p1")

@pytest.mark.parametrize("field", ["saison", "episode_watched", "episode_total"])
def test_create_anime_rejects_oversized_counts(svc, alice, field):
    args = {"title": "T", "saison": 1, "episode_watched": 0, "episode_total": 12, "status": False}
    args[field] = 2**63
    with pytest.raises(ValidationError, match="too large"):
        svc.create_anime(alice["id"], **args)
