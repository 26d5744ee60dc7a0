# scripts/init_db.py
import os

from animetracker.repo import SqliteRepo

DB = os.environ.get("DATABASE") or os.path.join("data", "anime.db")
SqliteRepo(DB).init_schema()
print("initialized db at", DB)
