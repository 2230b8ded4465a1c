"""
Database module - PostgreSQL (read-only lookups) and MongoDB (pipeline documents).
"""
from app.db.postgres import execute_raw_sql, fetch_one, get_db_session
from app.db.mongodb import COLLECTIONS, get_collection, get_mongo_db, init_mongo_indexes

__all__ = [
    "execute_raw_sql",
    "fetch_one",
    "get_db_session",
    "COLLECTIONS",
    "get_collection",
    "get_mongo_db",
    "init_mongo_indexes",
]
