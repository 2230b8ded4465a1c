#!/usr/bin/env python3
"""
Connection Check Script

Run this to verify PostgreSQL, MongoDB and the LLM endpoint are reachable.
Usage: python scripts/check_connections.py
"""
import sys
sys.path.insert(0, '.')

from app.db.postgres import test_postgres_connection
from app.db.mongodb import test_mongo_connection
from app.services.llm_client import get_llm_client
from app.core.config import get_settings


def main() -> int:
    settings = get_settings()
    failures = 0
    print("=" * 50)
    print("TALENTGRID - CONNECTION CHECK")
    print("=" * 50)

    print("\n[1] PostgreSQL...")
    print(f"    URL: postgresql://{settings.postgres_user}:****@{settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}")
    if test_postgres_connection():
        print("    PostgreSQL: CONNECTED")
    else:
        print("    PostgreSQL: FAILED")
        failures += 1

    print("\n[2] MongoDB...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    if test_mongo_connection():
        print("    MongoDB: CONNECTED")
    else:
        print("    MongoDB: FAILED")
        failures += 1

    print("\n[3] LLM endpoint...")
    if settings.llm_api_key:
        print(f"    Base URL: {settings.llm_base_url}")
        print(f"    Model: {settings.llm_model}")
        if get_llm_client().test_connection():
            print("    LLM: CONNECTED")
        else:
            print("    LLM: FAILED")
            failures += 1
    else:
        print("    LLM: API key not configured (skipped)")

    print("\n" + "=" * 50)
    print("Connection check complete!" if not failures else f"{failures} check(s) failed")
    print("=" * 50)
    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
