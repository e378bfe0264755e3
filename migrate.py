"""Migration / setup helper
This script initializes the database schema used by the matching service.
Run: python migrate.py
"""
from db import init_db
import models  # noqa: F401  registers the tables


def main():
    init_db()
    print("Database initialized (carpool.db)")


if __name__ == "__main__":
    main()
