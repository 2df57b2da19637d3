#!/usr/bin/env python3
"""
Ops database initialization script.

Creates the post cache and pass tables, or prunes expired cached posts.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --prune-days 7
"""

import sys
from datetime import timedelta
from pathlib import Path

# Add the repository root to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from src.ops_model import Base, ensure_tables, get_ops_engine
from src.notif_engine.post_store import SqlPostStore


def init_database():
    """Create any missing ops tables."""
    print("Initializing notification ops database...")
    engine = ensure_tables()
    print(f"Database ready at: {engine.url}")
    return engine


def drop_database():
    """Drop all tables (for development/testing)."""
    print("WARNING: This will drop all ops tables, including the post cache!")
    response = input("Are you sure? (yes/no): ")

    if response.lower() != "yes":
        print("Cancelled.")
        return

    Base.metadata.drop_all(get_ops_engine())
    print("All tables dropped.")


if __name__ == "__main__":
    import argparse

    load_dotenv()

    parser = argparse.ArgumentParser(description="Initialize the notification ops database")
    parser.add_argument(
        "--drop", action="store_true", help="Drop all tables (destructive!)"
    )
    parser.add_argument(
        "--prune-days",
        type=int,
        default=None,
        help="Delete cached posts fetched more than this many days ago",
    )

    args = parser.parse_args()

    if args.drop:
        drop_database()
    elif args.prune_days is not None:
        removed = SqlPostStore(max_age=timedelta(days=args.prune_days)).prune()
        print(f"Pruned {removed} cached post(s).")
    else:
        init_database()
