"""
PostgreSQL queries

Module organization:
- gamification.py: PostgresStore (catalog, progress, stats, aggregates)
"""

from achievement_engine.db.queries.gamification import PostgresStore

__all__ = ["PostgresStore"]
