"""Persistence adapters (PostgreSQL via psycopg2, in-memory mock)."""
