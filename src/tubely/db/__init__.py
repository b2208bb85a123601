"""Database helpers (SQLAlchemy models and bootstrap)."""
