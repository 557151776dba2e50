"""Global pytest configuration."""

import os

# Set env for tests before any imports: SQLite database, no vendor keys
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OPENAI_API_KEY", "")
os.environ.setdefault("STRIPE_SECRET_KEY", "")
