"""Shared test setup.

Service settings are read at import time, so the environment is pinned here
before any application module is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6379/0"
os.environ["E2B_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
