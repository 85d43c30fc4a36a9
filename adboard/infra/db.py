from __future__ import annotations

import os

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import Session, create_engine

DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "postgresql+psycopg://adboard:adboard@db:5432/adboard",
)
DB_POOL_TIMEOUT = float(os.getenv("DB_POOL_TIMEOUT", "5"))

engine = create_engine(DATABASE_URL, pool_pre_ping=True, pool_timeout=DB_POOL_TIMEOUT)

def get_engine() -> Engine:
    return engine

def open_session() -> Session:
    return Session(get_engine(), expire_on_commit=False)

def check_db_ready() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
