"""
Database engine helpers.
"""

from pathlib import Path
from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from ..core.config import settings

_ENGINE: Optional[Engine] = None


def create_db_engine(db_url: str) -> Engine:
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    if db_url.startswith("sqlite:///") and db_url != "sqlite:///:memory:":
        db_path = db_url.replace("sqlite:///", "")
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(db_url, echo=False, connect_args=connect_args)


def get_engine() -> Engine:
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = create_db_engine(settings.database_url)
    return _ENGINE


def init_db(engine: Engine) -> None:
    from . import db_models  # noqa: F401
    SQLModel.metadata.create_all(engine)
