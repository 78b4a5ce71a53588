# solarcrm/db.py
from pathlib import Path

from sqlmodel import SQLModel, create_engine, Session

from solarcrm.config import settings
from solarcrm import models  # noqa: F401  registers tables before create_all()

DATABASE_URL = settings.DATABASE_URL

# SQLite needs this connect arg and a real folder
connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
if DATABASE_URL.startswith("sqlite:///"):
    Path(DATABASE_URL[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)

engine = create_engine(DATABASE_URL, connect_args=connect_args)


def create_db_and_tables() -> None:
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        yield session
