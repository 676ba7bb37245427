"""Shared fixtures for crud unit tests"""

import pytest
from sqlalchemy import create_engine
from sqlmodel import SQLModel, Session

from mdsite.crud.models import BuildOutput


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine with all tables created."""
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    """Fresh session per test; changes are not committed."""
    with Session(engine) as s:
        yield s


@pytest.fixture(name="output")
def output_fixture(session):
    """A cached output row persisted to the session."""
    row = BuildOutput(path="2023/01/01/post.html", hash="a" * 64, source_path="2023-01-01-post.md")
    session.add(row)
    session.flush()
    return row
