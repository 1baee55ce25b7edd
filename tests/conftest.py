"""
Shared fixtures: a fresh in-memory database per test, seeded with the demo site.
"""
import os
import sys

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import Base
from database.seed import build_demo_site


@pytest.fixture
def db():
    """Session bound to an empty in-memory database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def site(db):
    """Demo site ids, committed so rollbacks in the code under test keep it."""
    site = build_demo_site(db)
    db.commit()
    return site
