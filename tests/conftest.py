"""Test configuration and fixtures."""

from typing import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from annotation_ledger.config import Settings
from annotation_ledger.db import log_models, models  # noqa: F401
from annotation_ledger.db.base import Base, build_engine
from annotation_ledger.db.models import TextModel, UserModel
from annotation_ledger.policy import Actor, Tier


@pytest.fixture
def engine():
    """A fresh in-memory database for each test."""
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(ingest_batch_size=2, log_page_limit=3)


def _user(db_session: Session, username: str, privs: int, activated: bool = True) -> UserModel:
    user = UserModel(
        username=username,
        email=f"{username}@example.org",
        privs=privs,
        activated=activated,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin(db_session) -> Actor:
    return Actor.model_validate(_user(db_session, "admin", Tier.ADMIN))


@pytest.fixture
def editor(db_session) -> Actor:
    return Actor.model_validate(_user(db_session, "editor", Tier.EDITOR))


@pytest.fixture
def observer(db_session) -> Actor:
    return Actor.model_validate(_user(db_session, "observer", Tier.OBSERVER))


@pytest.fixture
def inactive_editor(db_session) -> Actor:
    return Actor.model_validate(
        _user(db_session, "dormant", Tier.EDITOR, activated=False)
    )


@pytest.fixture
def text(db_session) -> TextModel:
    text = TextModel(author="Anon", title="Chronicle", lang="en", loaded=False)
    db_session.add(text)
    db_session.commit()
    return text
