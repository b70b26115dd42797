import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from src.api.routes.routes import get_db
from src.infrastructure.db.models import Base, Floor
from src.infrastructure.db.session import build_engine
from src.main import app as fastapi_app


class RecordingNotifier:
    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def notify(self, title: str, description: str) -> None:
        self.messages.append((title, description))

    @property
    def titles(self) -> list[str]:
        return [title for title, _ in self.messages]


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def db_engine(tmp_path):
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'smartpark.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def floor_id(db_session):
    floor = Floor(name="Ground Floor", normal_spots=2, disability_spots=1, is_free_limit=False)
    db_session.add(floor)
    db_session.commit()
    return floor.id
