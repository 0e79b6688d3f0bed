import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEED_DEMO", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import buildtrack.db.models  # noqa: F401
from buildtrack.core.config import settings
from buildtrack.core.deps import get_db
from buildtrack.db.base import Base
from buildtrack.db.models.floor import Floor
from buildtrack.db.models.phase import Phase
from buildtrack.db.models.project import Project


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture()
def client(session_factory, tmp_path, monkeypatch):
    from buildtrack.main import app

    monkeypatch.setattr(settings, "EXPORT_DIR", str(tmp_path))

    def _get_db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _get_db
    # no context manager: startup (create_all on the real engine, seeding) stays off
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def project(db):
    p = Project(code="P-1", name="Tower A")
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


@pytest.fixture()
def phase(db, project):
    ph = Phase(project_id=project.id, code="STR", name="Structure", sequence=1, budget_total=100_000.0)
    db.add(ph)
    db.commit()
    db.refresh(ph)
    return ph


@pytest.fixture()
def floors(db, project):
    out = [Floor(project_id=project.id, floor_number=n) for n in (-1, 0, 1, 2)]
    db.add_all(out)
    db.commit()
    for f in out:
        db.refresh(f)
    return out
