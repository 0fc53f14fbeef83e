"""
Pytest configuration and fixtures for the migration engine tests.

Every test gets its own in-memory SQLite database (a single shared
connection via ``StaticPool``) with all tables created, plus a temporary
upload directory. Batch sizes are shrunk so progress and cancellation
paths run on small files.
"""
import os

# The app lifespan must not bootstrap the configured database during tests.
os.environ["SKIP_DB_INIT"] = "1"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from migration_engine.api.dependencies import get_orchestrator, get_worker_pool
from migration_engine.core.config import Settings
from migration_engine.db.models import create_all_tables
from migration_engine.db.session import build_engine, configure_engine
from migration_engine.domain.entities import SqlEntityWriter
from migration_engine.domain.migrations.orchestrator import MigrationOrchestrator
from migration_engine.domain.migrations.storage import LocalFileStorage
from migration_engine.domain.migrations.store import JobStore
from migration_engine.domain.migrations.templates import MappingTemplates
from migration_engine.domain.migrations.worker import MigrationWorkerPool
from migration_engine.main import app


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_all_tables(engine)
    configure_engine(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        storage_dir=str(tmp_path / "uploads"),
        validation_yield_every=2,
        import_progress_every=2,
        error_sample_limit=5,
        preview_row_count=5,
        large_file_warning_rows=1000,
    )


@pytest.fixture
def store(session_factory):
    return JobStore(session_factory)


@pytest.fixture
def templates(session_factory):
    return MappingTemplates(session_factory)


@pytest.fixture
def entity_writer():
    return SqlEntityWriter()


@pytest.fixture
def orchestrator(store, entity_writer, test_settings, templates):
    return MigrationOrchestrator(
        store,
        entity_writer,
        storage=LocalFileStorage(test_settings.storage_dir),
        settings=test_settings,
        templates=templates,
    )


@pytest.fixture
def worker_pool():
    pool = MigrationWorkerPool(max_workers=1)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def client(orchestrator, worker_pool):
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_worker_pool] = lambda: worker_pool
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
