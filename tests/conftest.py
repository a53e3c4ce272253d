"""Test fixtures for the WADO Manifest Service."""

import json
from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from wado_manifest.database import Base, get_db
from wado_manifest.routers import manifest
from tests.fixtures.factories import DicomFactory, ManifestFactory

TEST_ARCHIVES = {
    "archives": [
        {
            "archive_id": "1000",
            "base_url": "http://pacs-a.local/wado",
            "http_tags": {"X-Site": "A"},
        },
        {
            "archive_id": "2000",
            "base_url": "http://pacs-b.local/wado",
            "web_login": "viewer",
        },
    ]
}


@pytest.fixture
def archives_env(monkeypatch):
    """Configure two archives through MANIFEST_ARCHIVES."""
    monkeypatch.setenv("MANIFEST_ARCHIVES", json.dumps(TEST_ARCHIVES))
    monkeypatch.delenv("MANIFEST_VERSION", raising=False)
    return TEST_ARCHIVES


@pytest.fixture
def client(tmp_path, archives_env):
    """Create a TestClient with an on-disk SQLite test database."""

    db_path = tmp_path / "test.db"
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}", connect_args={"check_same_thread": False}
    )
    TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    @asynccontextmanager
    async def test_lifespan(app: FastAPI):
        async with test_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        yield
        await test_engine.dispose()

    test_app = FastAPI(lifespan=test_lifespan)
    test_app.include_router(manifest.router, prefix="/v2", tags=["Manifest"])

    @test_app.get("/health", tags=["Health"])
    async def health_check():
        return {"status": "healthy", "service": "wado-manifest-service"}

    test_app.dependency_overrides[get_db] = override_get_db

    with TestClient(test_app) as test_client:
        yield test_client


# ── Fixture Helpers ────────────────────────────────────────────


@pytest.fixture
def sample_ct_dicom():
    """Returns CT DICOM bytes (minimal, no pixels)."""
    return DicomFactory.create_instance(
        patient_id="FIXTURE-CT-001",
        patient_name="Fixture^CT",
    )


@pytest.fixture
def two_patient_archive():
    """Archive holding patients named Beta and Alpha, in that order."""
    return ManifestFactory.create_archive(["Beta", "Alpha"])
