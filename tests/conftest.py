import os
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

TEST_DB_DIR = Path(tempfile.mkdtemp(prefix="pagegen-tests-"))

os.environ.setdefault("PAGEGEN_INTERNAL_API_TOKEN", "internal_token")
os.environ.setdefault("PAGEGEN_DB_URL", f"sqlite:///{TEST_DB_DIR / 'pagegen.db'}")
os.environ.setdefault("SCRAPE_ALLOWED_DOMAINS", "shop.example.com")
os.environ.setdefault("LANGFUSE_ENABLED", "false")
os.environ.setdefault("COPY_SERVICE_BASE_URL", "http://copy.test")

from sqlalchemy import delete  # noqa: E402

from pagegen.db import SessionLocal, engine, init_db  # noqa: E402
from pagegen.models import JobRecord  # noqa: E402
from pagegen.schemas import ProductInput, ProductReview  # noqa: E402


class FakeTemporalHandle:
    def __init__(self, workflow_id: str):
        self.id = workflow_id
        self.first_execution_run_id = f"{workflow_id}-run"


class FakeTemporalClient:
    def __init__(self) -> None:
        self.started: list[dict] = []

    async def start_workflow(self, run, arg, **kwargs) -> FakeTemporalHandle:
        workflow_id = kwargs.get("id") or "test-workflow"
        self.started.append({"run": run, "arg": arg, **kwargs})
        return FakeTemporalHandle(workflow_id)


@pytest.fixture(scope="session", autouse=True)
def test_database_dir():
    yield TEST_DB_DIR
    engine.dispose()
    shutil.rmtree(TEST_DB_DIR, ignore_errors=True)


@pytest.fixture()
def fake_temporal() -> FakeTemporalClient:
    return FakeTemporalClient()


@pytest.fixture()
def db_session():
    init_db()
    session = SessionLocal()
    session.execute(delete(JobRecord))
    session.commit()
    try:
        yield session
    finally:
        session.rollback()
        session.execute(delete(JobRecord))
        session.commit()
        session.close()


@pytest.fixture()
def mug() -> ProductInput:
    return ProductInput(
        title="Mug",
        description="A great mug for coffee lovers",
        price=9.99,
        images=["img.png"],
        tone="luxury",
    )


@pytest.fixture()
def rich_product() -> ProductInput:
    return ProductInput(
        title="Trail Pack",
        description="A lightweight pack for long days outdoors.",
        price=129,
        images=["https://shop.example.com/pack.jpg"],
        targetAudience="weekend hikers",
        primaryKeyword="hiking backpack",
        secondaryKeyword="daypack",
        keyBenefits=["Less shoulder strain", "Stays dry in the rain"],
        features=["Ventilated back panel", "Hydration sleeve", "Rain cover"],
        useCases=["Day hikes", "Commuting"],
        whatsIncluded=["Pack", "Rain cover"],
        reviews=[
            ProductReview(author="Ana", quote="Carried it for 20 miles without a sore back."),
            ProductReview(author="Ben", quote="Pockets everywhere."),
            ProductReview(author="Cy", quote="Would buy again."),
        ],
    )
