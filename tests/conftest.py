"""Pytest fixtures for testing"""

import random
import pytest
from datetime import datetime, timezone
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from rewards_ledger.api.main import create_app
from rewards_ledger.domain.models import (
    ReportCreated,
    ReportDeleted,
    ReportPointsEdited,
    ReportRecord,
    ResolverAdded,
    ResolverAssignment,
    ResolverCredit,
    ResolverRemoved,
)
from rewards_ledger.domain.policy import resolver_bonus
from rewards_ledger.infrastructure.database.models import Base
from rewards_ledger.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

EMPLOYEES = ["emp-a", "emp-b", "emp-c", "emp-d"]


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def march() -> datetime:
    """Creation time of a report filed in March 2025"""
    return datetime(2025, 3, 15, 9, 30, tzinfo=timezone.utc)


def _random_created_at(rng: random.Random) -> datetime:
    return datetime(2025, rng.randint(1, 12), rng.randint(1, 28), rng.randint(0, 23), tzinfo=timezone.utc)


@pytest.fixture
def history_factory():
    """
    Build a random but valid report history.

    Returns a function (seed, reports, edits, resolver_ops, deletions) ->
    (surviving reports, surviving assignments, event stream in order).
    """

    def build(seed: int, n_reports: int = 30, n_edits: int = 20, n_resolver_ops: int = 40, n_deletions: int = 5):
        rng = random.Random(seed)
        reports = {}
        assignments = {}
        events = []

        for i in range(n_reports):
            report = ReportRecord(
                id=f"r{i}",
                author_id=rng.choice(EMPLOYEES),
                created_at=_random_created_at(rng),
                points_awarded=rng.randint(0, 3),
            )
            reports[report.id] = report
            events.append(
                ReportCreated(
                    report_id=report.id,
                    author_id=report.author_id,
                    report_created_at=report.created_at,
                    points_awarded=report.points_awarded,
                )
            )

        for _ in range(n_edits):
            report = rng.choice(list(reports.values()))
            new_points = rng.randint(0, 3)
            events.append(
                ReportPointsEdited(
                    report_id=report.id,
                    author_id=report.author_id,
                    report_created_at=report.created_at,
                    old_points=report.points_awarded,
                    new_points=new_points,
                )
            )
            report.points_awarded = new_points

        for _ in range(n_resolver_ops):
            report = rng.choice(list(reports.values()))
            resolver_id = rng.choice(EMPLOYEES)
            pair = (report.id, resolver_id)
            common = dict(report_id=report.id, author_id=report.author_id, report_created_at=report.created_at)
            if pair in assignments:
                removed = assignments.pop(pair)
                events.append(ResolverRemoved(resolver_id=resolver_id, points_awarded=removed.points_awarded, **common))
            else:
                bonus = resolver_bonus(resolver_id, report.author_id)
                assignments[pair] = ResolverAssignment(report.id, resolver_id, bonus)
                events.append(ResolverAdded(resolver_id=resolver_id, points_awarded=bonus, **common))

        for report in rng.sample(list(reports.values()), n_deletions):
            credits = [
                ResolverCredit(a.resolver_id, a.points_awarded)
                for pair, a in list(assignments.items())
                if pair[0] == report.id
            ]
            for credit in credits:
                del assignments[(report.id, credit.resolver_id)]
            events.append(
                ReportDeleted(
                    report_id=report.id,
                    author_id=report.author_id,
                    report_created_at=report.created_at,
                    points_awarded=report.points_awarded,
                    resolvers=credits,
                )
            )
            del reports[report.id]

        return list(reports.values()), list(assignments.values()), events

    return build
