"""
Pytest fixtures for the test suite.

Core tests run against InMemoryAccessRepository. Data-layer and API tests use
an in-memory SQLite engine; `db_session` rolls back after each test so tests
do not affect each other.
"""
from __future__ import annotations

from dataclasses import dataclass

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from reviewhub.access import InMemoryAccessRepository, build_access_services
from reviewhub.access.types import (
    GroupRecord,
    LocationRecord,
    NewGrant,
    PERMISSIONS,
    OrganizationRecord,
    UserRecord,
    normalize_permissions,
)


TEST_DB_URL = "sqlite:///:memory:"


@pytest.fixture
def engine():
    """Fresh in-memory SQLite engine; StaticPool shares the one connection across threads."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from reviewhub.db.base import Base
    import reviewhub.models.access  # noqa: F401
    import reviewhub.models.hierarchy  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def session_factory(tables):
    """Committing sessions for SqlAlchemyAccessRepository (the engine is discarded after the test)."""
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, expire_on_commit=False, class_=Session)


# ---- in-memory access scenario ---------------------------------------------------------


@dataclass
class Acme:
    """
    Organization "Acme":

        West (Region, level 0)
          CA (State, level 1)
            LA
            SF
        NYC (ungrouped)
    """

    repo: InMemoryAccessRepository
    org: OrganizationRecord
    west: GroupRecord
    ca: GroupRecord
    la: LocationRecord
    sf: LocationRecord
    nyc: LocationRecord
    user: UserRecord
    admin: UserRecord

    def grant(self, scope, permissions=None, user: UserRecord | None = None):
        return self.repo.create_grant(
            NewGrant(
                user_id=(user or self.user).id,
                organization_id=self.org.id,
                scope=scope,
                permissions=normalize_permissions(permissions),
            )
        )


@pytest.fixture
def repo() -> InMemoryAccessRepository:
    return InMemoryAccessRepository()


@pytest.fixture
def acme(repo) -> Acme:
    org = repo.add_organization("Acme", hierarchy_levels=("Region", "State"), max_locations=10)
    west = repo.add_group(org.id, "West", group_type="Region")
    ca = repo.add_group(org.id, "CA", parent_group_id=west.id, level=1, group_type="State")
    la = repo.create_location(org.id, "LA", location_group_id=ca.id)
    sf = repo.create_location(org.id, "SF", location_group_id=ca.id)
    nyc = repo.create_location(org.id, "NYC")
    user = repo.add_user(org.id, role="Staff")
    admin = repo.add_user(org.id, role="Owner")
    return Acme(repo=repo, org=org, west=west, ca=ca, la=la, sf=sf, nyc=nyc, user=user, admin=admin)


@pytest.fixture
def services(repo, acme):
    return build_access_services(repo, known_permissions=frozenset(PERMISSIONS))

