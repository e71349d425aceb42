"""Integration test fixtures: an in-memory SQLite database and seeded users.

Services get one session each. Audit rows are written through the same
session since they are recorded after the business commit.
"""

from collections.abc import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from src.jupiter.api.dependencies import (
    get_audit_service,
    get_db_session,
    get_oauth_client,
    get_turnstile_verifier,
)
from src.jupiter.core.db import create_sqlite_engine, get_session
from src.jupiter.integrations.cloudflare import TurnstileVerifier
from src.jupiter.integrations.nationbuilder import NationBuilderOAuthClient
from src.jupiter.main import create_app
from src.jupiter.models import Role, User
from src.jupiter.policies import Principal
from src.jupiter.repositories import (
    AuditLogRepository,
    ReimbursementRequestRepository,
    RequestEventRepository,
    UserRepository,
)
from src.jupiter.services import AuditService, ReimbursementService
from tests.helpers import create_user, principal_for


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine]:
    """Fresh in-memory database per test."""
    engine = create_sqlite_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    async with get_session(engine) as session:
        yield session


@pytest.fixture
def audit_service(session: AsyncSession) -> AuditService:
    return AuditService(AuditLogRepository(session), session)


@pytest.fixture
async def submitter(session: AsyncSession) -> User:
    return await create_user(session, Role.SUBMITTER, full_name="Sam Submitter")


@pytest.fixture
async def treasurer(session: AsyncSession) -> User:
    return await create_user(session, Role.TREASURY_TEAM_ADMIN, full_name="Tess Treasurer")


@pytest.fixture
async def chapter_admin(session: AsyncSession) -> User:
    return await create_user(session, Role.COUNTRY_CHAPTER_ADMIN, full_name="Cal Chapter")


@pytest.fixture
def submitter_principal(submitter: User) -> Principal:
    return principal_for(submitter, Role.SUBMITTER)


@pytest.fixture
def treasurer_principal(treasurer: User) -> Principal:
    return principal_for(treasurer, Role.TREASURY_TEAM_ADMIN)


@pytest.fixture
def chapter_admin_principal(chapter_admin: User) -> Principal:
    return principal_for(chapter_admin, Role.COUNTRY_CHAPTER_ADMIN)


@pytest.fixture
def reimbursement_service(
    session: AsyncSession, audit_service: AuditService
) -> ReimbursementService:
    return ReimbursementService(
        ReimbursementRequestRepository(session),
        RequestEventRepository(session),
        UserRepository(session),
        session,
        audit_service,
        notify=False,
    )


@pytest.fixture
def app(
    session: AsyncSession,
    audit_service: AuditService,
    oauth_client: NationBuilderOAuthClient,
) -> FastAPI:
    """Application wired to the test session instead of the configured database."""
    app = create_app()

    async def override_session() -> AsyncGenerator[AsyncSession]:
        yield session

    async def override_oauth_client() -> AsyncGenerator[NationBuilderOAuthClient]:
        yield oauth_client

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_audit_service] = lambda: audit_service
    app.dependency_overrides[get_oauth_client] = override_oauth_client
    app.dependency_overrides[get_turnstile_verifier] = lambda: TurnstileVerifier(
        "turnstile-secret"
    )
    return app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
