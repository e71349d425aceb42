"""Unit tests for AuditService."""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from src.jupiter.core.audit_context import AuditContext
from src.jupiter.models import AuditAction, AuditStatus
from src.jupiter.services.audit_service import AuditService

pytestmark = pytest.mark.unit


@pytest.fixture
def mock_audit_repo() -> MagicMock:
    repo = MagicMock()
    repo.add = MagicMock()
    return repo


@pytest.fixture
def mock_session() -> AsyncMock:
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


@pytest.fixture
def audit_service(mock_audit_repo, mock_session) -> AuditService:
    return AuditService(mock_audit_repo, mock_session)


def added_entry(repo: MagicMock):
    return repo.add.call_args[0][0]


class TestLogAction:
    """Tests for log_action method."""

    async def test_log_action_creates_audit_log(self, audit_service, mock_audit_repo, mock_session):
        result = await audit_service.log_action(
            action=AuditAction.TOKEN_REFRESH,
            entity_type="oauth_token",
        )

        assert result is not None
        mock_audit_repo.add.assert_called_once()
        mock_session.commit.assert_called_once()

    async def test_log_action_records_ids_and_changes(self, audit_service, mock_audit_repo):
        user_id = uuid4()
        entity_id = uuid4()
        changes = {"version": 2, "attempts": 1}

        await audit_service.log_action(
            action=AuditAction.TOKEN_REFRESH,
            entity_type="oauth_token",
            entity_id=entity_id,
            user_id=user_id,
            changes=changes,
        )

        entry = added_entry(mock_audit_repo)
        assert entry.user_id == user_id
        assert entry.entity_id == entity_id
        assert entry.changes == changes
        assert entry.action == "token.refresh"

    async def test_log_action_truncates_long_error_message(self, audit_service, mock_audit_repo):
        await audit_service.log_action(
            action=AuditAction.TOKEN_REFRESH_FAILED,
            entity_type="oauth_token",
            status=AuditStatus.FAILURE,
            error_message="x" * 2000,
        )

        assert len(added_entry(mock_audit_repo).error_message) == 1000

    @patch("src.jupiter.services.audit_service.get_audit_context")
    async def test_log_action_captures_request_context(
        self, mock_get_context, audit_service, mock_audit_repo
    ):
        mock_get_context.return_value = AuditContext(
            ip_address="192.168.1.1",
            user_agent="Mozilla/5.0",
            request_id="abc-123",
        )

        await audit_service.log_action(action=AuditAction.USER_LOGIN, entity_type="user")

        entry = added_entry(mock_audit_repo)
        assert entry.ip_address == "192.168.1.1"
        assert entry.user_agent == "Mozilla/5.0"
        assert entry.request_id == "abc-123"

    async def test_log_action_handles_no_context(self, audit_service, mock_audit_repo):
        """Background jobs run without an HTTP request."""
        result = await audit_service.log_action(
            action=AuditAction.TOKEN_CLEANUP,
            entity_type="oauth_token",
        )

        assert result is not None
        entry = added_entry(mock_audit_repo)
        assert entry.ip_address is None
        assert entry.request_id is None

    async def test_log_action_accepts_string_action(self, audit_service, mock_audit_repo):
        await audit_service.log_action(action="custom.action", entity_type="custom")

        assert added_entry(mock_audit_repo).action == "custom.action"

    async def test_log_action_fire_and_forget_on_error(self, audit_service, mock_session):
        mock_session.commit.side_effect = Exception("DB Error")

        result = await audit_service.log_action(
            action=AuditAction.USER_LOGIN,
            entity_type="user",
        )

        assert result is None
        mock_session.rollback.assert_called_once()


class TestStatusHelpers:
    async def test_log_success_sets_success_status(self, audit_service, mock_audit_repo):
        await audit_service.log_success(action=AuditAction.TOKEN_ROTATE, entity_type="oauth_token")

        assert added_entry(mock_audit_repo).status == "success"

    async def test_log_failure_sets_failure_status(self, audit_service, mock_audit_repo):
        await audit_service.log_failure(
            action=AuditAction.TOKEN_REFRESH_FAILED,
            entity_type="oauth_token",
            error_message="invalid_grant",
        )

        entry = added_entry(mock_audit_repo)
        assert entry.status == "failure"
        assert entry.error_message == "invalid_grant"


class TestHistory:
    async def test_list_user_history_calls_repository(self, audit_service, mock_audit_repo):
        mock_audit_repo.list_by_user = AsyncMock(return_value=([], None, False))
        user_id = uuid4()

        await audit_service.list_user_history(user_id, cursor="abc", limit=25, action="user.login")

        mock_audit_repo.list_by_user.assert_called_once_with(
            user_id=user_id, cursor="abc", limit=25, action="user.login"
        )

    async def test_list_entity_history_calls_repository(self, audit_service, mock_audit_repo):
        mock_audit_repo.list_by_entity = AsyncMock(return_value=([], None, False))
        entity_id = uuid4()

        await audit_service.list_entity_history(
            entity_type="oauth_token", entity_id=entity_id, cursor="def", limit=30
        )

        call_kwargs = mock_audit_repo.list_by_entity.call_args[1]
        assert call_kwargs["entity_type"] == "oauth_token"
        assert call_kwargs["entity_id"] == entity_id
        assert call_kwargs["limit"] == 30
