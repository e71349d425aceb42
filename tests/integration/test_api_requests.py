"""HTTP tests for the reimbursement request endpoints."""

from datetime import date

import pytest
from httpx import AsyncClient

from src.jupiter.models import RequestStatus, User
from src.jupiter.models.base import utc_now
from tests.helpers import auth_headers, create_request

pytestmark = pytest.mark.integration


def new_request(**overrides) -> dict:
    payload = {
        "title": "Train tickets to regional meeting",
        "amount_cents": 4550,
        "currency": "EUR",
        "expense_date": date(2025, 3, 14).isoformat(),
        "category": "travel",
    }
    return payload | overrides


async def create_and_submit(client: AsyncClient, user: User) -> dict:
    created = await client.post("/api/v1/requests", json=new_request(), headers=auth_headers(user))
    assert created.status_code == 201
    request_id = created.json()["id"]
    submitted = await client.post(
        f"/api/v1/requests/{request_id}/submit", headers=auth_headers(user)
    )
    assert submitted.status_code == 200
    return submitted.json()


class TestCreateRequest:
    async def test_creates_numbered_draft(self, client, submitter):
        response = await client.post(
            "/api/v1/requests", json=new_request(), headers=auth_headers(submitter)
        )

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == RequestStatus.DRAFT.value
        assert data["request_number"] == f"RB-{utc_now().year}-001"
        assert data["user_id"] == str(submitter.id)
        assert data["display_amount"] == "45.50 EUR"

    async def test_invalid_payload(self, client, submitter):
        response = await client.post(
            "/api/v1/requests",
            json=new_request(amount_cents=0, title="   "),
            headers=auth_headers(submitter),
        )

        assert response.status_code == 422

    async def test_requires_authentication(self, client):
        response = await client.post("/api/v1/requests", json=new_request())

        assert response.status_code == 401
        assert response.json()["detail"] == "Missing or invalid authorization header"

    async def test_rejects_malformed_token(self, client):
        response = await client.get(
            "/api/v1/requests", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"


class TestWorkflowEndpoints:
    async def test_submit_approve_pay(self, client, submitter, treasurer):
        request = await create_and_submit(client, submitter)
        assert request["status"] == RequestStatus.SUBMITTED.value
        request_id = request["id"]

        approved = await client.post(
            f"/api/v1/requests/{request_id}/approve",
            json={"amount_cents": 4000, "notes": "Second class fare"},
            headers=auth_headers(treasurer),
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == RequestStatus.APPROVED.value
        assert approved.json()["approved_amount_cents"] == 4000

        paid = await client.post(
            f"/api/v1/requests/{request_id}/mark-paid", headers=auth_headers(treasurer)
        )
        assert paid.status_code == 200
        assert paid.json()["status"] == RequestStatus.PAID.value

        events = await client.get(
            f"/api/v1/requests/{request_id}/events", headers=auth_headers(submitter)
        )
        assert events.status_code == 200
        assert [(e["from_status"], e["to_status"]) for e in events.json()] == [
            ("draft", "submitted"),
            ("submitted", "approved"),
            ("approved", "paid"),
        ]

    async def test_approve_without_body_uses_requested_amount(self, client, submitter, treasurer):
        request = await create_and_submit(client, submitter)

        response = await client.post(
            f"/api/v1/requests/{request['id']}/approve", headers=auth_headers(treasurer)
        )

        assert response.status_code == 200
        assert response.json()["approved_amount_cents"] == request["amount_cents"]

    async def test_blank_rejection_reason(self, client, submitter, treasurer):
        request = await create_and_submit(client, submitter)

        response = await client.post(
            f"/api/v1/requests/{request['id']}/reject",
            json={"reason": "  "},
            headers=auth_headers(treasurer),
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    async def test_invalid_transition_is_conflict(self, client, submitter, treasurer):
        request = await create_and_submit(client, submitter)
        await client.post(
            f"/api/v1/requests/{request['id']}/reject",
            json={"reason": "Missing receipt"},
            headers=auth_headers(treasurer),
        )

        response = await client.post(
            f"/api/v1/requests/{request['id']}/approve", headers=auth_headers(treasurer)
        )

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "invalid_transition"
        assert error["current_status"] == RequestStatus.REJECTED.value

    async def test_submitter_cannot_approve(self, client, submitter):
        request = await create_and_submit(client, submitter)

        response = await client.post(
            f"/api/v1/requests/{request['id']}/approve", headers=auth_headers(submitter)
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "not_authorized"

    async def test_unknown_request(self, client, treasurer):
        response = await client.post(
            "/api/v1/requests/0190a5f0-0000-7000-8000-000000000000/approve",
            headers=auth_headers(treasurer),
        )

        assert response.status_code == 404


class TestVisibility:
    async def test_submitter_sees_only_own_requests(
        self, client, session, submitter, chapter_admin, treasurer
    ):
        own = await create_request(session, submitter)
        await create_request(session, chapter_admin)

        mine = await client.get("/api/v1/requests", headers=auth_headers(submitter))
        everything = await client.get("/api/v1/requests", headers=auth_headers(treasurer))

        assert [r["id"] for r in mine.json()["items"]] == [str(own.id)]
        assert len(everything.json()["items"]) == 2

    async def test_malformed_cursor_is_unprocessable(self, client, treasurer):
        response = await client.get(
            "/api/v1/requests", params={"cursor": "not-a-cursor"}, headers=auth_headers(treasurer)
        )

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    async def test_other_users_request_is_forbidden(
        self, client, session, submitter, chapter_admin
    ):
        other = await create_request(session, chapter_admin)

        response = await client.get(
            f"/api/v1/requests/{other.id}", headers=auth_headers(submitter)
        )

        assert response.status_code == 403


class TestDraftEditing:
    async def test_update_and_delete_draft(self, client, session, submitter):
        draft = await create_request(session, submitter)

        updated = await client.patch(
            f"/api/v1/requests/{draft.id}",
            json={"title": "Updated title", "amount_cents": 999},
            headers=auth_headers(submitter),
        )
        assert updated.status_code == 200
        assert updated.json()["title"] == "Updated title"
        assert updated.json()["amount_cents"] == 999

        deleted = await client.delete(
            f"/api/v1/requests/{draft.id}", headers=auth_headers(submitter)
        )
        assert deleted.status_code == 204

        missing = await client.get(f"/api/v1/requests/{draft.id}", headers=auth_headers(submitter))
        assert missing.status_code == 404

    async def test_submitted_request_is_not_editable(self, client, submitter):
        request = await create_and_submit(client, submitter)

        response = await client.patch(
            f"/api/v1/requests/{request['id']}",
            json={"title": "Too late"},
            headers=auth_headers(submitter),
        )

        assert response.status_code == 403


class TestBulkApproveEndpoint:
    async def test_reports_partial_failures(self, client, session, submitter, treasurer):
        first = await create_and_submit(client, submitter)
        second = await create_and_submit(client, submitter)
        draft = await create_request(session, submitter)

        response = await client.post(
            "/api/v1/requests/bulk-approve",
            json={"request_ids": [first["id"], str(draft.id), second["id"]]},
            headers=auth_headers(treasurer),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["approved_count"] == 2
        assert data["error_count"] == 1
        assert data["approved_ids"] == [first["id"], second["id"]]
        assert data["errors"][0]["request_id"] == str(draft.id)
