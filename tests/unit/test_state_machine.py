"""Request status transitions and status/timestamp invariants."""

from datetime import date, timedelta
from uuid import uuid7

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.jupiter.models import ReimbursementRequest, RequestAction, RequestStatus
from src.jupiter.models.base import utc_now
from src.jupiter.models.reimbursement import (
    ALLOWED_FROM,
    TARGET_STATUS,
    can_transition,
    format_money,
)

pytestmark = pytest.mark.unit

LEGAL = {
    (RequestStatus.DRAFT, RequestAction.SUBMIT),
    (RequestStatus.SUBMITTED, RequestAction.APPROVE),
    (RequestStatus.UNDER_REVIEW, RequestAction.APPROVE),
    (RequestStatus.SUBMITTED, RequestAction.REJECT),
    (RequestStatus.UNDER_REVIEW, RequestAction.REJECT),
    (RequestStatus.SUBMITTED, RequestAction.REQUEST_INFO),
    (RequestStatus.APPROVED, RequestAction.MARK_PAID),
}


def build_request(**overrides) -> ReimbursementRequest:
    data = {
        "user_id": uuid7(),
        "request_number": "RB-2025-001",
        "title": "Train to regional assembly",
        "amount_cents": 25000,
        "currency": "USD",
        "expense_date": date(2025, 3, 1),
        "category": "travel",
    }
    data.update(overrides)
    return ReimbursementRequest(**data)


class TestCanTransition:
    @pytest.mark.parametrize("status", list(RequestStatus))
    @pytest.mark.parametrize("action", list(RequestAction))
    def test_transition_table(self, status, action):
        assert can_transition(status.value, action) is ((status, action) in LEGAL)

    def test_unknown_status_allows_nothing(self):
        assert not any(can_transition("archived", action) for action in RequestAction)

    @pytest.mark.parametrize("status", [RequestStatus.REJECTED, RequestStatus.PAID])
    def test_terminal_statuses_have_no_way_out(self, status):
        assert not any(can_transition(status.value, action) for action in RequestAction)

    @given(
        status=st.sampled_from(list(RequestStatus)),
        actions=st.lists(st.sampled_from(list(RequestAction)), max_size=12),
    )
    def test_walk_never_leaves_the_graph(self, status, actions):
        """Applying only legal actions ends in a status reachable by the table."""
        current = status
        for action in actions:
            if can_transition(current.value, action):
                assert current in ALLOWED_FROM[action]
                current = TARGET_STATUS[action]
        if status in (RequestStatus.REJECTED, RequestStatus.PAID):
            assert current == status

    @given(actions=st.lists(st.sampled_from(list(RequestAction)), max_size=12))
    def test_draft_never_reaches_paid_without_approval(self, actions):
        current = RequestStatus.DRAFT
        seen = [current]
        for action in actions:
            if can_transition(current.value, action):
                current = TARGET_STATUS[action]
                seen.append(current)
        if RequestStatus.PAID in seen:
            assert seen.index(RequestStatus.APPROVED) < seen.index(RequestStatus.PAID)


class TestPredicates:
    def test_draft_predicates(self):
        request = build_request()

        assert request.can_submit
        assert request.is_editable
        assert not request.can_approve
        assert not request.can_mark_paid
        assert not request.is_terminal

    def test_submitted_predicates(self):
        request = build_request(status=RequestStatus.SUBMITTED.value)

        assert request.can_approve
        assert request.can_reject
        assert request.can_request_info
        assert not request.can_submit
        assert not request.is_editable

    def test_under_review_cannot_request_info_again(self):
        request = build_request(status=RequestStatus.UNDER_REVIEW.value)

        assert request.can_approve
        assert not request.can_request_info

    def test_display_amounts(self):
        request = build_request(amount_cents=123456, approved_amount_cents=100000)

        assert request.display_amount == "1,234.56 USD"
        assert request.approved_display_amount == "1,000.00 USD"
        assert build_request().approved_display_amount is None

    def test_format_money(self):
        assert format_money(5, "EUR") == "0.05 EUR"


class TestValidationErrors:
    def test_valid_draft(self):
        assert build_request().validation_errors(today=date(2025, 3, 2)) == []

    def test_future_expense_date(self):
        request = build_request(expense_date=date(2025, 3, 10))

        errors = request.validation_errors(today=date(2025, 3, 2))

        assert "Expense date cannot be in the future" in errors

    @pytest.mark.parametrize("amount", [0, -100])
    def test_amount_must_be_positive(self, amount):
        errors = build_request(amount_cents=amount).validation_errors(today=date(2025, 3, 2))

        assert "Amount must be greater than 0" in errors

    @pytest.mark.parametrize("currency", ["usd", "US", "EURO", ""])
    def test_currency_must_be_iso_code(self, currency):
        errors = build_request(currency=currency).validation_errors(today=date(2025, 3, 2))

        assert "Currency must be a 3-letter ISO code" in errors

    def test_blank_title(self):
        errors = build_request(title="   ").validation_errors(today=date(2025, 3, 2))

        assert "Title can't be blank" in errors

    def test_unknown_category(self):
        errors = build_request(category="yachts").validation_errors(today=date(2025, 3, 2))

        assert "Category 'yachts' is not valid" in errors

    def test_submitted_requires_timestamp(self):
        request = build_request(status=RequestStatus.SUBMITTED.value)

        errors = request.validation_errors(today=date(2025, 3, 2))

        assert "Submitted at must be set when status is submitted" in errors

    def test_approved_requires_decision_details(self):
        request = build_request(status=RequestStatus.APPROVED.value, submitted_at=utc_now())

        errors = request.validation_errors(today=date(2025, 3, 2))

        assert "Approved at must be set when status is approved" in errors
        assert "Approver must be set when status is approved" in errors
        assert "Approved amount must be set when status is approved" in errors

    def test_rejected_requires_reason(self):
        request = build_request(
            status=RequestStatus.REJECTED.value,
            submitted_at=utc_now(),
            rejected_at=utc_now(),
            rejection_reason=" ",
        )

        errors = request.validation_errors(today=date(2025, 3, 2))

        assert errors == ["Rejection reason must be set when status is rejected"]

    def test_paid_request_is_consistent(self):
        now = utc_now()
        request = build_request(
            status=RequestStatus.PAID.value,
            expense_date=(now - timedelta(days=1)).date(),
            submitted_at=now,
            approved_at=now,
            approved_by_id=uuid7(),
            approved_amount_cents=20000,
            paid_at=now,
        )

        assert request.validation_errors() == []
