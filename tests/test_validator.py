"""Tests for the two-stage transaction validator."""

from datetime import date, datetime

import pytest

from expense_tracker.models.transaction import TransactionDraft
from expense_tracker.validation import TransactionValidator


TODAY = date(2024, 3, 15)


@pytest.fixture
def validator():
    return TransactionValidator()


def make_draft(**overrides) -> TransactionDraft:
    fields = {
        "kind": "expense",
        "category": "Food",
        "amount": "25.00",
        "description": "Groceries",
        "occurred_at": datetime(2024, 3, 14, 18, 0),
    }
    fields.update(overrides)
    return TransactionDraft(**fields)


class TestSchemaValidation:
    """Stage 1: required fields and category membership."""

    def test_valid_draft(self, validator):
        result = validator.validate(make_draft(), today=TODAY)
        assert result.is_valid is True
        assert result.issues == []
        assert validator.get_user_friendly_summary(result) == "✅ Looks good!"

    def test_missing_description(self, validator):
        result = validator.validate(make_draft(description="   "), today=TODAY)
        assert result.schema_valid is False
        assert result.is_valid is False
        assert [i.field for i in result.issues] == ["description"]

    def test_missing_category(self, validator):
        result = validator.validate(make_draft(category=""), today=TODAY)
        assert result.has_errors is True
        assert result.issues[0].issue_type == "missing"

    def test_category_from_other_kind(self, validator):
        result = validator.validate(make_draft(kind="income", category="Food"), today=TODAY)
        assert result.has_errors is True
        assert result.issues[0].issue_type == "invalid_value"
        assert "Salary" in result.issues[0].suggested_fix

    def test_negative_amount(self, validator):
        result = validator.validate(make_draft(amount="-5"), today=TODAY)
        assert result.is_valid is False
        assert result.issues[0].field == "amount"

    def test_semantic_stage_skipped_on_schema_errors(self, validator):
        result = validator.validate(
            make_draft(description="", amount="0", occurred_at=datetime(2030, 1, 1)),
            today=TODAY,
        )
        assert result.semantic_valid is False
        assert result.warnings == []
        assert result.error_count == 1


class TestSemanticValidation:
    """Stage 2: warnings that never block a save."""

    def test_zero_amount_warns(self, validator):
        result = validator.validate(make_draft(amount="0"), today=TODAY)
        assert result.is_valid is True
        assert result.warnings == ["Amount is zero"]

    def test_huge_amount_warns(self, validator):
        result = validator.validate(make_draft(amount="5000000"), today=TODAY)
        assert result.is_valid is True
        assert "unusually high" in result.warnings[0]

    def test_future_date_warns(self, validator):
        result = validator.validate(make_draft(occurred_at=datetime(2024, 3, 30)), today=TODAY)
        assert result.is_valid is True
        assert result.issues[0].issue_type == "future_date"

    def test_near_future_within_tolerance(self, validator):
        result = validator.validate(make_draft(occurred_at=datetime(2024, 3, 20)), today=TODAY)
        assert result.issues == []

    def test_old_date_warns(self, validator):
        result = validator.validate(make_draft(occurred_at=datetime(2018, 1, 1)), today=TODAY)
        assert result.issues[0].issue_type == "suspicious_date"


class TestUserFriendlySummary:
    """Tests for get_user_friendly_summary."""

    def test_errors_listed_with_fixes(self, validator):
        result = validator.validate(make_draft(description=""), today=TODAY)
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("❌ Please fix the following:")
        assert "Description is required" in summary
        assert "💡" in summary

    def test_warnings_only(self, validator):
        result = validator.validate(make_draft(amount="0"), today=TODAY)
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("⚠️ Please verify the following:")
        assert "❌" not in summary
