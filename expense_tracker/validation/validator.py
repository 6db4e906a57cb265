"""
Two-Stage Validation Pipeline

DESIGN DECISION: Transaction drafts are checked at the ingestion
boundary, before the store ever sees them. Reports then trust their
input and never have to handle malformed amounts.

STAGE 1 - SCHEMA VALIDATION:
- Required fields present
- Category belongs to the set for the kind
- Amount is not negative

STAGE 2 - SEMANTIC VALIDATION:
- Zero or absurdly large amounts
- Dates far in the future or unusually old

Errors block the save. Warnings are shown but do not.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them for the user to correct.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from expense_tracker.config import get_settings
from expense_tracker.models.transaction import (
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
    categories_for,
)


class TransactionValidator:
    """Validates transaction drafts through a two-stage pipeline."""

    def __init__(self):
        self._settings = get_settings().app

    def _validate_schema(
        self,
        draft: TransactionDraft,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not draft.description:
            issues.append(ValidationIssue(
                field="description",
                issue_type="missing",
                message="Description is required",
                severity="error",
                suggested_fix="Enter a short note such as 'Groceries' or 'March salary'",
            ))

        allowed = categories_for(draft.kind)
        if not draft.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
                suggested_fix=f"Choose one of: {', '.join(allowed)}",
            ))
        elif draft.category not in allowed:
            issues.append(ValidationIssue(
                field="category",
                issue_type="invalid_value",
                message=f"'{draft.category}' is not a valid {draft.kind.value} category",
                severity="error",
                suggested_fix=f"Choose one of: {', '.join(allowed)}",
            ))

        if draft.amount < 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount cannot be negative",
                severity="error",
                suggested_fix="Enter the amount without a sign; choose income or expense instead",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def _validate_semantic(
        self,
        draft: TransactionDraft,
        today: date,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 2: Semantic validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []
        symbol = self._settings.currency_symbol

        if draft.amount == 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
                suggested_fix="Please verify the amount",
            ))

        max_amount = Decimal(str(self._settings.max_transaction_amount))
        if draft.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="suspicious_value",
                message=f"Amount ({symbol}{draft.amount:,.2f}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            ))

        occurred_on = draft.occurred_at.date()
        max_future_date = today + timedelta(days=self._settings.future_date_tolerance_days)
        if occurred_on > max_future_date:
            issues.append(ValidationIssue(
                field="occurred_at",
                issue_type="future_date",
                message=f"Date ({occurred_on}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        min_reasonable_date = today - timedelta(days=365 * self._settings.stale_date_years)
        if occurred_on < min_reasonable_date:
            issues.append(ValidationIssue(
                field="occurred_at",
                issue_type="suspicious_date",
                message=f"Date ({occurred_on}) seems unusually old",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)

        return is_valid, issues

    def validate(
        self,
        draft: TransactionDraft,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run full two-stage validation pipeline.

        Args:
            draft: The fields entered by the user
            today: Reference date for the date checks (defaults to today)

        Returns:
            ValidationResult with all issues found
        """
        today = today or date.today()
        all_issues = []

        schema_valid, schema_issues = self._validate_schema(draft)
        all_issues.extend(schema_issues)

        # Only run stage 2 if stage 1 passes
        semantic_valid = False
        if schema_valid:
            semantic_valid, semantic_issues = self._validate_semantic(draft, today)
            all_issues.extend(semantic_issues)

        warnings = [issue.message for issue in all_issues if issue.severity == "warning"]

        return ValidationResult(
            draft_id=draft.draft_id,
            schema_valid=schema_valid,
            semantic_valid=semantic_valid,
            is_valid=schema_valid and semantic_valid,
            issues=all_issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """Generate a user-friendly summary of validation results."""
        if result.is_valid and not result.warnings:
            return "✅ Looks good!"

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
