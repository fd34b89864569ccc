"""
Completion/validation evaluator tests.

Pure function tests: stored owners and signatures are plain objects.
"""
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from merchant_onboarding.core.evaluator import REQUIRED_FIELDS, evaluate, parse_percentage


def _owner(owner_id: int, email: str) -> SimpleNamespace:
    return SimpleNamespace(id=owner_id, email=email)


def _signature(owner_id: int) -> SimpleNamespace:
    return SimpleNamespace(owner_id=owner_id)


def _form(complete_form_data: Dict[str, Any], owners: List[Dict[str, Any]]) -> Dict[str, Any]:
    data = dict(complete_form_data)
    data["owners"] = owners
    return data


class TestRequiredFields:
    """Test suite for required top-level fields."""

    @pytest.mark.unit
    def test_empty_form_lists_every_required_field(self) -> None:
        result = evaluate({}, [], [], [])

        assert result.is_valid is False
        for _, label in REQUIRED_FIELDS:
            assert f"{label} is required" in result.errors

    @pytest.mark.unit
    def test_blank_and_none_values_count_as_missing(
        self, complete_form_data: Dict[str, Any]
    ) -> None:
        data = dict(complete_form_data, companyName="   ", city=None)
        owners = [{"name": "Solo", "email": "solo@example.com", "percentage": 20}] * 5

        result = evaluate(data, owners, [], [])

        assert result.errors == ["Company name is required", "City is required"]

    @pytest.mark.unit
    def test_complete_form_with_small_owners_is_valid(
        self, complete_form_data: Dict[str, Any]
    ) -> None:
        owners = [
            {"name": f"Owner {i}", "email": f"owner{i}@example.com", "percentage": "20"}
            for i in range(5)
        ]

        result = evaluate(complete_form_data, owners, [], [])

        assert result.is_valid is True
        assert result.errors == []
        assert result.missing_signatures == []


class TestOwnershipTotal:
    """Test suite for the 100% ownership check and its tolerance."""

    @staticmethod
    def _small_owners(*percentages: Any) -> List[Dict[str, Any]]:
        return [
            {"name": f"Owner {i}", "email": f"o{i}@example.com", "percentage": pct}
            for i, pct in enumerate(percentages)
        ]

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "percentages,valid",
        [
            (("20", "20", "20", "20", "19.99"), False),
            (("20", "20", "20", "20", "20.00"), True),
            (("20", "20", "20", "20", "20.01"), False),
            (("20.02", "20.02", "20.02", "20.02", "19.93"), False),
            (("20.02", "20.02", "20.02", "19.97", "19.96"), False),
            (("20.01", "20.01", "19.99", "19.99", "20.00"), True),
            (("33.33", "33.33", "33.33"), False),
            ((20.02, 20.02, 20.02, 20.02, 19.92), True),
            (("50", "50.005"), True),
        ],
    )
    def test_total_boundary(
        self, complete_form_data: Dict[str, Any], percentages: Any, valid: bool
    ) -> None:
        owners = self._small_owners(*percentages)

        result = evaluate(complete_form_data, owners, [], [])

        assert result.is_valid is valid

    @pytest.mark.unit
    def test_total_error_message_reports_sum(self, complete_form_data: Dict[str, Any]) -> None:
        owners = self._small_owners(10, 10)

        result = evaluate(complete_form_data, owners, [], [])

        assert result.errors == ["Total ownership must equal 100% (currently 20%)"]

    @pytest.mark.unit
    def test_no_owners_fails_total(self, complete_form_data: Dict[str, Any]) -> None:
        result = evaluate(complete_form_data, [], [], [])

        assert result.is_valid is False
        assert any("Total ownership" in error for error in result.errors)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("25", Decimal("25")),
            ("24.99", Decimal("24.99")),
            (" 30% ", Decimal("30")),
            (70, Decimal("70")),
            (20.02, Decimal("20.02")),
            ("abc", Decimal("0")),
            ("NaN", Decimal("0")),
            (None, Decimal("0")),
        ],
    )
    def test_parse_percentage(self, value: Any, expected: Decimal) -> None:
        assert parse_percentage(value) == expected

    @pytest.mark.unit
    def test_total_error_message_reports_exact_sum(
        self, complete_form_data: Dict[str, Any]
    ) -> None:
        owners = self._small_owners("20.02", "20.02", "20.02", "20.02", "19.93")

        result = evaluate(complete_form_data, owners, [], [])

        assert result.errors == ["Total ownership must equal 100% (currently 100.01%)"]


class TestSignatureRequirement:
    """Test suite for the 25% signature threshold."""

    @pytest.mark.unit
    def test_signed_and_unsigned_large_owners(self, complete_form_data: Dict[str, Any]) -> None:
        owners = [
            {"name": "Signed Sue", "email": "sue@example.com", "percentage": 30},
            {"name": "Unsigned Ulf", "email": "ulf@example.com", "percentage": 70},
        ]
        stored = [_owner(1, "sue@example.com"), _owner(2, "ulf@example.com")]

        result = evaluate(_form(complete_form_data, owners), owners, stored, [_signature(1)])

        assert result.is_valid is False
        assert result.missing_signatures == [
            {"name": "Unsigned Ulf", "email": "ulf@example.com", "percentage": 70.0}
        ]
        assert result.errors == [
            "Signatures required from owners with 25% or more ownership: Unsigned Ulf"
        ]

    @pytest.mark.unit
    def test_threshold_boundary(self, complete_form_data: Dict[str, Any]) -> None:
        owners = [
            {"name": "Exactly 25", "email": "a@example.com", "percentage": "25"},
            {"name": "Just Under", "email": "b@example.com", "percentage": "24.99"},
            {"name": "Rest", "email": "c@example.com", "percentage": "50.01"},
        ]
        stored = [_owner(3, "c@example.com")]

        result = evaluate(complete_form_data, owners, stored, [_signature(3)])

        names = [owner["name"] for owner in result.missing_signatures]
        assert names == ["Exactly 25"]

    @pytest.mark.unit
    def test_owner_without_stored_record_is_missing(
        self, complete_form_data: Dict[str, Any]
    ) -> None:
        owners = [{"name": "Only Owner", "email": "only@example.com", "percentage": 100}]

        result = evaluate(complete_form_data, owners, [], [])

        assert len(result.missing_signatures) == 1
        assert result.is_valid is False

    @pytest.mark.unit
    def test_signature_of_another_owner_does_not_count(
        self, complete_form_data: Dict[str, Any]
    ) -> None:
        owners = [{"name": "Only Owner", "email": "only@example.com", "percentage": 100}]
        stored = [_owner(1, "only@example.com"), _owner(2, "someone@example.com")]

        result = evaluate(complete_form_data, owners, stored, [_signature(2)])

        assert result.is_valid is False

    @pytest.mark.unit
    def test_email_match_ignores_case_and_whitespace(
        self, complete_form_data: Dict[str, Any]
    ) -> None:
        owners = [{"name": "Only Owner", "email": " Only@Example.COM ", "percentage": 100}]
        stored = [_owner(9, "only@example.com")]

        result = evaluate(complete_form_data, owners, stored, [_signature(9)])

        assert result.is_valid is True

    @pytest.mark.unit
    def test_to_dict_uses_camel_case(self) -> None:
        body = evaluate({}, [], [], []).to_dict()

        assert set(body) == {"isValid", "errors", "missingSignatures"}
