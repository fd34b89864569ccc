"""
Completion/validation evaluation for prospect applications.

Pure function of its inputs: no database access, no side effects. Stored
owners and signatures only need `id`/`email` and `owner_id` attributes, so ORM
rows and plain objects both work.
"""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

# (field name, label) in wizard order
REQUIRED_FIELDS = (
    ("companyName", "Company name"),
    ("companyEmail", "Company email"),
    ("companyPhone", "Company phone"),
    ("address", "Business address"),
    ("city", "City"),
    ("state", "State"),
    ("zipCode", "ZIP code"),
    ("federalTaxId", "Federal tax ID"),
    ("businessType", "Business type"),
    ("yearsInBusiness", "Years in business"),
    ("businessDescription", "Business description"),
    ("productsServices", "Products/services"),
    ("processingMethod", "Processing method"),
    ("monthlyVolume", "Monthly volume"),
    ("averageTicket", "Average ticket"),
    ("highestTicket", "Highest ticket"),
)

OWNERSHIP_TOTAL = Decimal("100")
# Totals 0.01 or more away from 100 are invalid
OWNERSHIP_TOLERANCE = Decimal("0.01")
SIGNATURE_THRESHOLD = Decimal("25")


@dataclass
class EvaluationResult:
    """Outcome of evaluating an application for submission."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    missing_signatures: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "errors": self.errors,
            "missingSignatures": self.missing_signatures,
        }


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def parse_percentage(value: Any) -> Decimal:
    """
    Ownership percentage from a number or decimal string; garbage counts as 0.

    Kept as Decimal so owner shares sum exactly and the 0.01 tolerance holds.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    try:
        percentage = Decimal(str(value).strip().rstrip("%"))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not percentage.is_finite():
        return Decimal("0")
    return percentage


def _format_percentage(value: Decimal) -> str:
    # "20.00" -> "20", "100.01" -> "100.01"
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def _normalize_email(email: Any) -> str:
    return str(email or "").strip().lower()


def evaluate(
    form_data: Optional[Mapping[str, Any]],
    owners_from_form: Optional[Iterable[Mapping[str, Any]]],
    owners_in_store: Sequence[Any],
    signatures_in_store: Sequence[Any],
) -> EvaluationResult:
    """
    Decide whether collected form data and signatures allow submission.

    Args:
        form_data: Application payload (wizard form data)
        owners_from_form: Owners declared in the form ({name, email, percentage})
        owners_in_store: Stored ProspectOwner rows for the prospect
        signatures_in_store: Stored ProspectSignature rows for the prospect

    Returns:
        EvaluationResult: is_valid, human-readable errors, owners missing a signature
    """
    form_data = form_data or {}
    owners = [owner for owner in (owners_from_form or []) if isinstance(owner, Mapping)]
    errors: List[str] = []

    for field_name, label in REQUIRED_FIELDS:
        if _is_blank(form_data.get(field_name)):
            errors.append(f"{label} is required")

    total = sum(
        (parse_percentage(owner.get("percentage")) for owner in owners), Decimal("0")
    )
    if abs(total - OWNERSHIP_TOTAL) >= OWNERSHIP_TOLERANCE:
        errors.append(
            f"Total ownership must equal 100% (currently {_format_percentage(total)}%)"
        )

    stored_by_email = {_normalize_email(owner.email): owner for owner in owners_in_store}
    signed_owner_ids = {signature.owner_id for signature in signatures_in_store}

    missing_signatures: List[Dict[str, Any]] = []
    for owner in owners:
        percentage = parse_percentage(owner.get("percentage"))
        if percentage < SIGNATURE_THRESHOLD:
            continue
        stored = stored_by_email.get(_normalize_email(owner.get("email")))
        if stored is None or stored.id not in signed_owner_ids:
            missing_signatures.append(
                {
                    "name": owner.get("name"),
                    "email": owner.get("email"),
                    "percentage": float(percentage),
                }
            )

    if missing_signatures:
        names = ", ".join(str(owner["name"] or owner["email"]) for owner in missing_signatures)
        errors.append(
            f"Signatures required from owners with 25% or more ownership: {names}"
        )

    return EvaluationResult(
        is_valid=not errors,
        errors=errors,
        missing_signatures=missing_signatures,
    )
