"""
Rule-table validation for write payloads.

Each payload type has a table mapping a JSON property name to an
ordered list of rules.  A rule is a callable receiving the raw value
and returning an error message, or ``None`` when the value is
acceptable.  ``validate`` evaluates the table and returns every
violation as ``{"property": ..., "message": ...}``; evaluation of a
property stops at its first failing rule so that, for example, a
missing name is reported once rather than also as "too short".
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from email_validator import EmailNotValidError, validate_email


Rule = Callable[[Any], Optional[str]]
Violation = Dict[str, str]

PHONE_PATTERN = re.compile(r"^\+?[0-9]+$")
# Up to two fractional digits; normalised to exactly two by ``normalize_price``.
PRICE_PATTERN = re.compile(r"^\d+(\.\d{1,2})?$")
CENTS = Decimal("0.01")
# Prices are stored with at most 10 digits, 2 of them fractional.
MAX_PRICE = Decimal("99999999.99")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def required(message: str) -> Rule:
    def rule(value: Any) -> Optional[str]:
        return message if value is None else None

    return rule


def not_blank(message: str) -> Rule:
    def rule(value: Any) -> Optional[str]:
        return message if _is_blank(value) else None

    return rule


def length(min_length: int, max_length: int, label: str) -> Rule:
    def rule(value: Any) -> Optional[str]:
        size = len(str(value))
        if size < min_length:
            return f"{label} must be at least {min_length} characters"
        if size > max_length:
            return f"{label} cannot exceed {max_length} characters"
        return None

    return rule


def matches(pattern: "re.Pattern[str]", message: str) -> Rule:
    def rule(value: Any) -> Optional[str]:
        return None if pattern.match(str(value)) else message

    return rule


def email_address(value: Any) -> Optional[str]:
    try:
        validate_email(str(value), check_deliverability=False)
    except EmailNotValidError:
        return f"The email {value!r} is not a valid email."
    return None


def integer(message: str) -> Rule:
    def rule(value: Any) -> Optional[str]:
        if isinstance(value, bool) or not isinstance(value, int):
            return message
        return None

    return rule


def price_format(value: Any) -> Optional[str]:
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        return "Price must be a number"
    if not PRICE_PATTERN.match(str(value).strip()):
        return "Price must be a valid number with up to 2 decimal places"
    return None


def price_range(value: Any) -> Optional[str]:
    try:
        price = Decimal(str(value).strip())
    except InvalidOperation:
        return "Price must be a valid number with up to 2 decimal places"
    if price <= 0:
        return "Price must be greater than zero"
    if price > MAX_PRICE:
        return f"Price cannot exceed {MAX_PRICE}"
    return None


def normalize_price(value: Any) -> Decimal:
    """Convert an accepted price (``"10.5"``, ``10.5``, ``"10.50"``) to ``Decimal('10.50')``."""
    try:
        return Decimal(str(value).strip()).quantize(CENTS)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid price: {value!r}") from exc


PROVIDER_RULES: Dict[str, Sequence[Rule]] = {
    "name": [not_blank("Name is required"), length(2, 255, "Name")],
    "email": [not_blank("Email is required"), email_address],
    "phone": [
        not_blank("Phone number is required"),
        length(10, 15, "Phone number"),
        matches(PHONE_PATTERN, "Phone number can only contain numbers and an optional + prefix"),
    ],
    "address": [not_blank("Address is required"), length(5, 255, "Address")],
}

SERVICE_RULES: Dict[str, Sequence[Rule]] = {
    "name": [not_blank("Name is required"), length(2, 255, "Name")],
    "description": [not_blank("Description is required")],
    "price": [not_blank("Price is required"), price_format, price_range],
    "providerId": [required("Provider ID is required"), integer("Provider ID must be an integer")],
}

# The provider of a service cannot be changed once the service exists.
SERVICE_UPDATE_RULES: Dict[str, Sequence[Rule]] = {
    field: rules for field, rules in SERVICE_RULES.items() if field != "providerId"
}


def validate(payload: Mapping[str, Any], rules: Mapping[str, Sequence[Rule]]) -> List[Violation]:
    """Evaluate ``rules`` against ``payload`` and return all violations."""
    violations: List[Violation] = []
    for field, field_rules in rules.items():
        value = payload.get(field)
        for rule in field_rules:
            message = rule(value)
            if message:
                violations.append({"property": field, "message": message})
                break
    return violations
