"""Core booking, promotion, payment and reporting components."""
from __future__ import annotations

from ..errors import InvalidInputError


def parse_id(raw: object, field: str) -> int:
    """Coerce a client-supplied identifier, rejecting malformed values."""
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise InvalidInputError(f"Invalid {field} format.")
    try:
        value = int(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid {field} format.") from exc
    if value <= 0:
        raise InvalidInputError(f"Invalid {field} format.")
    return value
