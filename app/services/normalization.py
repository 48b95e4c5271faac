"""
app/services/normalization.py

Type normalisation for raw dump values.

Amounts follow the registry's mix of Czech and ISO notations; every failure
surfaces as ValidationError so the reconciler can report it per record.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from app.domain.errors import ValidationError
from app.domain.registry import NormalizedAmendment, NormalizedContract, RawAmendment, RawRecord

DEFAULT_CATEGORY = "ostatni"
DEFAULT_PROCUREMENT_TYPE = "standardní"

_CENTS = Decimal("0.01")
_WHITESPACE = re.compile(r"\s+")
_CURRENCY = re.compile(r"(kč|czk|,-|\.-)$", re.IGNORECASE)
_CZECH_DATE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")


def collapse_whitespace(value: str | None) -> str:
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def parse_amount(raw: str | None, *, field: str = "amount") -> Decimal:
    """
    Parse an amount such as ``1 234,50``, ``1.234,50 Kč`` or ``1234.5``.

    A missing amount is 0.00; a present but unparseable one is invalid.
    More than two fractional digits (``99.999``) is rejected rather than
    rounded: in Czech notation the dot there is usually a thousands separator.
    """

    text = _WHITESPACE.sub("", raw or "").replace(" ", "")
    if not text:
        return Decimal("0.00")
    text = _CURRENCY.sub("", text)

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        value = Decimal(text)
        if not value.is_finite():
            raise ValidationError(f"Invalid {field}: {raw!r}")
        if value.as_tuple().exponent < -2:
            raise ValidationError(f"Ambiguous {field}, more than two decimals: {raw!r}")
        return value.quantize(_CENTS)
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid {field}: {raw!r}") from exc


def parse_date(raw: str | None, *, field: str = "date") -> date:
    """
    Parse an ISO date, an ISO datetime or ``DD.MM.YYYY``.
    """

    text = (raw or "").strip()
    if not text:
        raise ValidationError(f"Missing {field}.")

    compact = text.replace(" ", "")
    match = _CZECH_DATE.match(compact)
    try:
        if match:
            day, month, year = (int(part) for part in match.groups())
            return date(year, month, day)
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise ValidationError(f"Invalid {field}: {raw!r}") from exc


def parse_coordinate(raw: str | None, *, limit: float) -> float | None:
    text = (raw or "").strip().replace(",", ".")
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return value if -limit <= value <= limit else None


def normalize_amendment(raw: RawAmendment) -> NormalizedAmendment:
    return NormalizedAmendment(
        amount=parse_amount(raw.amount_raw, field="amendment amount"),
        amendment_date=parse_date(raw.date_raw, field="amendment date"),
    )


def normalize_amendments(raws: tuple[RawAmendment, ...]) -> tuple[NormalizedAmendment, ...]:
    """Normalise nested amendments, dropping repeats within the record."""
    seen: set[tuple[Decimal, date]] = set()
    result: list[NormalizedAmendment] = []
    for raw in raws:
        amendment = normalize_amendment(raw)
        key = (amendment.amount, amendment.amendment_date)
        if key in seen:
            continue
        seen.add(key)
        result.append(amendment)
    return tuple(result)


def normalize_contract(record: RawRecord) -> NormalizedContract:
    title = collapse_whitespace(record.title)
    if not title:
        raise ValidationError("Missing title.", external_id=record.external_id)

    try:
        amount = parse_amount(record.amount_raw)
        contract_date = parse_date(record.date_raw)
        amendments = normalize_amendments(record.amendments)
    except ValidationError as exc:
        raise ValidationError(exc.message, external_id=record.external_id) from exc

    tax_id = collapse_whitespace(record.supplier_tax_id).replace(" ", "") or None
    return NormalizedContract(
        external_id=collapse_whitespace(record.external_id) or None,
        title=title,
        amount=amount,
        category=collapse_whitespace(record.category) or DEFAULT_CATEGORY,
        contract_date=contract_date,
        supplier_name=collapse_whitespace(record.supplier_name),
        supplier_tax_id=tax_id,
        authority_name=collapse_whitespace(record.authority_name),
        procurement_type=collapse_whitespace(record.procurement_type) or DEFAULT_PROCUREMENT_TYPE,
        latitude=parse_coordinate(record.latitude_raw, limit=90.0),
        longitude=parse_coordinate(record.longitude_raw, limit=180.0),
        amendments=amendments,
    )
