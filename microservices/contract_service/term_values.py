"""
Typed term values

A dynamic term carries exactly one value whose type is fixed by its
template's data type. ``TermValue`` is the tagged union of those cases;
``coerce_term_value`` reads a wire value into the case for a data type and
the storage helpers map a case onto the three value columns of
``contract_term_dynamic``.
"""

import json
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .models import DynamicTerm, TermDataType
from .protocols import TermValueCoercionError, TermValueMismatchError


class _Value(BaseModel):
    model_config = ConfigDict(frozen=True)


class TextValue(_Value):
    kind: Literal["text"] = "text"
    value: str


class NumericValue(_Value):
    kind: Literal["numeric"] = "numeric"
    value: Decimal


class BooleanValue(_Value):
    kind: Literal["boolean"] = "boolean"
    value: bool


class DateValue(_Value):
    kind: Literal["date"] = "date"
    value: date


class JsonValue(_Value):
    kind: Literal["json"] = "json"
    value: Any = None


TermValue = Annotated[
    Union[TextValue, NumericValue, BooleanValue, DateValue, JsonValue],
    Field(discriminator="kind"),
]

_CASES = {
    TermDataType.TEXT: TextValue,
    TermDataType.NUMERIC: NumericValue,
    TermDataType.BOOLEAN: BooleanValue,
    TermDataType.DATE: DateValue,
    TermDataType.JSON: JsonValue,
}


def ensure_kind(candidate: Optional[TermValue], data_type: TermDataType) -> None:
    """Raise TermValueMismatchError unless the candidate is absent or of ``data_type``"""
    if candidate is None:
        return
    if candidate.kind != TermDataType(data_type).value:
        raise TermValueMismatchError(
            f"Candidate value of type '{candidate.kind}' given for a '{TermDataType(data_type).value}' template"
        )


def _to_text(raw: Any) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (int, float, Decimal)) and not isinstance(raw, bool):
        return str(raw)
    raise TermValueCoercionError(f"Expected text, got {type(raw).__name__}")


def _to_decimal(raw: Any) -> Decimal:
    if isinstance(raw, bool) or not isinstance(raw, (int, float, Decimal, str)):
        raise TermValueCoercionError(f"Expected a number, got {type(raw).__name__}")
    try:
        number = Decimal(str(raw).strip())
    except InvalidOperation:
        raise TermValueCoercionError(f"Not a number: {raw!r}")
    if not number.is_finite():
        raise TermValueCoercionError(f"Not a finite number: {raw!r}")
    return number


def _to_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str) and raw.strip().lower() in ("true", "false"):
        return raw.strip().lower() == "true"
    raise TermValueCoercionError(f"Expected true or false, got {raw!r}")


def _to_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if isinstance(raw, str):
        text = raw.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            raise TermValueCoercionError(f"Not an ISO-8601 date: {raw!r}")
    raise TermValueCoercionError(f"Expected a date, got {type(raw).__name__}")


def _to_json(raw: Any) -> Any:
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            raise TermValueCoercionError(f"Not a JSON document: {raw!r}")
    try:
        json.dumps(raw)
    except (TypeError, ValueError):
        raise TermValueCoercionError(f"Value is not JSON serialisable: {type(raw).__name__}")
    return raw


_COERCERS = {
    TermDataType.TEXT: _to_text,
    TermDataType.NUMERIC: _to_decimal,
    TermDataType.BOOLEAN: _to_bool,
    TermDataType.DATE: _to_date,
    TermDataType.JSON: _to_json,
}


def coerce_term_value(data_type: TermDataType, raw: Any) -> Optional[TermValue]:
    """
    Read a wire value as the case of ``data_type``.

    ``None`` stays absent. A value already typed as a TermValue must match
    the data type. Anything unreadable raises TermValueCoercionError.
    """
    data_type = TermDataType(data_type)
    if raw is None:
        return None
    if isinstance(raw, _Value):
        ensure_kind(raw, data_type)
        return raw
    return _CASES[data_type](value=_COERCERS[data_type](raw))


def to_storage(data_type: TermDataType, candidate: Optional[TermValue]) -> Dict[str, Any]:
    """Column values for a candidate; the column is chosen by the data type"""
    columns = {"term_value_text": None, "term_value_numeric": None, "term_value_json": None}
    if candidate is None:
        return columns
    ensure_kind(candidate, data_type)

    if isinstance(candidate, TextValue):
        columns["term_value_text"] = candidate.value
    elif isinstance(candidate, NumericValue):
        columns["term_value_numeric"] = candidate.value
    elif isinstance(candidate, BooleanValue):
        columns["term_value_text"] = "true" if candidate.value else "false"
    elif isinstance(candidate, DateValue):
        columns["term_value_text"] = candidate.value.isoformat()
    else:
        columns["term_value_json"] = candidate.value
    return columns


def from_storage(data_type: TermDataType, term: DynamicTerm) -> Optional[TermValue]:
    """Typed value of a stored term, read from the column of ``data_type``"""
    data_type = TermDataType(data_type)
    if data_type == TermDataType.NUMERIC:
        raw = term.term_value_numeric
    elif data_type == TermDataType.JSON:
        raw = term.term_value_json
        return None if raw is None else JsonValue(value=raw)
    else:
        raw = term.term_value_text
    return coerce_term_value(data_type, raw)
