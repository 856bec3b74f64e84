"""
Rule Criteria Model

Typed criteria for each validation type. Stored criteria are JSON and are
parsed into exactly one of the models below; anything that does not fit the
declared type is a RuleConfigurationError, never a silently passing rule.

    REQUIRED  {"required": true}
    REGEX     {"pattern": "^[A-Z]{2,10}$", "flags": "i"}
    RANGE     {"min": 0, "max": 100}
    LIST      {"values": ["NET30", "NET60"]}
    LENGTH    {"minLength": 1, "maxLength": 50}
"""

import json
import re
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any, ClassVar, Dict, List, Optional, Type, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .protocols import RuleConfigurationError


class ValidationType(str, Enum):
    REQUIRED = "REQUIRED"
    REGEX = "REGEX"
    RANGE = "RANGE"
    LIST = "LIST"
    LENGTH = "LENGTH"


REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


@lru_cache(maxsize=256)
def compile_pattern(pattern: str, flags: str = "") -> "re.Pattern[str]":
    value = 0
    for letter in flags:
        value |= REGEX_FLAGS[letter]
    return re.compile(pattern, value)


class _Criteria(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    validation_type: ClassVar[ValidationType]


class RequiredCriteria(_Criteria):
    validation_type: ClassVar[ValidationType] = ValidationType.REQUIRED

    required: bool = True


class RegexCriteria(_Criteria):
    validation_type: ClassVar[ValidationType] = ValidationType.REGEX

    pattern: str
    flags: str = ""

    @field_validator("flags")
    @classmethod
    def _known_flags(cls, value: str) -> str:
        unknown = sorted(set(value) - set(REGEX_FLAGS))
        if unknown:
            raise ValueError(f"unknown regex flag(s): {''.join(unknown)}")
        return value

    @model_validator(mode="after")
    def _compiles(self) -> "RegexCriteria":
        try:
            compile_pattern(self.pattern, self.flags)
        except re.error as e:
            raise ValueError(f"pattern does not compile: {e}")
        return self

    @property
    def compiled(self) -> "re.Pattern[str]":
        return compile_pattern(self.pattern, self.flags)


class RangeCriteria(_Criteria):
    validation_type: ClassVar[ValidationType] = ValidationType.RANGE

    minimum: Optional[Decimal] = Field(None, alias="min")
    maximum: Optional[Decimal] = Field(None, alias="max")

    @model_validator(mode="after")
    def _ordered(self) -> "RangeCriteria":
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise ValueError(f"min {self.minimum} is greater than max {self.maximum}")
        return self


class ListCriteria(_Criteria):
    validation_type: ClassVar[ValidationType] = ValidationType.LIST

    values: List[str] = Field(..., min_length=1)


class LengthCriteria(_Criteria):
    validation_type: ClassVar[ValidationType] = ValidationType.LENGTH

    min_length: Optional[int] = Field(None, alias="minLength", ge=0)
    max_length: Optional[int] = Field(None, alias="maxLength", ge=0)

    @model_validator(mode="after")
    def _ordered(self) -> "LengthCriteria":
        if self.min_length is not None and self.max_length is not None and self.min_length > self.max_length:
            raise ValueError(f"minLength {self.min_length} is greater than maxLength {self.max_length}")
        return self


RuleCriteria = Union[RequiredCriteria, RegexCriteria, RangeCriteria, ListCriteria, LengthCriteria]

CRITERIA_MODELS: Dict[ValidationType, Type[_Criteria]] = {
    ValidationType.REQUIRED: RequiredCriteria,
    ValidationType.REGEX: RegexCriteria,
    ValidationType.RANGE: RangeCriteria,
    ValidationType.LIST: ListCriteria,
    ValidationType.LENGTH: LengthCriteria,
}


def parse_validation_type(validation_type: Any, validation_rule_id: Optional[UUID] = None) -> ValidationType:
    if isinstance(validation_type, ValidationType):
        return validation_type
    try:
        return ValidationType(str(validation_type).strip().upper())
    except ValueError:
        raise RuleConfigurationError(f"Unknown validation type: {validation_type!r}", validation_rule_id)


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    detail = details[0]
    location = ".".join(str(part) for part in detail.get("loc", ()))
    message = detail.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


def parse_criteria(
    validation_type: Any,
    raw: Any,
    validation_rule_id: Optional[UUID] = None,
) -> RuleCriteria:
    """
    Parse stored criteria into the model of ``validation_type``.

    ``raw`` may be a mapping, a JSON-encoded string or ``None`` (treated as
    an empty object). Any mismatch raises RuleConfigurationError carrying
    the rule id.
    """
    kind = parse_validation_type(validation_type, validation_rule_id)

    if raw is None:
        raw = {}
    elif isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise RuleConfigurationError(f"{kind.value} criteria is not valid JSON: {e}", validation_rule_id)

    if not isinstance(raw, dict):
        raise RuleConfigurationError(
            f"{kind.value} criteria must be a JSON object, got {type(raw).__name__}", validation_rule_id
        )

    try:
        return CRITERIA_MODELS[kind].model_validate(raw)
    except ValidationError as e:
        raise RuleConfigurationError(f"Invalid {kind.value} criteria: {_first_error(e)}", validation_rule_id)
