"""
Rule Evaluator

Pure evaluation of one validation rule against one candidate value.

A rule whose criteria do not parse, whose type is unknown, or whose type
does not apply to the template's data type raises RuleConfigurationError.
A value that breaks the rule is an ordinary failed outcome.
"""

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Optional, Type

from .models import TermDataType, ValidationRule
from .protocols import RuleConfigurationError
from .rule_criteria import (
    LengthCriteria,
    ListCriteria,
    RangeCriteria,
    RegexCriteria,
    RequiredCriteria,
    RuleCriteria,
    ValidationType,
    parse_criteria,
)
from .term_values import TermValue, TextValue, ensure_kind


@dataclass(frozen=True)
class RuleOutcome:
    passed: bool
    message: Optional[str] = None


# Data types each validation type may be attached to
APPLICABLE_DATA_TYPES: Dict[ValidationType, FrozenSet[TermDataType]] = {
    ValidationType.REQUIRED: frozenset(TermDataType),
    ValidationType.REGEX: frozenset({TermDataType.TEXT}),
    ValidationType.RANGE: frozenset({TermDataType.NUMERIC}),
    ValidationType.LIST: frozenset({TermDataType.TEXT}),
    ValidationType.LENGTH: frozenset({TermDataType.TEXT}),
}


def is_present(candidate: Optional[TermValue]) -> bool:
    if candidate is None:
        return False
    if isinstance(candidate, TextValue):
        return bool(candidate.value.strip())
    return candidate.value is not None


def _check_required(criteria: RequiredCriteria, candidate: Optional[TermValue]) -> Optional[str]:
    if criteria.required and not is_present(candidate):
        return "value is required"
    return None


def _check_regex(criteria: RegexCriteria, candidate: TermValue) -> Optional[str]:
    if criteria.compiled.search(candidate.value) is None:
        return f"value must match pattern {criteria.pattern}"
    return None


def _check_range(criteria: RangeCriteria, candidate: TermValue) -> Optional[str]:
    if criteria.minimum is not None and candidate.value < criteria.minimum:
        return f"value must be at least {criteria.minimum}"
    if criteria.maximum is not None and candidate.value > criteria.maximum:
        return f"value must be at most {criteria.maximum}"
    return None


def _check_list(criteria: ListCriteria, candidate: TermValue) -> Optional[str]:
    if candidate.value not in criteria.values:
        return f"value must be one of: {', '.join(criteria.values)}"
    return None


def _check_length(criteria: LengthCriteria, candidate: TermValue) -> Optional[str]:
    length = len(candidate.value)
    if criteria.min_length is not None and length < criteria.min_length:
        return f"length must be at least {criteria.min_length}"
    if criteria.max_length is not None and length > criteria.max_length:
        return f"length must be at most {criteria.max_length}"
    return None


_CHECKS: Dict[Type, Callable[..., Optional[str]]] = {
    RegexCriteria: _check_regex,
    RangeCriteria: _check_range,
    ListCriteria: _check_list,
    LengthCriteria: _check_length,
}


def check_applicable(
    criteria: RuleCriteria,
    data_type: TermDataType,
    rule: Optional[ValidationRule] = None,
) -> None:
    data_type = TermDataType(data_type)
    if data_type not in APPLICABLE_DATA_TYPES[criteria.validation_type]:
        raise RuleConfigurationError(
            f"{criteria.validation_type.value} rule cannot be applied to a '{data_type.value}' template",
            rule.validation_rule_id if rule else None,
        )


def evaluate(
    rule: ValidationRule,
    candidate: Optional[TermValue],
    template_data_type: TermDataType,
) -> RuleOutcome:
    """
    Evaluate ``rule`` against ``candidate``.

    An absent candidate only fails REQUIRED rules; presence is not the
    concern of the other rule types. A failed outcome carries the rule's
    own error message when it has one.
    """
    criteria = parse_criteria(rule.validation_type, rule.validation_criteria, rule.validation_rule_id)
    check_applicable(criteria, template_data_type, rule)
    ensure_kind(candidate, template_data_type)

    if isinstance(criteria, RequiredCriteria):
        failure = _check_required(criteria, candidate)
    elif candidate is None:
        failure = None
    else:
        failure = _CHECKS[type(criteria)](criteria, candidate)

    if failure is None:
        return RuleOutcome(passed=True)
    return RuleOutcome(passed=False, message=rule.error_message or failure)
