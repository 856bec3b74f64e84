"""
Template Validation Orchestrator

Evaluates a candidate value against every rule of a term template and
aggregates the outcomes into a ValidationVerdict. All rules are evaluated
so the caller gets the complete list of failures in one round trip.
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from .models import RuleFailure, TermTemplate, ValidationRule, ValidationVerdict
from .protocols import RuleConfigurationError
from .rule_evaluator import evaluate
from .term_values import TermValue, ensure_kind

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def order_rules(rules: Iterable[ValidationRule]) -> List[ValidationRule]:
    """Stable order: explicit sort_order first, then creation time, then input position"""
    indexed = list(enumerate(rules))
    indexed.sort(key=lambda item: (
        item[1].sort_order is None,
        item[1].sort_order or 0,
        item[1].created_at is None,
        item[1].created_at or _EPOCH,
        item[0],
    ))
    return [rule for _, rule in indexed]


def validate(
    template: TermTemplate,
    rules: Iterable[ValidationRule],
    candidate: Optional[TermValue],
) -> ValidationVerdict:
    """
    Validate ``candidate`` against ``rules`` of ``template``.

    Raises TermValueMismatchError when the candidate is not of the
    template's data type and RuleConfigurationError (carrying the rule id)
    when any rule is broken; in both cases no verdict is produced.
    """
    ensure_kind(candidate, template.data_type)

    failures: List[RuleFailure] = []
    for rule in order_rules(rules):
        if rule.term_template_id != template.term_template_id:
            raise RuleConfigurationError(
                f"Rule belongs to template {rule.term_template_id}, not {template.term_template_id}",
                rule.validation_rule_id,
            )
        outcome = evaluate(rule, candidate, template.data_type)
        if not outcome.passed:
            failures.append(RuleFailure(
                validation_rule_id=rule.validation_rule_id,
                validation_type=rule.validation_type,
                message=outcome.message,
            ))

    return ValidationVerdict(is_valid=not failures, failures=failures)
