"""
Contract Service Microservice

Contract management with dynamic terms: term templates carry validation
rules, and every proposed term value is validated against them before it
is attached to a contract.
"""

from .contract_service import ContractService
from .models import (
    Contract,
    ContractResource,
    ContractStatus,
    DynamicTerm,
    RejectionCode,
    RejectionReason,
    RuleFailure,
    TermCategory,
    TermDataType,
    TermTemplate,
    ValidationRule,
    ValidationVerdict,
)
from .rule_criteria import ValidationType, parse_criteria
from .rule_evaluator import RuleOutcome, evaluate
from .term_lifecycle import TermLifecycleManager
from .term_service import ContractTermService
from .term_validation import validate
from .term_values import TermValue, coerce_term_value

__version__ = "1.0.0"
__all__ = [
    "ContractService",
    "ContractTermService",
    "TermLifecycleManager",
    "Contract",
    "ContractResource",
    "ContractStatus",
    "DynamicTerm",
    "RejectionCode",
    "RejectionReason",
    "RuleFailure",
    "TermCategory",
    "TermDataType",
    "TermTemplate",
    "ValidationRule",
    "ValidationVerdict",
    "ValidationType",
    "RuleOutcome",
    "TermValue",
    "parse_criteria",
    "evaluate",
    "validate",
    "coerce_term_value",
]
