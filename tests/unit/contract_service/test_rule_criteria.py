"""
Rule Criteria Unit Tests

Parsing of stored validation criteria into typed criteria models.

Usage:
    pytest tests/unit/contract_service/test_rule_criteria.py -v
"""
import uuid
from decimal import Decimal

import pytest

from microservices.contract_service.protocols import RuleConfigurationError
from microservices.contract_service.rule_criteria import (
    LengthCriteria,
    ListCriteria,
    RangeCriteria,
    RegexCriteria,
    RequiredCriteria,
    ValidationType,
    parse_criteria,
    parse_validation_type,
)

pytestmark = [pytest.mark.unit]


class TestParseValidationType:
    """Validation type names"""

    def test_accepts_known_types_case_insensitively(self):
        assert parse_validation_type("regex") is ValidationType.REGEX
        assert parse_validation_type(" Range ") is ValidationType.RANGE

    def test_unknown_type_is_configuration_error(self):
        rule_id = uuid.uuid4()
        with pytest.raises(RuleConfigurationError) as exc_info:
            parse_validation_type("CHECKSUM", rule_id)
        assert exc_info.value.validation_rule_id == rule_id
        assert "CHECKSUM" in exc_info.value.message


class TestParseCriteriaShapes:
    """Each validation type parses into its own model"""

    def test_required(self):
        criteria = parse_criteria("REQUIRED", {"required": False})
        assert isinstance(criteria, RequiredCriteria)
        assert criteria.required is False

    def test_required_defaults_to_true(self):
        assert parse_criteria("REQUIRED", None).required is True

    def test_regex_with_flags(self):
        criteria = parse_criteria("REGEX", {"pattern": "^net\\d+$", "flags": "i"})
        assert isinstance(criteria, RegexCriteria)
        assert criteria.compiled.search("NET30")

    def test_range_reads_min_and_max_aliases(self):
        criteria = parse_criteria("RANGE", {"min": 0, "max": 100.5})
        assert isinstance(criteria, RangeCriteria)
        assert criteria.minimum == Decimal("0")
        assert criteria.maximum == Decimal("100.5")

    def test_range_bounds_are_optional(self):
        criteria = parse_criteria("RANGE", {"max": 10})
        assert criteria.minimum is None

    def test_list(self):
        criteria = parse_criteria("LIST", {"values": ["NET30", "NET60"]})
        assert isinstance(criteria, ListCriteria)
        assert criteria.values == ["NET30", "NET60"]

    def test_length_accepts_camel_and_snake_case(self):
        camel = parse_criteria("LENGTH", {"minLength": 1, "maxLength": 5})
        snake = parse_criteria("LENGTH", {"min_length": 1, "max_length": 5})
        assert isinstance(camel, LengthCriteria)
        assert camel == snake

    def test_json_encoded_criteria_string(self):
        criteria = parse_criteria("LIST", '{"values": ["A"]}')
        assert criteria.values == ["A"]


class TestMalformedCriteria:
    """Every malformed criteria is a RuleConfigurationError carrying the rule id"""

    @pytest.mark.parametrize(
        "validation_type, raw",
        [
            ("REGEX", {"pattern": "[unclosed"}),
            ("REGEX", {"pattern": "a", "flags": "q"}),
            ("REGEX", {}),
            ("RANGE", {"min": 10, "max": 1}),
            ("RANGE", {"min": "ten"}),
            ("LIST", {"values": []}),
            ("LIST", {"values": "A,B"}),
            ("LENGTH", {"minLength": -1}),
            ("LENGTH", {"minLength": 5, "maxLength": 2}),
            ("REQUIRED", {"required": True, "extra": 1}),
            ("LIST", ["A", "B"]),
            ("LIST", "{not json"),
        ],
    )
    def test_rejected(self, validation_type, raw):
        rule_id = uuid.uuid4()
        with pytest.raises(RuleConfigurationError) as exc_info:
            parse_criteria(validation_type, raw, rule_id)
        assert exc_info.value.validation_rule_id == rule_id

    def test_message_names_the_offending_field(self):
        with pytest.raises(RuleConfigurationError, match="pattern does not compile"):
            parse_criteria("REGEX", {"pattern": "(("})

    def test_criteria_are_immutable(self):
        criteria = parse_criteria("LIST", {"values": ["A"]})
        with pytest.raises(Exception):
            criteria.values = ["B"]
