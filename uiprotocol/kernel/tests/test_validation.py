"""
uiprotocol Kernel — Validation Tests

Pattern and check validation. Every check runs; errors accumulate.
"""

import pytest

from uiprotocol.kernel.diagnostics import CORE_CODES
from uiprotocol.kernel.functions import FunctionRegistry
from uiprotocol.kernel.validation import validate_value


class TestPattern:
    def test_match_passes(self):
        result = validate_value("12345", pattern=r"^\d{5}$")
        assert result.ok
        assert result.errors == []

    def test_mismatch_fails(self):
        result = validate_value("abc", pattern=r"^\d{5}$")
        assert not result.ok
        assert [e.code for e in result.errors] == [CORE_CODES.validation_regex_failed]
        assert result.errors[0].message == "Value does not match required pattern."

    def test_invalid_pattern_is_reported(self):
        result = validate_value("abc", pattern="(")
        assert not result.ok
        assert result.errors[0].code == CORE_CODES.validation_regex_failed
        assert result.errors[0].message.startswith("Invalid regex pattern")

    def test_pattern_ignored_for_non_strings(self):
        assert validate_value(42, pattern=r"^[a-z]+$").ok


class TestChecks:
    def test_all_pass(self):
        checks = [{"call": "required"}, {"call": "email"}]
        assert validate_value("ada@example.com", checks=checks).ok

    def test_two_failures_both_reported(self):
        checks = [{"call": "required"}, {"call": "email"}]
        result = validate_value("", checks=checks)
        assert not result.ok
        assert len(result.errors) == 2
        assert {e.code for e in result.errors} == {CORE_CODES.validation_check_failed}
        assert "required" in result.errors[0].message
        assert "email" in result.errors[1].message

    def test_pattern_and_check_both_reported(self):
        result = validate_value("x", pattern=r"^\d+$", checks=[{"call": "email"}])
        assert [e.code for e in result.errors] == [
            CORE_CODES.validation_regex_failed,
            CORE_CODES.validation_check_failed,
        ]

    def test_value_is_injected_into_args(self):
        registry = FunctionRegistry({"longer_than": lambda args: len(args["value"]) > args["min"]})
        checks = [{"call": "longer_than", "args": {"min": 3}}]
        assert validate_value("abcd", checks=checks, registry=registry).ok
        assert not validate_value("ab", checks=checks, registry=registry).ok

    def test_args_resolve_against_document(self):
        document = {"rules": {"zip": r"^\d{5}$"}}
        checks = [{"call": "regex", "args": {"pattern": {"path": "/rules/zip"}}}]
        assert validate_value("12345", document=document, checks=checks).ok
        assert not validate_value("abc", document=document, checks=checks).ok

    def test_args_resolve_relative_to_scope(self):
        document = {"form": {"password": "secret"}}
        registry = FunctionRegistry({"same": lambda args: args["value"] == args["other"]})
        checks = [{"call": "same", "args": {"other": {"path": "./password"}}}]
        assert validate_value("secret", document=document, checks=checks, scope="/form", registry=registry).ok

    def test_failure_details_carry_resolved_args(self):
        result = validate_value("", checks=[{"call": "required"}])
        assert result.errors[0].details == {"call": "required", "resolvedArgs": {"value": ""}}


class TestCheckFaults:
    def test_unknown_function_does_not_stop_later_checks(self):
        result = validate_value("", checks=[{"call": "nope"}, {"call": "required"}])
        assert [e.code for e in result.errors] == [
            CORE_CODES.unknown_function,
            CORE_CODES.validation_check_failed,
        ]

    def test_raising_executor_is_an_error(self):
        def boom(args):
            raise RuntimeError("kaput")

        result = validate_value("x", checks=[{"call": "boom"}], registry=FunctionRegistry({"boom": boom}))
        assert not result.ok
        assert result.errors[0].code == CORE_CODES.function_execution_failed
        assert "boom" in result.errors[0].message

    @pytest.mark.parametrize("check", [{}, {"call": ""}, "required", None])
    def test_malformed_check(self, check):
        result = validate_value("x", checks=[check])
        assert not result.ok
        assert result.errors[0].code == CORE_CODES.validation_check_failed
