"""Test-set loading - YAML parsing, validation and error reporting."""

from callsim.loader.errors import ErrorFormatter
from callsim.loader.validator import (
    ValidationErrorDetail,
    load_test_set,
    validate_test_set,
    validate_test_set_file,
    validate_test_set_string,
)
from callsim.loader.yaml_parser import YAMLParseError, parse_yaml_file, parse_yaml_with_lines

__all__ = [
    "ErrorFormatter",
    "ValidationErrorDetail",
    "YAMLParseError",
    "load_test_set",
    "parse_yaml_file",
    "parse_yaml_with_lines",
    "validate_test_set",
    "validate_test_set_file",
    "validate_test_set_string",
]
