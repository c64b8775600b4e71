"""Test-set validation: YAML syntax, schema and matrix semantics.

Validation runs in three stages, each collecting every error it finds:
YAML parsing with line tracking, the TestSetDefinition schema, and the
checks that need the whole matrix (duplicate group names, profiles that
cannot be resolved for some test case duration). A definition that
passes all three can be run without a ConfigurationError.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from callsim.errors import ConfigurationError
from callsim.execution.matrix import validate_matrix
from callsim.loader.yaml_parser import (
    LineMap,
    YAMLParseError,
    parse_yaml_file,
    parse_yaml_with_lines,
)
from callsim.models.network import (
    CustomProfile,
    LimitedBandwidth,
    NetworkConfig,
    NetworkConfigWithOffset,
    SimpleLoss,
)
from callsim.models.test_case import AudioConfig, CallConfig, TestCaseConfig, VideoConfig
from callsim.models.test_set import GroupDefinition, TestSetDefinition


def _field_names(*models: type[BaseModel]) -> list[str]:
    names: dict[str, None] = {}
    for model in models:
        names.update(dict.fromkeys(model.model_fields))
    return list(names)


# Every key a test-set file may contain, for typo suggestions.
KNOWN_FIELDS: list[str] = _field_names(
    TestSetDefinition,
    GroupDefinition,
    TestCaseConfig,
    CallConfig,
    AudioConfig,
    VideoConfig,
    CustomProfile,
    LimitedBandwidth,
    SimpleLoss,
    NetworkConfigWithOffset,
    NetworkConfig,
)

# Discriminator tags pydantic inserts into error locations of profiles.
PROFILE_KINDS: frozenset[str] = frozenset(
    {"none", "default", "moderate", "international", "spiky_loss",
     "limited_bandwidth", "simple_loss", "custom"}
)


@dataclass
class ValidationErrorDetail:
    """One problem found in a test-set file.

    Attributes:
        field: Dotted path of the offending entry.
        message: Human-readable description.
        type: Error type (pydantic's, or one of the loader's own).
        line: 1-indexed source line, if known.
        col: 1-indexed source column, if known.
        suggestion: "Did you mean" hint for unknown keys.
        input_value: The rejected value, if available.
    """

    field: str
    message: str
    type: str
    line: int | None = None
    col: int | None = None
    suggestion: str | None = None
    input_value: Any = field(default=None)


def _loc_to_path(loc: tuple[str | int, ...]) -> str:
    parts: list[str] = []
    for index, part in enumerate(loc):
        if (
            isinstance(part, str)
            and part in PROFILE_KINDS
            and index > 0
            and isinstance(loc[index - 1], int)
        ):
            continue
        parts.append(str(part))
    return ".".join(parts)


def _position(path: str, line_map: LineMap) -> tuple[int | None, int | None]:
    """Position of a path, or of its closest ancestor present in the file."""
    parts = path.split(".")
    while parts:
        candidate = ".".join(parts)
        if candidate in line_map:
            return line_map[candidate]
        parts.pop()
    return None, None


def _suggest(name: str) -> str | None:
    matches = difflib.get_close_matches(name, KNOWN_FIELDS, n=1, cutoff=0.6)
    return f"Did you mean '{matches[0]}'?" if matches else None


def _schema_errors(exc: ValidationError, line_map: LineMap) -> list[ValidationErrorDetail]:
    details: list[ValidationErrorDetail] = []
    for err in exc.errors():
        loc = tuple(err.get("loc", ()))
        path = _loc_to_path(loc)
        error_type = err.get("type", "unknown")
        line, col = _position(path, line_map)
        suggestion = None
        if error_type == "extra_forbidden" and loc:
            suggestion = _suggest(str(loc[-1]))
        details.append(
            ValidationErrorDetail(
                field=path or "<root>",
                message=err.get("msg", "Validation error"),
                type=error_type,
                line=line,
                col=col,
                suggestion=suggestion,
                input_value=err.get("input"),
            )
        )
    return details


def _matrix_errors(
    definition: TestSetDefinition,
    line_map: LineMap,
) -> list[ValidationErrorDetail]:
    details: list[ValidationErrorDetail] = []
    seen: set[str] = set()
    for index, group in enumerate(definition.groups):
        path = f"groups.{index}"
        line, col = _position(f"{path}.name", line_map)
        if group.name in seen:
            details.append(
                ValidationErrorDetail(
                    field=f"{path}.name",
                    message=f"Duplicate group name '{group.name}'",
                    type="duplicate_group",
                    line=line,
                    col=col,
                    input_value=group.name,
                )
            )
        seen.add(group.name)
        try:
            validate_matrix(group.name, group.test_cases, group.profiles)
        except ConfigurationError as exc:
            line, col = _position(path, line_map)
            details.append(
                ValidationErrorDetail(
                    field=path,
                    message=str(exc),
                    type="configuration_error",
                    line=line,
                    col=col,
                )
            )
    return details


def validate_test_set(
    raw_data: dict[str, Any],
    line_map: LineMap,
) -> tuple[TestSetDefinition | None, list[ValidationErrorDetail]]:
    """Validate parsed YAML data as a runnable test set.

    Returns:
        (definition, []) on success, (None, errors) otherwise.
    """
    try:
        definition = TestSetDefinition.model_validate(raw_data)
    except ValidationError as exc:
        return None, _schema_errors(exc, line_map)

    errors = _matrix_errors(definition, line_map)
    if errors:
        return None, errors
    return definition, []


def _yaml_error(exc: YAMLParseError) -> ValidationErrorDetail:
    return ValidationErrorDetail(
        field="<yaml>",
        message=exc.message,
        type="yaml_syntax_error",
        line=exc.line,
        col=exc.column,
    )


def validate_test_set_file(
    filepath: Path,
) -> tuple[TestSetDefinition | None, list[ValidationErrorDetail]]:
    """Validate a test-set YAML file, reporting every error at once."""
    try:
        raw_data, line_map = parse_yaml_file(filepath)
    except YAMLParseError as exc:
        return None, [_yaml_error(exc)]

    if raw_data is None:
        return None, [
            ValidationErrorDetail(
                field="<yaml>",
                message="File is empty or not a mapping",
                type="empty_file",
            )
        ]
    return validate_test_set(raw_data, line_map)


def validate_test_set_string(
    source: str,
    filename: str = "<string>",
) -> tuple[TestSetDefinition | None, list[ValidationErrorDetail]]:
    """Validate test-set YAML text, reporting every error at once."""
    try:
        raw_data, line_map = parse_yaml_with_lines(source, filename=filename)
    except YAMLParseError as exc:
        return None, [_yaml_error(exc)]

    if raw_data is None:
        return None, [
            ValidationErrorDetail(
                field="<yaml>",
                message="Input is empty or not a mapping",
                type="empty_input",
            )
        ]
    return validate_test_set(raw_data, line_map)


def load_test_set(filepath: Path) -> TestSetDefinition:
    """Load a test set, raising on the first validation problem.

    Raises:
        ConfigurationError: If the file is missing or invalid. The
            individual errors are available as ``exc.details``.
    """
    if not filepath.is_file():
        raise ConfigurationError(f"Test set file not found: {filepath}")
    definition, errors = validate_test_set_file(filepath)
    if errors:
        first = errors[0]
        where = f":{first.line}" if first.line else ""
        exc = ConfigurationError(
            f"{filepath}{where}: {first.field}: {first.message}"
            + (f" (and {len(errors) - 1} more)" if len(errors) > 1 else "")
        )
        exc.details = errors
        raise exc
    assert definition is not None
    return definition
