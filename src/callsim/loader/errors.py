"""Formatting of test-set validation errors.

Human mode prints each error with its source line and a caret marker;
CI mode prints one ``file:line:col -- field: message`` line per error.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape

if TYPE_CHECKING:
    from callsim.loader.validator import ValidationErrorDetail


# (code, description) per error type; looked up by exact type, then by prefix.
ERROR_CODES: dict[str, tuple[str, str]] = {
    "extra_forbidden": ("E001", "unknown field"),
    "missing": ("E002", "required field missing"),
    "union_tag_invalid": ("E003", "unknown network profile kind"),
    "union_tag_not_found": ("E003", "network profile without kind"),
    "literal_error": ("E003", "invalid choice"),
    "enum": ("E003", "invalid choice"),
    "greater_than": ("E004", "value out of range"),
    "less_than": ("E004", "value out of range"),
    "too_short": ("E004", "too few entries"),
    "int": ("E005", "type mismatch"),
    "float": ("E005", "type mismatch"),
    "string": ("E005", "type mismatch"),
    "bool": ("E005", "type mismatch"),
    "list_type": ("E005", "type mismatch"),
    "model_type": ("E005", "type mismatch"),
    "yaml_syntax_error": ("E006", "YAML syntax error"),
    "empty_file": ("E007", "empty test set"),
    "empty_input": ("E007", "empty test set"),
    "duplicate_group": ("E008", "duplicate group"),
    "configuration_error": ("E009", "invalid test matrix"),
}


def error_code(error_type: str) -> tuple[str, str]:
    if error_type in ERROR_CODES:
        return ERROR_CODES[error_type]
    for key, entry in ERROR_CODES.items():
        if error_type.startswith(key):
            return entry
    return ("E999", "validation error")


class ErrorFormatter:
    """Renders ValidationErrorDetail lists for people or for CI logs.

    Args:
        ci_mode: Concise output. None auto-detects from the CI variable.
    """

    def __init__(self, ci_mode: bool | None = None, console: Console | None = None) -> None:
        if ci_mode is None:
            ci_mode = os.environ.get("CI", "").lower() in ("true", "1", "yes")
        self.ci_mode = ci_mode
        self.console = console or Console(stderr=not ci_mode, highlight=False)

    def format_error(
        self,
        error: ValidationErrorDetail,
        source_lines: list[str],
        filename: str,
    ) -> str:
        if self.ci_mode:
            hint = f" ({error.suggestion})" if error.suggestion else ""
            return (
                f"{filename}:{error.line or 0}:{error.col or 0} -- "
                f"{error.field}: {error.message}{hint}"
            )

        code, description = error_code(error.type)
        out = [f"error[{code}]: {description}"]
        if error.line is None:
            out.append(f"  --> {filename}")
            out.append(f"   | {error.field}: {error.message}")
        else:
            out.append(f"  --> {filename}:{error.line}:{error.col or 1}")
            gutter = " " * len(str(error.line))
            if 0 < error.line <= len(source_lines):
                out.append(f" {error.line} | {source_lines[error.line - 1].rstrip()}")
                marker = " " * max((error.col or 1) - 1, 0) + "^"
                out.append(f" {gutter} | {marker} {error.message}")
            else:
                out.append(f" {gutter} | {error.message}")
        if error.suggestion:
            out.append(f"   = help: {error.suggestion}")
        return "\n".join(out)

    def format_all(
        self,
        errors: list[ValidationErrorDetail],
        source: str,
        filename: str,
    ) -> str:
        source_lines = source.splitlines()
        separator = "\n" if self.ci_mode else "\n\n"
        return separator.join(self.format_error(e, source_lines, filename) for e in errors)

    def print_errors(
        self,
        errors: list[ValidationErrorDetail],
        source: str,
        filename: str,
    ) -> None:
        text = escape(self.format_all(errors, source, filename))
        if self.ci_mode:
            self.console.print(text, soft_wrap=True)
        else:
            self.console.print(f"[red]{text}[/red]")

    def print_success(self, filename: str) -> None:
        self.console.print(f"  {escape(filename)} ... [green]valid[/green]")
