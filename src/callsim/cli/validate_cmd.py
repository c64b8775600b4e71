"""callsim validate -- check test-set files without running anything.

Reports YAML syntax, schema and matrix errors (duplicate names, profiles
invalid for a test case duration) all at once, with rich or CI output.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from callsim.loader.errors import ErrorFormatter
from callsim.loader.validator import validate_test_set_file
from callsim.models.config import find_project_root, load_harness_config


def validate(
    test_sets: Optional[list[str]] = typer.Argument(
        None, help="Test-set files to validate (default: all in the test sets dir)"
    ),
    ci: bool = typer.Option(False, "--ci", help="CI-friendly concise output"),
) -> None:
    """Validate test-set YAML files. Exits 1 if any file has errors."""
    formatter = ErrorFormatter(ci_mode=ci)

    files: list[Path] = []
    if test_sets:
        for name in test_sets:
            path = Path(name)
            if not path.exists():
                typer.echo(f"Error: File not found: {name}", err=True)
                raise typer.Exit(code=1)
            files.append(path)
    else:
        project_root = find_project_root()
        directory = project_root / load_harness_config(project_root).test_sets_dir
        if directory.is_dir():
            files = sorted([*directory.glob("**/*.yaml"), *directory.glob("**/*.yml")])
        if not files:
            typer.echo(f"No test-set files found in {directory}.")
            raise typer.Exit(code=1)

    invalid = 0
    for path in files:
        _, errors = validate_test_set_file(path)
        if errors:
            invalid += 1
            formatter.print_errors(errors, path.read_text(encoding="utf-8"), str(path))
        else:
            formatter.print_success(str(path))

    typer.echo(f"\n{len(files) - invalid}/{len(files)} test sets valid")
    if invalid:
        raise typer.Exit(code=1)
