"""Name types for values that become directory names under the output dir."""

from __future__ import annotations

from typing import Annotated

from pydantic import AfterValidator, Field


def _check_path_segment(value: str) -> str:
    if "/" in value or "\\" in value:
        raise ValueError("must not contain path separators")
    if value in (".", ".."):
        raise ValueError(f"'{value}' is not a usable name")
    return value


PathName = Annotated[str, Field(min_length=1), AfterValidator(_check_path_segment)]
