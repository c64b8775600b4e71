"""YAML parsing with source positions for test-set definitions.

The document is composed into a PyYAML node graph once; the graph is
walked to record the position of every mapping key and sequence item
under its dotted path (``groups.0.profiles.1``), and then constructed
into plain Python data with the safe constructor.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

LineMap = dict[str, tuple[int, int]]


class YAMLParseError(Exception):
    """Raised when a test-set file is not valid YAML.

    Attributes:
        line: 1-indexed line of the problem, if known.
        column: 1-indexed column of the problem, if known.
        filename: File being parsed, or '<string>'.
    """

    def __init__(
        self,
        message: str,
        line: int | None = None,
        column: int | None = None,
        filename: str = "<string>",
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.filename = filename
        super().__init__(message)


def _position(node: yaml.Node) -> tuple[int, int]:
    return node.start_mark.line + 1, node.start_mark.column + 1


def _collect_positions(node: yaml.Node, prefix: str, line_map: LineMap) -> None:
    if isinstance(node, yaml.MappingNode):
        for key_node, value_node in node.value:
            if not isinstance(key_node, yaml.ScalarNode):
                continue
            path = f"{prefix}.{key_node.value}" if prefix else str(key_node.value)
            line_map[path] = _position(key_node)
            _collect_positions(value_node, path, line_map)
    elif isinstance(node, yaml.SequenceNode):
        for index, item in enumerate(node.value):
            path = f"{prefix}.{index}" if prefix else str(index)
            line_map.setdefault(path, _position(item))
            _collect_positions(item, path, line_map)


def parse_yaml_with_lines(
    source: str,
    filename: str = "<string>",
) -> tuple[dict[str, Any] | None, LineMap]:
    """Parse YAML text into (data, line_map).

    Returns (None, {}) for empty documents and documents whose top level
    is not a mapping.

    Raises:
        YAMLParseError: If the text is not valid YAML.
    """
    try:
        root = yaml.compose(source, Loader=yaml.SafeLoader)
        data = yaml.safe_load(source) if root is not None else None
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        raise YAMLParseError(
            message=str(exc),
            line=mark.line + 1 if mark is not None else None,
            column=mark.column + 1 if mark is not None else None,
            filename=filename,
        ) from exc

    if root is None or not isinstance(data, dict):
        return None, {}

    line_map: LineMap = {}
    _collect_positions(root, "", line_map)
    return data, line_map


def parse_yaml_file(filepath: Path) -> tuple[dict[str, Any] | None, LineMap]:
    """Parse a YAML file into (data, line_map).

    Raises:
        YAMLParseError: If the file is not valid YAML.
        FileNotFoundError: If the file does not exist.
    """
    return parse_yaml_with_lines(filepath.read_text(encoding="utf-8"), filename=str(filepath))
