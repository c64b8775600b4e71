"""Tests for YAML parsing with line tracking."""

import pytest

from callsim.loader.yaml_parser import YAMLParseError, parse_yaml_file, parse_yaml_with_lines

SOURCE = """\
name: example
groups:
  - name: g
    test_cases:
      - name: call
        duration: 30
    profiles:
      - none
      - kind: simple_loss
        percent: 10
"""


class TestParseYamlWithLines:
    """Positions are recorded under dotted paths with sequence indices."""

    def test_data_is_plain_python(self):
        data, _ = parse_yaml_with_lines(SOURCE)
        assert data["groups"][0]["profiles"] == ["none", {"kind": "simple_loss", "percent": 10}]

    def test_top_level_keys(self):
        _, line_map = parse_yaml_with_lines(SOURCE)
        assert line_map["name"] == (1, 1)
        assert line_map["groups"] == (2, 1)

    def test_nested_paths(self):
        _, line_map = parse_yaml_with_lines(SOURCE)
        assert line_map["groups.0"] == (3, 5)
        assert line_map["groups.0.name"] == (3, 5)
        assert line_map["groups.0.test_cases.0.duration"] == (6, 9)
        assert line_map["groups.0.profiles.0"] == (8, 9)
        assert line_map["groups.0.profiles.1.percent"] == (10, 9)

    def test_empty_document(self):
        assert parse_yaml_with_lines("") == (None, {})
        assert parse_yaml_with_lines("# only a comment\n") == (None, {})

    def test_non_mapping_document(self):
        assert parse_yaml_with_lines("- a\n- b\n") == (None, {})

    def test_syntax_error_has_position(self):
        with pytest.raises(YAMLParseError) as exc_info:
            parse_yaml_with_lines("name: example\ngroups: [unclosed\n", filename="bad.yaml")
        assert exc_info.value.filename == "bad.yaml"
        assert exc_info.value.line is not None


class TestParseYamlFile:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "set.yaml"
        path.write_text(SOURCE)
        data, line_map = parse_yaml_file(path)
        assert data["name"] == "example"
        assert "groups.0.test_cases.0.name" in line_map

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_yaml_file(tmp_path / "absent.yaml")
