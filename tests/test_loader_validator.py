"""Tests for test-set validation."""

from pathlib import Path

import pytest

from callsim.errors import ConfigurationError
from callsim.loader.validator import (
    load_test_set,
    validate_test_set_file,
    validate_test_set_string,
)
from callsim.models.network import CustomProfile, NoImpairment, SimpleLoss

EXAMPLE = Path(__file__).resolve().parent.parent / "test_sets" / "example.yaml"

VALID = """\
name: smoke
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


class TestValidateTestSetString:
    """Schema errors carry their path, position and a hint."""

    def test_valid_definition(self):
        definition, errors = validate_test_set_string(VALID)
        assert errors == []
        group = definition.groups[0]
        assert isinstance(group.profiles[0], NoImpairment)
        assert isinstance(group.profiles[1], SimpleLoss)

    def test_profiles_default_to_none(self):
        source = "name: s\ngroups:\n  - name: g\n    test_cases:\n      - name: call\n"
        definition, errors = validate_test_set_string(source)
        assert errors == []
        assert [p.label for p in definition.groups[0].profiles] == ["none"]

    def test_unknown_key_suggests_correction(self):
        source = VALID.replace("        duration: 30", "        duraton: 30")
        _, errors = validate_test_set_string(source)
        assert len(errors) == 1
        error = errors[0]
        assert error.type == "extra_forbidden"
        assert error.field == "groups.0.test_cases.0.duraton"
        assert error.line == 6
        assert error.suggestion == "Did you mean 'duration'?"

    def test_unknown_profile_kind(self):
        source = VALID.replace("      - none", "      - lossy")
        _, errors = validate_test_set_string(source)
        assert [e.field for e in errors] == ["groups.0.profiles.0"]
        assert errors[0].type == "union_tag_invalid"
        assert errors[0].line == 8

    def test_profile_field_path_skips_kind_tag(self):
        source = VALID.replace("percent: 10", "percent: 200")
        _, errors = validate_test_set_string(source)
        assert errors[0].field == "groups.0.profiles.1.percent"
        assert errors[0].line == 10

    def test_missing_groups(self):
        _, errors = validate_test_set_string("name: s\n")
        assert errors[0].field == "groups"
        assert errors[0].type == "missing"

    def test_all_errors_reported(self):
        source = VALID.replace("name: smoke", "nmae: smoke").replace("duration: 30", "duration: 0")
        _, errors = validate_test_set_string(source)
        assert {e.field for e in errors} >= {"nmae", "name", "groups.0.test_cases.0.duration"}

    def test_offset_beyond_duration(self):
        source = """\
name: s
groups:
  - name: g
    test_cases:
      - name: call
        duration: 30
    profiles:
      - kind: custom
        label: late
        timeline:
          - offset: 40
            network_config: {loss_percent: 5}
"""
        _, errors = validate_test_set_string(source)
        assert errors[0].type == "configuration_error"
        assert errors[0].field == "groups.0"
        assert "test case 'call'" in errors[0].message
        assert errors[0].line == 3

    def test_duplicate_group(self):
        source = VALID + VALID.split("groups:\n", 1)[1]
        _, errors = validate_test_set_string(source)
        assert [e.type for e in errors] == ["duplicate_group"]
        assert errors[0].field == "groups.1.name"

    def test_duplicate_profile_label(self):
        source = VALID.replace("      - none\n", "      - kind: custom\n        label: simple_loss_10\n")
        _, errors = validate_test_set_string(source)
        assert errors[0].type == "configuration_error"
        assert "duplicate network profile" in errors[0].message

    def test_yaml_syntax_error(self):
        _, errors = validate_test_set_string("name: [broken\n")
        assert errors[0].type == "yaml_syntax_error"

    def test_empty_input(self):
        _, errors = validate_test_set_string("")
        assert errors[0].type == "empty_input"


class TestValidateTestSetFile:
    def test_example_test_set_is_valid(self):
        definition, errors = validate_test_set_file(EXAMPLE)
        assert errors == []
        assert [g.name for g in definition.groups] == ["constant_conditions", "changing_conditions"]
        custom = definition.groups[1].profiles[0]
        assert isinstance(custom, CustomProfile)
        assert [e.offset for e in custom.timeline] == [0, 60, 120, 180]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        _, errors = validate_test_set_file(path)
        assert errors[0].type == "empty_file"


class TestLoadTestSet:
    def test_loads(self):
        assert load_test_set(EXAMPLE).name == "example"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            load_test_set(tmp_path / "absent.yaml")

    def test_invalid_file_carries_details(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(VALID.replace("duration: 30", "duraton: 30"))
        with pytest.raises(ConfigurationError) as exc_info:
            load_test_set(path)
        assert f"{path}:6" in str(exc_info.value)
        assert exc_info.value.details[0].suggestion == "Did you mean 'duration'?"
