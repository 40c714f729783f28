from __future__ import annotations

import logging
from pathlib import Path

import pytest

from reclass_resolver.config.loader import config_from_dict, load_config
from reclass_resolver.config.models import CompatFlag, Config
from reclass_resolver.utils.errors import ConfigError


def _write_config(root: Path, text: str, name: str = "reclass-config.yml") -> Path:
    path = root / name
    path.write_text(text, encoding="utf-8")
    return path


def test_config_from_dict_uses_default_directories(tmp_path: Path) -> None:
    config = config_from_dict(tmp_path, {})

    assert config.inventory_path == str(tmp_path)
    assert config.nodes_path == str(tmp_path / "nodes")
    assert config.classes_path == str(tmp_path / "classes")
    assert config.ignore_class_notfound is False
    assert config.ignore_class_notfound_regexp == [".*"]
    assert config.compose_node_name is False
    assert config.default_environment == "base"


def test_config_from_dict_keeps_relative_prefix() -> None:
    config = config_from_dict("./inventory", {"nodes_uri": "targets"})

    assert config.nodes_path == "./inventory/targets"
    assert config.classes_path == "./inventory/classes"


def test_config_from_dict_reads_reclass_options(tmp_path: Path) -> None:
    config = config_from_dict(
        tmp_path,
        {
            "nodes_uri": "targets",
            "classes_uri": "lib",
            "ignore_class_notfound": True,
            "ignore_class_notfound_regexp": ["service\\..*"],
            "compose_node_name": True,
            "class_mappings": ["* common"],
            "reclass_rs_compat_flags": ["compose-node-name-literal-dots"],
        },
    )

    assert config.nodes_path == str(tmp_path / "targets")
    assert config.classes_path == str(tmp_path / "lib")
    assert config.ignore_class_notfound is True
    assert config.compose_node_name is True
    assert config.has_compat_flag(CompatFlag.COMPOSE_NODE_NAME_LITERAL_DOTS)
    assert [str(rule) for rule in config.class_mapping_rules] == ["* common"]


def test_config_from_dict_rejects_non_bool(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="'ignore_class_notfound' to be a boolean"):
        config_from_dict(tmp_path, {"ignore_class_notfound": "yes"})


def test_config_from_dict_rejects_non_list(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="'class_mappings' to be a list"):
        config_from_dict(tmp_path, {"class_mappings": "* common"})


def test_config_from_dict_rejects_overlapping_paths(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="non-overlapping"):
        config_from_dict(tmp_path, {"nodes_uri": "classes/nodes"})


def test_config_from_dict_rejects_invalid_class_mapping(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="enclosed in `/`"):
        config_from_dict(tmp_path, {"class_mappings": ["/web common"]})


def test_config_from_dict_rejects_invalid_ignore_regexp(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="ignore_class_notfound regex pattern"):
        config_from_dict(tmp_path, {"ignore_class_notfound_regexp": ["("]})


def test_unknown_compat_flag_is_ignored_with_warning(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.WARNING, logger="reclass_resolver.config")

    config = config_from_dict(tmp_path, {"reclass_rs_compat_flags": ["no-such-flag"]})

    assert config.compatflags == frozenset()
    assert any("no-such-flag" in record.message for record in caplog.records)


def test_unsupported_option_is_ignored(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="reclass_resolver.config")

    config = config_from_dict(tmp_path, {"storage_type": "yaml_fs"})

    assert config.nodes_path == str(tmp_path / "nodes")
    assert any("storage_type" in record.message for record in caplog.records)


def test_load_config_reads_yaml_file(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        """
nodes_uri: targets
classes_uri: classes
compose_node_name: true
default_environment: prod
""",
    )

    config = load_config(tmp_path)

    assert config.nodes_path == str(tmp_path / "targets")
    assert config.compose_node_name is True
    assert config.default_environment == "prod"


def test_load_config_accepts_empty_file(tmp_path: Path) -> None:
    _write_config(tmp_path, "")

    config = load_config(tmp_path)

    assert config.classes_path == str(tmp_path / "classes")


def test_load_config_raises_for_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Config file not found"):
        load_config(tmp_path, "missing.yml")


def test_load_config_raises_for_invalid_yaml(tmp_path: Path) -> None:
    _write_config(tmp_path, "nodes_uri: [unclosed\n")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_config(tmp_path)


def test_load_config_raises_for_non_mapping(tmp_path: Path) -> None:
    _write_config(tmp_path, "- nodes\n- classes\n")

    with pytest.raises(ConfigError, match="to be a mapping"):
        load_config(tmp_path)


def test_is_class_ignored_requires_flag_and_pattern() -> None:
    assert Config().is_class_ignored("anything") is False
    assert Config(ignore_class_notfound=True).is_class_ignored("anything") is True

    config = Config(ignore_class_notfound=True, ignore_class_notfound_regexp=["service\\..*"])

    assert config.is_class_ignored("service.foo") is True
    assert config.is_class_ignored("other.service.foo") is True
    assert config.is_class_ignored("other") is False

    anchored = config.with_ignore_class_notfound_regexp(["^service\\."])

    assert anchored.is_class_ignored("other.service.foo") is False


def test_config_copies_leave_original_untouched() -> None:
    config = Config(compose_node_name=True)

    flagged = config.with_compat_flag("compose-node-name-literal-dots")
    unflagged = flagged.with_compat_flag(CompatFlag.COMPOSE_NODE_NAME_LITERAL_DOTS, enabled=False)

    assert config.compatflags == frozenset()
    assert flagged.compatflags == frozenset({CompatFlag.COMPOSE_NODE_NAME_LITERAL_DOTS})
    assert unflagged.compatflags == frozenset()


def test_with_ignore_class_notfound_regexp_validates_patterns() -> None:
    config = Config(ignore_class_notfound=True)

    updated = config.with_ignore_class_notfound_regexp(["foo.*"])

    assert updated.is_class_ignored("foo.bar") is True
    assert updated.is_class_ignored("bar") is False
    with pytest.raises(ValueError):
        config.with_ignore_class_notfound_regexp(["("])


def test_config_rejects_unknown_fields() -> None:
    with pytest.raises(ValueError):
        Config(nodes_uri="nodes")


def test_compat_flag_parse_rejects_unknown_flag() -> None:
    with pytest.raises(ValueError, match="Unknown compatibility flag 'bogus'"):
        CompatFlag.parse("bogus")
