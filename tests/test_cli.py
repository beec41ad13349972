"""Tests for the ``sextant`` command."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from shared.config import ConfigError

from sextant.cli import build_config, sextant_cli

from tests.conftest import build_image


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def image_path(tmp_path, v5_be_image):
    path = tmp_path / "vxworks.bin"
    path.write_bytes(v5_be_image.data)
    return path


def test_json_output(runner, image_path, v5_be_image):
    result = runner.invoke(sextant_cli, [str(image_path), "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    analysis = payload["scan"]["metadata"]["image_analysis"]
    assert analysis["image_base"] == v5_be_image.image_base
    assert analysis["symbol_table"]["entry_count"] == v5_be_image.count


def test_rich_output(runner, image_path):
    result = runner.invoke(sextant_cli, [str(image_path)])
    assert result.exit_code == 0, result.output
    assert ".symtab" in result.stdout


def test_writes_symbol_map(runner, image_path, tmp_path):
    out = tmp_path / "image.map"
    result = runner.invoke(sextant_cli, [str(image_path), "--json", "-o", str(out)])

    assert result.exit_code == 0, result.output
    assert " T sysInit" in out.read_text(encoding="utf-8")


def test_writes_json_report(runner, image_path, tmp_path):
    out = tmp_path / "report.json"
    result = runner.invoke(sextant_cli, [str(image_path), "--json", "--output", str(out)])

    assert result.exit_code == 0, result.output
    assert json.loads(out.read_text(encoding="utf-8"))["state"] == "done"


def test_hex_image_base_override(runner, image_path, v5_be_image):
    base = v5_be_image.image_base + 0x1000
    result = runner.invoke(sextant_cli, [str(image_path), "--json", "-b", hex(base)])

    assert result.exit_code == 0, result.output
    analysis = json.loads(result.stdout)["scan"]["metadata"]["image_analysis"]
    assert analysis["image_base"] == base
    assert analysis["metadata"]["symbols_applied"] is False


def test_parse_only(runner, image_path):
    result = runner.invoke(sextant_cli, [str(image_path), "--json", "--parse-only"])

    assert result.exit_code == 0, result.output
    analysis = json.loads(result.stdout)["scan"]["metadata"]["image_analysis"]
    assert analysis["symbols"] == []
    assert analysis["metadata"]["load_settings"]["relocatable"] is False


def test_unknown_platform_exits(runner, image_path):
    result = runner.invoke(sextant_cli, [str(image_path), "--platform", "z80"])
    assert result.exit_code == 1


def test_invalid_integer_is_usage_error(runner, image_path):
    result = runner.invoke(sextant_cli, [str(image_path), "--image-base", "base"])
    assert result.exit_code == 2


def test_negative_integer_is_usage_error(runner, image_path):
    result = runner.invoke(sextant_cli, [str(image_path), "--entry-point-offset=-4"])
    assert result.exit_code == 2


def test_missing_file_is_usage_error(runner, tmp_path):
    result = runner.invoke(sextant_cli, [str(tmp_path / "absent.bin")])
    assert result.exit_code == 2


def test_unrecognised_image_exits_nonzero(runner, tmp_path):
    path = tmp_path / "blob.bin"
    path.write_bytes(bytes(2048))
    result = runner.invoke(sextant_cli, [str(path), "--json"])
    assert result.exit_code == 1


def test_force_flag(runner, tmp_path):
    path = tmp_path / "unsigned.bin"
    path.write_bytes(build_image(signature=False).data)
    result = runner.invoke(sextant_cli, [str(path), "--json", "--force"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["scan"]["metadata"]["image_analysis"]["symbol_table"]


# ---------------------------------------------------------------------------
# Config assembly
# ---------------------------------------------------------------------------

def test_build_config_applies_overrides(tmp_path):
    path = tmp_path / "sextant.toml"
    path.write_text('[loader]\nplatform = "armv7"\n', encoding="utf-8")

    config = build_config(str(path), None, 0x1000, 0x10)
    assert config.loader.platform == "armv7"
    assert config.loader.image_base == 0x1000
    assert config.loader.entry_point_offset == 0x10

    assert build_config(str(path), "mips32", None, None).loader.platform == "mips32"


def test_build_config_rejects_unknown_platform():
    with pytest.raises(ConfigError, match="Unknown platform"):
        build_config(None, "z80", None, None)


def test_build_config_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        build_config(str(tmp_path / "absent.toml"), None, None, None)
