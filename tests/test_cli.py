"""Tests for the shaderlab command-line interface."""

import shutil
from pathlib import Path

import pytest
import yaml
from typer.testing import CliRunner

from shaderlab.main import app
from shaderlab.parser import parse_file
from shaderlab.registry import FieldStage

runner = CliRunner()

GAP_SOURCE = """\
Pass {
    HLSLPROGRAM
    struct Attributes {
        float4 positionOS : POSITION;
    };
    struct Varyings {
        float4 positionCS : SV_POSITION;
        float4 tangentWS  : TEXCOORD0;
    };
    ENDHLSL
}
"""


@pytest.fixture
def shader_copy(toon_path: Path, tmp_path: Path) -> Path:
    """Writable copy of the sample shader."""
    target = tmp_path / "toon.shader"
    shutil.copy(toon_path, target)
    return target


def test_help():
    """Test that the CLI help command works."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "annotated shader files" in result.stdout


def test_show(toon_path: Path):
    result = runner.invoke(app, ["show", str(toon_path)])
    assert result.exit_code == 0
    assert "Shader: AILab/Toon" in result.stdout
    assert "[*] Pass ForwardLit (UniversalForward)" in result.stdout
    assert "Helper: Debug Tint (disabled)" in result.stdout
    assert "UsePass Universal Render Pipeline/Lit/ShadowCaster" in result.stdout


def test_show_missing_file(tmp_path: Path):
    result = runner.invoke(app, ["show", str(tmp_path / "missing.shader")])
    assert result.exit_code == 1


def test_validate_clean(toon_path: Path):
    result = runner.invoke(app, ["validate", str(toon_path)])
    assert result.exit_code == 0
    assert "No data-flow issues found" in result.stdout


def test_validate_reports_gap(tmp_path: Path):
    path = tmp_path / "gap.shader"
    path.write_text(GAP_SOURCE, encoding="utf-8")
    result = runner.invoke(app, ["validate", str(path)])
    assert result.exit_code == 1
    assert "'World Tangent' requires 'tangentOS'" in result.stdout


def test_regenerate_to_stdout(toon_path: Path):
    result = runner.invoke(app, ["regenerate", str(toon_path)])
    assert result.exit_code == 0
    assert result.stdout.startswith('Shader "AILab/Toon" {')
    assert '// [AILab_Block_Start: "Toon Shading"]' in result.stdout


def test_regenerate_to_file(toon_path: Path, tmp_path: Path):
    output = tmp_path / "out.shader"
    result = runner.invoke(app, ["regenerate", str(toon_path), "--output", str(output)])
    assert result.exit_code == 0
    assert parse_file(output).shader_name == "AILab/Toon"


def test_activate_in_place(shader_copy: Path):
    result = runner.invoke(
        app, ["activate", str(shader_copy), "tangentWS", "--in-place"]
    )
    assert result.exit_code == 0

    graph = parse_file(shader_copy).passes[0].data_flow
    assert graph.find_field("tangentWS", FieldStage.OUTPUT).is_active
    assert graph.find_field("tangentOS", FieldStage.INPUT).is_active


def test_activate_named_pass(shader_copy: Path):
    result = runner.invoke(
        app, ["activate", str(shader_copy), "uv", "--pass", "Outline", "--in-place"]
    )
    assert result.exit_code == 0
    outline = parse_file(shader_copy).passes[1].data_flow
    assert outline.find_field("uv", FieldStage.INPUT).is_active


def test_activate_unknown_field(shader_copy: Path):
    result = runner.invoke(app, ["activate", str(shader_copy), "nope"])
    assert result.exit_code == 1


def test_export_record(toon_path: Path, tmp_path: Path):
    output = tmp_path / "toon.yaml"
    result = runner.invoke(app, ["export-record", str(toon_path), "-o", str(output)])
    assert result.exit_code == 0
    record = yaml.safe_load(output.read_text(encoding="utf-8"))
    assert record["shader_name"] == "AILab/Toon"
    assert len(record["passes"]) == 3
