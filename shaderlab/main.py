"""Command line interface for shaderlab.

This module provides commands to inspect, validate and regenerate annotated
shader files from the terminal.
"""

import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar, cast

import typer
from loguru import logger

from shaderlab.config import LabSettings
from shaderlab.document import ShaderDocument
from shaderlab.errors import ShaderLabError
from shaderlab.parser import ShaderParser
from shaderlab.registry import FieldRegistry, FieldStage
from shaderlab.serialization import dump_document
from shaderlab.writer import ShaderWriter

F = TypeVar("F", bound=Callable[..., Any])


def typed_command(app_command: Any) -> Callable[[F], F]:
    """Wrap typer command with proper typing for mypy."""

    def decorator(func: F) -> F:
        return cast(F, app_command(func))

    return decorator


app = typer.Typer(
    name="shaderlab",
    help=(
        "Inspect and regenerate annotated shader files. "
        "Commands: show, validate, regenerate, activate, export-record."
    ),
    add_completion=False,
)

SHADER_FILE_ARG = typer.Argument(..., help="Annotated .shader file")
OUTPUT_OPTION = typer.Option(
    None, "--output", "-o", help="Write the result to this file instead of stdout"
)
IN_PLACE_OPTION = typer.Option(
    False, "--in-place", "-i", help="Overwrite the source file"
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    """Configure logging for all commands."""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def _load(shader_file: Path) -> tuple[ShaderDocument, FieldRegistry, LabSettings]:
    """Parse a shader file, exiting with status 1 on failure."""
    registry = FieldRegistry.default()
    settings = LabSettings.from_env()
    try:
        result = ShaderParser(registry, settings).parse_file(shader_file)
    except ShaderLabError as e:
        logger.error(f"Failed to load shader: {e}")
        raise typer.Exit(1) from e
    for warning in result.warnings:
        logger.warning(f"{shader_file}:{warning.line + 1}: {warning.message}")
    return result.document, registry, settings


def _emit(
    doc: ShaderDocument,
    writer: ShaderWriter,
    shader_file: Path,
    output: Path | None,
    in_place: bool,
) -> None:
    """Write regenerated text to a file, back to the source, or to stdout."""
    if in_place:
        writer.write_file(doc, shader_file)
        logger.info(f"Rewrote {shader_file}")
    elif output is not None:
        writer.write_file(doc, output)
        logger.info(f"Shader written to {output}")
    else:
        typer.echo(writer.generate(doc), nl=False)


@typed_command(app.command("show"))
def show_shader(shader_file: Path = SHADER_FILE_ARG) -> None:
    """Show passes, blocks and active struct fields of a shader."""
    doc, _, _ = _load(shader_file)

    typer.echo(f"Shader: {doc.shader_name}")
    typer.echo(f"Properties: {len(doc.properties)}")
    for prop in doc.properties:
        typer.echo(f"  {prop.name} ({prop.property_type.value})")

    for index, shader_pass in enumerate(doc.passes):
        marker = "*" if index == doc.active_pass_index else " "
        if shader_pass.is_use_pass:
            typer.echo(f"[{marker}] UsePass {shader_pass.use_pass_path}")
            continue
        typer.echo(f"[{marker}] Pass {shader_pass.name} ({shader_pass.light_mode or '-'})")
        for block in shader_pass.blocks:
            state = "" if block.is_enabled else " (disabled)"
            typer.echo(f"    {block.section.value}: {block.title}{state}")
        if shader_pass.data_flow is not None:
            graph = shader_pass.data_flow
            inputs = [f.name for f in graph.active_fields(FieldStage.INPUT)]
            outputs = [f.name for f in graph.active_fields(FieldStage.OUTPUT)]
            typer.echo(f"    Attributes: {', '.join(inputs)}")
            typer.echo(f"    Varyings: {', '.join(outputs)}")


@typed_command(app.command("validate"))
def validate_shader(shader_file: Path = SHADER_FILE_ARG) -> None:
    """Report output fields whose input dependencies are not active.

    Exits with status 1 when any issue is found.
    """
    doc, _, _ = _load(shader_file)
    issue_count = 0
    for shader_pass in doc.passes:
        if shader_pass.data_flow is None:
            continue
        for issue in shader_pass.data_flow.validate():
            typer.echo(f"{shader_pass.name}: {issue.message}")
            issue_count += 1

    if issue_count:
        logger.error(f"Found {issue_count} data-flow issue(s)")
        raise typer.Exit(1)
    typer.echo("No data-flow issues found")


@typed_command(app.command("regenerate"))
def regenerate_shader(
    shader_file: Path = SHADER_FILE_ARG,
    output: Path | None = OUTPUT_OPTION,
    in_place: bool = IN_PLACE_OPTION,
) -> None:
    """Parse a shader and write it back in canonical annotated form."""
    doc, registry, settings = _load(shader_file)
    _emit(doc, ShaderWriter(registry, settings), shader_file, output, in_place)


@typed_command(app.command("activate"))
def activate_field(
    shader_file: Path = SHADER_FILE_ARG,
    field_name: str = typer.Argument(..., help="Varyings field to activate"),
    pass_name: str = typer.Option(
        "", "--pass", "-p", help="Pass to edit (default: the active pass)"
    ),
    output: Path | None = OUTPUT_OPTION,
    in_place: bool = IN_PLACE_OPTION,
) -> None:
    """Activate an output field and the input fields it depends on.

    Example: shaderlab activate Toon.shader normalWS --in-place
    """
    doc, registry, settings = _load(shader_file)

    if pass_name:
        shader_pass = next((p for p in doc.passes if p.name == pass_name), None)
    else:
        shader_pass = doc.active_pass
    if shader_pass is None or shader_pass.data_flow is None:
        logger.error(f"No editable pass named '{pass_name or doc.active_pass_index}'")
        raise typer.Exit(1)

    graph = shader_pass.data_flow
    if graph.find_field(field_name, FieldStage.OUTPUT) is None:
        logger.error(f"Unknown Varyings field: {field_name}")
        raise typer.Exit(1)

    activated = graph.activate_output_with_dependencies(field_name)
    doc.is_dirty = True
    if activated:
        logger.info(f"Also activated: {', '.join(activated)}")
    _emit(doc, ShaderWriter(registry, settings), shader_file, output, in_place)


@typed_command(app.command("export-record"))
def export_record(
    shader_file: Path = SHADER_FILE_ARG,
    output: Path | None = OUTPUT_OPTION,
) -> None:
    """Export the parsed document as a YAML record."""
    doc, _, _ = _load(shader_file)
    if output is not None:
        dump_document(doc, output)
        logger.info(f"Record exported to {output}")
    else:
        typer.echo(dump_document(doc), nl=False)


if __name__ == "__main__":
    app()
