"""
Plain-record persistence of shader documents.

A record is a tree of dicts, lists and scalars holding every entity field, so
it can be dumped as YAML and loaded back into an equal document. Records carry
a format version and the time they were produced.
"""

from dataclasses import asdict
from pathlib import Path
from typing import Any

import arrow
import yaml
from loguru import logger

from shaderlab.dataflow import DataFlowGraph
from shaderlab.document import ShaderDocument, ShaderPass
from shaderlab.errors import RecordFormatError
from shaderlab.models import (
    Block,
    GlobalSettings,
    Property,
    PropertyType,
    RenderState,
    SectionType,
    Stencil,
)
from shaderlab.registry import Field, FieldRegistry, FieldStage

RECORD_VERSION = 1


def _field_to_record(f: Field) -> dict[str, Any]:
    return {
        "name": f.name,
        "data_type": f.data_type,
        "semantic": f.semantic,
        "display_name": f.display_name,
        "stage": f.stage.name,
        "is_required": f.is_required,
        "is_active": f.is_active,
        "annotation": f.annotation,
    }


def _field_from_record(record: dict[str, Any]) -> Field:
    return Field(
        name=record["name"],
        data_type=record["data_type"],
        semantic=record.get("semantic", ""),
        display_name=record.get("display_name", ""),
        stage=FieldStage[record["stage"]],
        is_required=bool(record.get("is_required", False)),
        is_active=bool(record.get("is_active", False)),
        annotation=record.get("annotation", ""),
    )


def _property_to_record(prop: Property) -> dict[str, Any]:
    record = asdict(prop)
    record["property_type"] = prop.property_type.value
    return record


def _block_to_record(block: Block) -> dict[str, Any]:
    record = asdict(block)
    record["section"] = block.section.value
    return record


def _pass_to_record(shader_pass: ShaderPass) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": shader_pass.id,
        "name": shader_pass.name,
        "light_mode": shader_pass.light_mode,
        "is_use_pass": shader_pass.is_use_pass,
        "use_pass_path": shader_pass.use_pass_path,
        "pragmas": list(shader_pass.pragmas),
        "includes": list(shader_pass.includes),
        "render_state": (
            asdict(shader_pass.render_state) if shader_pass.render_state else None
        ),
        "blocks": [_block_to_record(b) for b in shader_pass.blocks],
        "data_flow": None,
    }
    if shader_pass.data_flow is not None:
        record["data_flow"] = {
            "input_fields": [_field_to_record(f) for f in shader_pass.data_flow.input_fields],
            "output_fields": [
                _field_to_record(f) for f in shader_pass.data_flow.output_fields
            ],
        }
    return record


def document_to_record(doc: ShaderDocument) -> dict[str, Any]:
    """Convert a document into a plain record."""
    return {
        "version": RECORD_VERSION,
        "saved_at": arrow.utcnow().isoformat(),
        "shader_name": doc.shader_name,
        "file_path": doc.file_path,
        "active_pass_index": doc.active_pass_index,
        "is_dirty": doc.is_dirty,
        "raw_content": doc.raw_content,
        "global_settings": asdict(doc.global_settings),
        "properties": [_property_to_record(p) for p in doc.properties],
        "passes": [_pass_to_record(p) for p in doc.passes],
    }


def _render_state_from_record(record: dict[str, Any] | None) -> RenderState | None:
    if record is None:
        return None
    stencil = record.get("stencil")
    return RenderState(
        cull=record.get("cull"),
        blend=record.get("blend"),
        zwrite=record.get("zwrite"),
        ztest=record.get("ztest"),
        color_mask=record.get("color_mask"),
        stencil=Stencil(**stencil) if stencil is not None else None,
    )


def _pass_from_record(record: dict[str, Any], registry: FieldRegistry) -> ShaderPass:
    data_flow = None
    if record.get("data_flow") is not None:
        data_flow = DataFlowGraph(
            registry=registry,
            input_fields=[
                _field_from_record(f) for f in record["data_flow"]["input_fields"]
            ],
            output_fields=[
                _field_from_record(f) for f in record["data_flow"]["output_fields"]
            ],
        )
    blocks = []
    for block_record in record.get("blocks", []):
        block_record = dict(block_record)
        block_record["section"] = SectionType(block_record["section"])
        blocks.append(Block(**block_record))
    return ShaderPass(
        id=record["id"],
        name=record["name"],
        light_mode=record.get("light_mode", ""),
        is_use_pass=bool(record.get("is_use_pass", False)),
        use_pass_path=record.get("use_pass_path", ""),
        pragmas=list(record.get("pragmas", [])),
        includes=list(record.get("includes", [])),
        render_state=_render_state_from_record(record.get("render_state")),
        blocks=blocks,
        data_flow=data_flow,
    )


def document_from_record(
    record: dict[str, Any], registry: FieldRegistry | None = None
) -> ShaderDocument:
    """Rebuild a document from a record produced by :func:`document_to_record`.

    Raises:
        RecordFormatError: If the record is missing fields or holds bad values
    """
    registry = registry or FieldRegistry.default()
    if not isinstance(record, dict):
        raise RecordFormatError("Document record must be a mapping")
    version = record.get("version")
    if version != RECORD_VERSION:
        raise RecordFormatError(
            f"Unsupported record version: {version}", context=f"expected {RECORD_VERSION}"
        )
    try:
        properties = []
        for prop_record in record.get("properties", []):
            prop_record = dict(prop_record)
            prop_record["property_type"] = PropertyType(prop_record["property_type"])
            properties.append(Property(**prop_record))
        return ShaderDocument(
            shader_name=record["shader_name"],
            file_path=record.get("file_path", ""),
            active_pass_index=int(record.get("active_pass_index", 0)),
            global_settings=GlobalSettings(**record.get("global_settings", {})),
            properties=properties,
            passes=[_pass_from_record(p, registry) for p in record.get("passes", [])],
            raw_content=record.get("raw_content", ""),
            is_dirty=bool(record.get("is_dirty", False)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise RecordFormatError("Malformed document record", context=str(e)) from e


def dump_document(doc: ShaderDocument, path: str | Path | None = None) -> str:
    """Serialize a document as YAML, optionally writing it to a file."""
    text = yaml.safe_dump(document_to_record(doc), sort_keys=False, allow_unicode=True)
    if path is not None:
        Path(path).write_text(text, encoding="utf-8")
        logger.debug(f"Saved document record to {path}")
    return text


def load_document(
    source: str | Path, registry: FieldRegistry | None = None
) -> ShaderDocument:
    """Load a document from a YAML file path or YAML text.

    Raises:
        RecordFormatError: If the YAML is invalid or the record is malformed
    """
    if isinstance(source, Path):
        source = source.read_text(encoding="utf-8")
    try:
        record = yaml.safe_load(source)
    except yaml.YAMLError as e:
        raise RecordFormatError("Invalid YAML document record", context=str(e)) from e
    return document_from_record(record, registry)
