"""Tests for document records and YAML persistence."""

from pathlib import Path

import arrow
import pytest
import yaml

from shaderlab.document import ShaderDocument
from shaderlab.errors import RecordFormatError
from shaderlab.registry import FieldStage
from shaderlab.serialization import (
    document_from_record,
    document_to_record,
    dump_document,
    load_document,
)
from shaderlab.writer import replace_block


class TestRecords:
    """Test conversion to and from plain records."""

    def test_record_is_plain_data(self, toon_doc: ShaderDocument):
        record = document_to_record(toon_doc)
        # Plain records survive a safe YAML dump without custom tags
        assert yaml.safe_load(yaml.safe_dump(record)) == record
        assert record["version"] == 1
        arrow.get(record["saved_at"])

    def test_record_restores_document(self, toon_doc: ShaderDocument):
        toon_doc.is_dirty = True
        restored = document_from_record(document_to_record(toon_doc))

        assert restored.shader_name == toon_doc.shader_name
        assert restored.raw_content == toon_doc.raw_content != ""
        assert restored.is_dirty
        assert restored.properties == toon_doc.properties
        assert restored.global_settings == toon_doc.global_settings
        assert [p.id for p in restored.passes] == [p.id for p in toon_doc.passes]
        assert restored.passes[1].render_state == toon_doc.passes[1].render_state
        assert restored.passes[0].blocks == toon_doc.passes[0].blocks
        assert restored.passes[2].data_flow is None

    def test_fields_are_restored(self, toon_doc: ShaderDocument):
        restored = document_from_record(document_to_record(toon_doc))
        original = toon_doc.passes[0].data_flow
        graph = restored.passes[0].data_flow
        assert graph.input_fields == original.input_fields
        assert graph.output_fields == original.output_fields
        assert graph.find_field("rimMask", FieldStage.OUTPUT) is not None

    def test_wrong_version(self, toon_doc: ShaderDocument):
        record = document_to_record(toon_doc)
        record["version"] = 99
        with pytest.raises(RecordFormatError):
            document_from_record(record)

    def test_missing_field(self, toon_doc: ShaderDocument):
        record = document_to_record(toon_doc)
        del record["passes"][0]["name"]
        with pytest.raises(RecordFormatError):
            document_from_record(record)

    def test_bad_enum_value(self, toon_doc: ShaderDocument):
        record = document_to_record(toon_doc)
        record["properties"][0]["property_type"] = "Matrix"
        with pytest.raises(RecordFormatError):
            document_from_record(record)

    def test_not_a_mapping(self):
        with pytest.raises(RecordFormatError):
            document_from_record(["not", "a", "record"])


class TestYaml:
    """Test YAML dump and load."""

    def test_dump_and_load_file(self, toon_doc: ShaderDocument, tmp_path: Path):
        path = tmp_path / "toon.yaml"
        dump_document(toon_doc, path)
        restored = load_document(path)
        assert restored.shader_name == "AILab/Toon"
        assert [b.title for b in restored.all_blocks] == [b.title for b in toon_doc.all_blocks]
        assert restored.raw_content == toon_doc.raw_content

    def test_load_from_text(self, default_doc: ShaderDocument):
        restored = load_document(dump_document(default_doc))
        assert [p.name for p in restored.passes] == ["ForwardLit", "ShadowCaster", "DepthOnly"]

    def test_invalid_yaml(self):
        with pytest.raises(RecordFormatError):
            load_document("shader_name: [unclosed")

    def test_restored_document_supports_block_replacement(self, toon_doc: ShaderDocument):
        restored = load_document(dump_document(toon_doc))
        quantize = restored.find_block_by_title("Quantize")
        spliced = replace_block(restored, quantize.id, "float Quantize(float v) {\n    return v;\n}")
        assert spliced != restored.raw_content
        assert "    return v;" in spliced
