"""Tests for the document model."""

import pytest

from shaderlab.document import ShaderDocument, ShaderPass
from shaderlab.errors import UsePassError
from shaderlab.models import Block, Property, PropertyType, SectionType, format_number
from shaderlab.registry import FieldRegistry


class TestProperty:
    """Test property declaration synthesis."""

    @pytest.mark.parametrize(
        "prop, expected",
        [
            (
                Property("_Gloss", "Gloss", PropertyType.RANGE, "0.5", 0.0, 1.0),
                "_Gloss(\"Gloss\", Range(0,1)) = 0.5",
            ),
            (
                Property("_Tint", "Tint", PropertyType.COLOR, "(1,0,0,1)"),
                "_Tint(\"Tint\", Color) = (1,0,0,1)",
            ),
            (
                Property("_MainTex", "Albedo", PropertyType.TEXTURE2D),
                "_MainTex(\"Albedo\", 2D) = \"white\" {}",
            ),
            (
                Property("_Sky", "Sky", PropertyType.CUBEMAP),
                "_Sky(\"Sky\", Cube) = \"\" {}",
            ),
            (
                Property("_Count", "Count", PropertyType.INT, "2"),
                "_Count(\"Count\", Int) = 2",
            ),
        ],
    )
    def test_synthesize_declaration(self, prop: Property, expected: str):
        assert prop.synthesize_declaration() == expected

    @pytest.mark.parametrize(
        "value, expected",
        [
            (1.0, "1"),
            (2.5, "2.5"),
            (0.1234567, "0.1234567"),
            (1234567.0, "1234567"),
            (1e-05, "0.00001"),
            (-3.0, "-3"),
        ],
    )
    def test_format_number_is_plain_and_exact(self, value: float, expected: str):
        assert format_number(value) == expected

    def test_raw_declaration_wins(self):
        prop = Property("_X", "X", raw_declaration="[HDR] _X(\"X\", Float) = 1")
        assert prop.declaration() == "[HDR] _X(\"X\", Float) = 1"

    def test_texture_default_is_used(self):
        prop = Property("_Bump", "Normal", PropertyType.TEXTURE2D, default_texture="bump")
        assert prop.declaration() == "_Bump(\"Normal\", 2D) = \"bump\" {}"

    def test_kind_flags(self):
        assert Property("_A", property_type=PropertyType.RANGE).is_numeric
        assert Property("_B", property_type=PropertyType.TEXTURE3D).is_texture
        assert not Property("_C", property_type=PropertyType.COLOR).is_numeric


class TestEnums:
    """Test label and type parsing."""

    @pytest.mark.parametrize(
        "label, section",
        [
            ("Helper Functions", SectionType.HELPER),
            ("Constants", SectionType.CONSTANTS),
            ("Vertex", SectionType.VERTEX),
            ("fragment stage", SectionType.FRAGMENT),
            ("Properties", SectionType.PROPERTIES),
            ("Unknown", SectionType.UNKNOWN),
            ("whatever", SectionType.UNKNOWN),
        ],
    )
    def test_section_from_label(self, label: str, section: SectionType):
        assert SectionType.from_label(label) == section

    def test_property_type_aliases(self):
        assert PropertyType.parse("2D") == PropertyType.TEXTURE2D
        assert PropertyType.parse("Cube") == PropertyType.CUBEMAP
        assert PropertyType.parse("nonsense") == PropertyType.FLOAT


class TestPasses:
    """Test pass factories and the use-pass invariant."""

    def test_default_document_layout(self, default_doc: ShaderDocument):
        """Test that a new document has a lit pass and two references."""
        names = [p.name for p in default_doc.passes]
        assert names == ["ForwardLit", "ShadowCaster", "DepthOnly"]
        assert default_doc.active_pass is default_doc.passes[0]
        assert default_doc.passes[1].is_use_pass
        assert default_doc.passes[1].data_flow is None

    def test_use_pass_rejects_blocks(self):
        use_pass = ShaderPass.create_use_pass("Universal Render Pipeline/Lit/DepthOnly")
        with pytest.raises(UsePassError):
            use_pass.add_block(Block("Nope"))
        with pytest.raises(UsePassError):
            use_pass.add_pragma("#pragma vertex vert")
        with pytest.raises(UsePassError):
            use_pass.add_include("Core.hlsl")

    def test_outline_overrides_cull(self, registry: FieldRegistry):
        outline = ShaderPass.create_outline(registry)
        assert outline.render_state is not None
        assert outline.render_state.cull == "Front"
        assert outline.render_state.has_overrides

    def test_add_pragma_skips_duplicates(self, registry: FieldRegistry):
        unlit = ShaderPass.create_unlit(registry)
        assert not unlit.add_pragma("#pragma vertex vert")
        assert unlit.add_pragma("#pragma target 4.5")


class TestDocumentOperations:
    """Test document-level mutations."""

    def test_move_pass_keeps_active_pass(self, default_doc: ShaderDocument):
        active = default_doc.active_pass
        assert default_doc.move_pass(0, 2)
        assert default_doc.active_pass is active
        assert default_doc.active_pass_index == 2
        assert default_doc.is_dirty

    def test_remove_pass_before_active_shifts_index(self, default_doc: ShaderDocument):
        default_doc.set_active_pass(2)
        active = default_doc.active_pass
        assert default_doc.remove_pass(default_doc.passes[0].id)
        assert default_doc.active_pass is active

    def test_add_pass_reports_change(self, default_doc: ShaderDocument, registry: FieldRegistry):
        unlit = ShaderPass.create_unlit(registry)
        assert default_doc.add_pass(unlit)
        assert default_doc.passes[-1] is unlit
        assert default_doc.is_dirty
        assert unlit.add_block(Block("Solo"))

    def test_remove_unknown_pass(self, default_doc: ShaderDocument):
        assert not default_doc.remove_pass("missing")

    def test_block_operations(self, default_doc: ShaderDocument):
        block = Block("Tint", "half3 Tint(Varyings input) { return 1; }", SectionType.FRAGMENT)
        assert default_doc.add_block(block)

        assert default_doc.find_block_by_title("tint") is block
        assert default_doc.find_pass_of_block(block.id) is default_doc.passes[0]
        assert default_doc.get_blocks_by_section(SectionType.FRAGMENT) == [block]
        assert default_doc.update_block_code(block.id, "// new")
        assert not default_doc.update_block_code(block.id, "// new")
        assert default_doc.remove_block(block.id)
        assert default_doc.find_block_by_id(block.id) is None

    def test_property_names_are_unique(self, default_doc: ShaderDocument):
        assert default_doc.add_property(Property("_A"))
        assert not default_doc.add_property(Property("_A", "Other"))
        assert default_doc.remove_property("_A")
        assert not default_doc.remove_property("_A")

    def test_mark_clean(self, default_doc: ShaderDocument):
        default_doc.add_property(Property("_A"))
        default_doc.mark_clean()
        assert not default_doc.is_dirty

    def test_block_ids_are_short_hex(self):
        block = Block("A")
        assert len(block.id) == 8
        int(block.id, 16)
