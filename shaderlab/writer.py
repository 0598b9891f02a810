"""
Writer for annotated shader sources.

Regenerates the full annotated text of a :class:`ShaderDocument`: properties
with their markers, the subshader with one program per pass, the material
constant buffer, the stage structs, every block under its section marker and
the synthesized ``vert``/``frag`` entry functions. Output is deterministic,
so parsing generated text and generating again yields the same text.
"""

from pathlib import Path

from loguru import logger

from shaderlab.code_block import CodeBlock
from shaderlab.config import LabSettings
from shaderlab.dataflow import DataFlowGraph
from shaderlab.document import ShaderDocument, ShaderPass
from shaderlab.markers import MarkerGrammar
from shaderlab.models import (
    Block,
    Property,
    PropertyType,
    RenderState,
    SectionType,
    format_number,
)
from shaderlab.registry import (
    NORMAL_INPUTS_MARKER,
    POSITION_INPUTS_MARKER,
    FieldRegistry,
    FieldStage,
)
from shaderlab.utils import (
    dedent_code,
    extract_function_signature,
    is_declaration_only,
    split_lines,
)

STUB_INTENT = "(auto-skipped: declarations handled by CBUFFER)"
STRUCT_FIELD_WIDTH = 18

# Emission order of sections inside a pass program, with the label written
# before them. Vertex and Fragment labels are written even without blocks
# because the entry functions follow them.
SECTION_LAYOUT: tuple[tuple[SectionType, str], ...] = (
    (SectionType.PROPERTIES, "Properties"),
    (SectionType.GLOBAL, "Global"),
    (SectionType.CONSTANTS, "Constants"),
    (SectionType.HELPER, "Helper Functions"),
    (SectionType.VERTEX, "Vertex"),
    (SectionType.FRAGMENT, "Fragment"),
    (SectionType.UNKNOWN, "Unknown"),
)

_TEXTURE_MACROS = {
    PropertyType.TEXTURE2D: "TEXTURE2D",
    PropertyType.TEXTURE3D: "TEXTURE3D",
    PropertyType.CUBEMAP: "TEXTURECUBE",
}

_CBUFFER_TYPES = {
    PropertyType.FLOAT: "float",
    PropertyType.RANGE: "float",
    PropertyType.INT: "int",
    PropertyType.COLOR: "float4",
    PropertyType.VECTOR: "float4",
}


class ShaderWriter:
    """Turns a document model back into annotated shader text."""

    def __init__(
        self,
        registry: FieldRegistry | None = None,
        settings: LabSettings | None = None,
    ):
        self.registry = registry or FieldRegistry.default()
        self.settings = settings or LabSettings()
        self.markers = MarkerGrammar(self.settings.tag_prefix)

    # --- Full generation ---

    def generate(self, doc: ShaderDocument) -> str:
        """Generate the complete annotated text of a document."""
        code = CodeBlock(indent=self.settings.indent)
        with code.block(f'Shader "{doc.shader_name}"'):
            self._write_properties(code, doc)
            self._write_subshader(code, doc)
            code.add_line(f'FallBack "{self.settings.fallback_shader}"')
        return code.get_code()

    def write_file(self, doc: ShaderDocument, path: str | Path | None = None) -> Path:
        """Generate a document and save it as UTF-8.

        Args:
            doc: Document to write; its raw content is updated and it is
                marked clean
            path: Target file, defaults to the document's own path

        Returns:
            Path that was written
        """
        target = path or doc.file_path
        if not target:
            raise ValueError("No path given and the document has no file path")
        content = self.generate(doc)
        target_path = Path(target)
        target_path.write_text(content, encoding="utf-8")
        doc.raw_content = content
        if not doc.file_path:
            doc.file_path = str(target_path)
        doc.mark_clean()
        logger.debug(f"Wrote {len(content)} characters to {target_path}")
        return target_path

    def _write_properties(self, code: CodeBlock, doc: ShaderDocument) -> None:
        with code.block("Properties"):
            for prop in doc.properties:
                code.add_line(self.markers.property_marker(self._property_attributes(prop)))
                code.add_line(prop.declaration())

    @staticmethod
    def _property_attributes(prop: Property) -> dict[str, str]:
        attributes = {
            "name": prop.name,
            "display": prop.display_name,
            "type": prop.property_type.value,
            "default": prop.default_value,
        }
        if prop.property_type == PropertyType.RANGE:
            attributes["min"] = format_number(prop.min_value)
            attributes["max"] = format_number(prop.max_value)
        if prop.role:
            attributes["role"] = prop.role
        if prop.default_texture:
            attributes["texture"] = prop.default_texture
        return attributes

    def _write_subshader(self, code: CodeBlock, doc: ShaderDocument) -> None:
        g = doc.global_settings
        with code.block("SubShader"):
            code.add_line(
                self.markers.global_marker(
                    {
                        "cull": g.cull,
                        "blend": g.blend,
                        "zwrite": g.zwrite,
                        "rendertype": g.render_type,
                        "queue": g.render_queue,
                    }
                )
            )
            code.add_line(
                f'Tags {{ "RenderType"="{g.render_type}" "Queue"="{g.render_queue}" '
                f'"RenderPipeline"="{self.settings.render_pipeline}" }}'
            )
            code.add_line(f"Cull {g.cull}")
            if g.blend != "Off":
                code.add_line(f"Blend {g.blend}")
            code.add_line(f"ZWrite {g.zwrite}")

            for shader_pass in doc.passes:
                code.add_line()
                if shader_pass.is_use_pass:
                    code.add_line(f'UsePass "{shader_pass.use_pass_path}"')
                else:
                    self._write_pass(code, doc, shader_pass)

    # --- Pass ---

    def _write_pass(
        self, code: CodeBlock, doc: ShaderDocument, shader_pass: ShaderPass
    ) -> None:
        graph = shader_pass.data_flow or DataFlowGraph.create_default(self.registry)
        code.add_line(
            self.markers.pass_marker(
                {"name": shader_pass.name, "lightmode": shader_pass.light_mode}
            )
        )
        with code.block("Pass"):
            code.add_line(f'Name "{shader_pass.name}"')
            if shader_pass.light_mode:
                code.add_line(f'Tags {{ "LightMode"="{shader_pass.light_mode}" }}')
            if shader_pass.render_state is not None:
                self._write_render_state(code, shader_pass.render_state)
            code.add_line()

            code.add_line("HLSLPROGRAM")
            for pragma in shader_pass.pragmas:
                code.add_line(pragma)
            code.add_line()
            for include in shader_pass.includes:
                code.add_line(f'#include "{include}"')
            code.add_line()

            self._write_material_declarations(code, doc)
            self._write_structs(code, graph)

            for section, label in SECTION_LAYOUT:
                blocks = shader_pass.get_blocks_by_section(section)
                always_labelled = section in (SectionType.VERTEX, SectionType.FRAGMENT)
                if blocks or always_labelled:
                    code.add_line(self.markers.section(label))
                for block in blocks:
                    self._write_block(code, doc, block)
                if section == SectionType.VERTEX:
                    self._write_vertex_entry(code, graph, blocks)
                elif section == SectionType.FRAGMENT:
                    self._write_fragment_entry(code, blocks)

            code.add_line("ENDHLSL")

    @staticmethod
    def _write_render_state(code: CodeBlock, state: RenderState) -> None:
        for keyword, value in (
            ("Cull", state.cull),
            ("Blend", state.blend),
            ("ZWrite", state.zwrite),
            ("ZTest", state.ztest),
            ("ColorMask", state.color_mask),
        ):
            if value:
                code.add_line(f"{keyword} {value}")
        stencil = state.stencil
        if stencil is not None:
            with code.block("Stencil"):
                code.add_line(f"Ref {stencil.ref}")
                code.add_line(f"Comp {stencil.comp}")
                code.add_line(f"Pass {stencil.pass_op}")
                code.add_line(f"Fail {stencil.fail_op}")
                code.add_line(f"ZFail {stencil.zfail_op}")
                code.add_line(f"ReadMask {stencil.read_mask}")
                code.add_line(f"WriteMask {stencil.write_mask}")

    def _write_material_declarations(self, code: CodeBlock, doc: ShaderDocument) -> None:
        """Texture/sampler pairs and the per-material constant buffer."""
        textures = [p for p in doc.properties if p.is_texture]
        for prop in textures:
            macro = _TEXTURE_MACROS[prop.property_type]
            code.add_line(f"{macro}({prop.name}); SAMPLER(sampler{prop.name});")
        code.add_line()

        entries: list[str] = []
        for prop in doc.properties:
            if prop.property_type in _CBUFFER_TYPES:
                entries.append(f"{_CBUFFER_TYPES[prop.property_type]} {prop.name};")
            elif prop.property_type == PropertyType.TEXTURE2D:
                entries.append(f"float4 {prop.name}_ST;")
        if entries:
            code.add_line(f"CBUFFER_START({self.settings.cbuffer_name})")
            with code.indented():
                for entry in entries:
                    code.add_line(entry)
            code.add_line("CBUFFER_END")
            code.add_line()

    def _write_structs(self, code: CodeBlock, graph: DataFlowGraph) -> None:
        with code.block(f"struct {self.settings.input_struct}", closer="};"):
            for f in graph.active_fields(FieldStage.INPUT):
                code.add_line(self._struct_field(f.data_type, f.name, f.semantic))
        code.add_line()

        texcoord = 0
        with code.block(f"struct {self.settings.output_struct}", closer="};"):
            for f in graph.active_fields(FieldStage.OUTPUT):
                semantic = f.semantic
                if not semantic:
                    semantic = f"TEXCOORD{texcoord}"
                    texcoord += 1
                code.add_line(self._struct_field(f.data_type, f.name, semantic))
        code.add_line()

    @staticmethod
    def _struct_field(data_type: str, name: str, semantic: str) -> str:
        return f"{f'{data_type} {name}'.ljust(STRUCT_FIELD_WIDTH)} : {semantic};"

    # --- Blocks ---

    def _write_block(self, code: CodeBlock, doc: ShaderDocument, block: Block) -> None:
        code.add_line(self.markers.block_start(block.title))
        if is_declaration_only(block.code):
            code.add_line(self.markers.intent(STUB_INTENT))
            code.add_line(self.markers.block_end())
            code.add_line()
            return

        for line in self._block_header(doc, block):
            code.add_line(line)
        code.add_verbatim(self._block_body(block, block.code))
        code.add_line(self.markers.block_end())
        code.add_line()

    def _block_header(self, doc: ShaderDocument, block: Block) -> list[str]:
        """Intent, param and disabled markers that follow a block start."""
        lines: list[str] = []
        if block.intent:
            lines.append(self.markers.intent(block.intent))
        for param in block.referenced_params:
            prop = doc.find_property(param)
            role = prop.role if prop is not None and prop.role else "parameter"
            lines.append(self.markers.param(param, role))
        if not block.is_enabled:
            lines.append(self.markers.disabled())
        return lines

    @staticmethod
    def _block_body(block: Block, code: str) -> list[str]:
        lines = dedent_code(code).split("\n")
        if block.is_enabled:
            return lines
        return [f"// {line}" if line else "//" for line in lines]

    # --- Entry functions ---

    def _write_vertex_entry(
        self, code: CodeBlock, graph: DataFlowGraph, blocks: list[Block]
    ) -> None:
        inputs = self.settings.input_struct
        outputs = self.settings.output_struct
        position = graph.find_field("positionOS", FieldStage.INPUT)
        tangent = graph.find_field("tangentOS", FieldStage.INPUT)
        has_position = position is not None and position.is_active
        has_tangent = tangent is not None and tangent.is_active

        with code.block(f"{outputs} vert({inputs} input)"):
            code.add_line(f"{outputs} output = ({outputs})0;")
            if has_position:
                code.add_line("float3 posOS = input.positionOS.xyz;")

            for block in self._callable_blocks(blocks):
                sig = extract_function_signature(block.code)
                if sig is None or sig.return_type != "void":
                    continue
                params = sig.parameter_list
                if len(params) == 1 and "float3" in params[0]:
                    code.add_line(f"{sig.name}(posOS);")

            edges = graph.active_dependency_edges()
            needs_position = any(POSITION_INPUTS_MARKER in e.transform_code for e in edges)
            needs_normal = any(NORMAL_INPUTS_MARKER in e.transform_code for e in edges)
            if needs_position and has_position:
                code.add_line(
                    f"VertexPositionInputs vpi = {POSITION_INPUTS_MARKER}(posOS);"
                )
            if needs_normal:
                normal_args = "input.normalOS, input.tangentOS" if has_tangent else "input.normalOS"
                code.add_line(
                    f"VertexNormalInputs vni = {NORMAL_INPUTS_MARKER}({normal_args});"
                )

            emitted: set[str] = set()
            for edge in edges:
                if edge.key in emitted:
                    continue
                emitted.add(edge.key)
                for line in edge.transform_code.split("\n"):
                    stripped = line.strip()
                    if not stripped or stripped.startswith(
                        ("VertexPositionInputs", "VertexNormalInputs")
                    ):
                        continue
                    code.add_line(stripped)

            code.add_line("return output;")
        code.add_line()

    def _write_fragment_entry(self, code: CodeBlock, blocks: list[Block]) -> None:
        outputs = self.settings.output_struct
        with code.block(f"half4 frag({outputs} input) : SV_Target"):
            code.add_line("half4 finalColor = half4(1,1,1,1);")
            for block in self._callable_blocks(blocks):
                sig = extract_function_signature(block.code)
                if sig is None:
                    continue
                params = sig.parameter_list
                if len(params) != 1 or not params[0].startswith(outputs):
                    continue
                match sig.return_type:
                    case "half4" | "float4":
                        code.add_line(f"finalColor = {sig.name}(input);")
                    case "half3" | "float3":
                        code.add_line(f"finalColor = half4({sig.name}(input), 1.0);")
                    case "void":
                        code.add_line(f"{sig.name}(input);")
            code.add_line("return finalColor;")
        code.add_line()

    @staticmethod
    def _callable_blocks(blocks: list[Block]) -> list[Block]:
        return [b for b in blocks if b.is_enabled and not is_declaration_only(b.code)]

    # --- Targeted replacement ---

    def replace_block(self, doc: ShaderDocument, block_id: str, new_code: str) -> str:
        """Splice new code for one block into the document's raw text.

        The document itself is not modified. The raw text is returned
        unchanged when the block is unknown, there is no raw text, or the
        block's recorded span no longer holds its markers.
        """
        block = doc.find_block_by_id(block_id)
        if block is None or not doc.raw_content:
            return doc.raw_content

        lines = split_lines(doc.raw_content)
        if not self._span_is_current(lines, block):
            logger.warning(f"Block '{block.title}' span is stale, replacement skipped")
            return doc.raw_content

        start_line = lines[block.start_line]
        indent = start_line[: len(start_line) - len(start_line.lstrip())]
        spliced = [f"{indent}{line}" for line in self._block_header(doc, block)]
        spliced.extend(
            f"{indent}{line}" if line else ""
            for line in self._block_body(block, new_code)
        )
        result = lines[: block.start_line + 1] + spliced + lines[block.end_line :]
        return "\n".join(result)

    def _span_is_current(self, lines: list[str], block: Block) -> bool:
        if not 0 <= block.start_line < block.end_line < len(lines):
            return False
        start_match = self.markers.block_start_re.search(lines[block.start_line])
        if start_match is None or start_match.group(1) != block.title:
            return False
        return self.markers.block_end_re.search(lines[block.end_line]) is not None


def generate(
    doc: ShaderDocument,
    registry: FieldRegistry | None = None,
    settings: LabSettings | None = None,
) -> str:
    """Generate annotated text for a document with default writer settings."""
    return ShaderWriter(registry, settings).generate(doc)


def replace_block(doc: ShaderDocument, block_id: str, new_code: str) -> str:
    return ShaderWriter().replace_block(doc, block_id, new_code)


def write_file(doc: ShaderDocument, path: str | Path | None = None) -> Path:
    return ShaderWriter().write_file(doc, path)
