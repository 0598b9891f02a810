"""
Parser for annotated shader sources.

Recovers a :class:`~shaderlab.document.ShaderDocument` from text carrying
comment markers. The scan is line oriented: pass ranges are found first by
brace matching, then each range is walked once to collect its metadata,
render state, directives, blocks and struct fields.

Missing or malformed metadata degrades to defaults. The only failures are a
missing file and empty input.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from shaderlab.config import LabSettings
from shaderlab.dataflow import DataFlowGraph
from shaderlab.document import ShaderDocument, ShaderPass
from shaderlab.errors import EmptySourceError, SourceNotFoundError
from shaderlab.markers import MarkerGrammar, parse_attributes
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
from shaderlab.utils import brace_delta, dedent_lines, split_lines, uncomment_line

SHADER_NAME_RE = re.compile(r'^\s*Shader\s+"([^"]+)"', re.MULTILINE)
PASS_OPEN_RE = re.compile(r"^\s*Pass\s*(\{.*)?$")
USE_PASS_RE = re.compile(r'^\s*UsePass\s+"([^"]+)"')
PASS_NAME_RE = re.compile(r'^\s*Name\s+"([^"]*)"')
LIGHT_MODE_RE = re.compile(r'"LightMode"\s*=\s*"([^"]*)"')
PROGRAM_START_RE = re.compile(r"^\s*(HLSLPROGRAM|CGPROGRAM)\b")
PROGRAM_END_RE = re.compile(r"^\s*(ENDHLSL|ENDCG)\b")
PRAGMA_RE = re.compile(r"^\s*(#pragma\s+.*?)\s*$")
INCLUDE_RE = re.compile(r'^\s*#include\s+"([^"]+)"')
RENDER_STATE_RE = re.compile(r"^\s*(Cull|Blend|ZWrite|ZTest|ColorMask)\s+(.+?)\s*$")
STENCIL_OPEN_RE = re.compile(r"^\s*Stencil\b")
STENCIL_ENTRY_RE = re.compile(r"\b(Ref|Comp|Pass|Fail|ZFail|ReadMask|WriteMask)\s+(\w+)")
STRUCT_FIELD_RE = re.compile(r"^\s*(\w+)\s+(\w+)\s*:\s*(\w+)\s*;")
TEXTURE_DEFAULT_RE = re.compile(r'=\s*"(\w*)"\s*\{\s*\}')
POSITIONAL_SEMANTIC_RE = re.compile(r"^TEXCOORD\d+$")
PROPERTY_DECLARATION_RE = re.compile(r"^(\[[^\]]*\]\s*)*\w+\s*\(")


@dataclass
class ParseWarning:
    """A recoverable problem found while parsing."""

    line: int
    message: str


@dataclass
class ParseResult:
    """Parsed document plus the warnings collected on the way."""

    document: ShaderDocument
    warnings: list[ParseWarning] = field(default_factory=list)


@dataclass
class PassRange:
    """Inclusive line span of one pass in the source."""

    start: int
    end: int
    is_use_pass: bool = False
    use_pass_path: str = ""


@dataclass
class StructFieldInfo:
    data_type: str
    name: str
    semantic: str


@dataclass
class SharedContent:
    """Blocks and struct fields found outside every pass range."""

    blocks: list[Block] = field(default_factory=list)
    inputs: list[StructFieldInfo] = field(default_factory=list)
    outputs: list[StructFieldInfo] = field(default_factory=list)
    struct_lines: list[int] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.blocks or self.inputs or self.outputs)


def _to_float(value: str, default: float) -> float:
    try:
        return float(value)
    except ValueError:
        return default


def _to_int(value: str, default: int) -> int:
    try:
        return int(value)
    except ValueError:
        return default


class ShaderParser:
    """Turns annotated shader text into a document model."""

    def __init__(
        self,
        registry: FieldRegistry | None = None,
        settings: LabSettings | None = None,
    ):
        self.registry = registry or FieldRegistry.default()
        self.settings = settings or LabSettings()
        self.markers = MarkerGrammar(self.settings.tag_prefix)
        self.struct_start_re = re.compile(
            rf"struct\s+({re.escape(self.settings.input_struct)}"
            rf"|{re.escape(self.settings.output_struct)})\s*\{{"
        )
        self._warnings: list[ParseWarning] = []

    def parse_file(self, path: str | Path) -> ParseResult:
        """Parse a shader file from disk.

        Raises:
            SourceNotFoundError: If the file does not exist
            EmptySourceError: If the file is empty
        """
        file_path = Path(path)
        if not file_path.is_file():
            raise SourceNotFoundError(str(path))
        content = file_path.read_text(encoding="utf-8")
        if not content.strip():
            raise EmptySourceError(str(path))
        result = self.parse(content)
        result.document.file_path = str(path)
        return result

    def parse(self, content: str) -> ParseResult:
        """Parse shader text into a fresh document.

        Raises:
            EmptySourceError: If the text is empty or whitespace only
        """
        if not content or not content.strip():
            raise EmptySourceError()

        self._warnings = []
        doc = ShaderDocument(shader_name=self.settings.default_shader_name)
        doc.raw_content = content

        name_match = SHADER_NAME_RE.search(content)
        if name_match:
            doc.shader_name = name_match.group(1)

        lines = split_lines(content)
        doc.global_settings = self._parse_global_settings(lines)
        doc.properties = self._parse_properties(lines)

        ranges = self._find_pass_ranges(lines)
        if not ranges:
            logger.debug("No pass found, treating the whole file as one pass")
            ranges = [PassRange(0, len(lines) - 1)]

        shared = self._parse_outside_passes(lines, ranges)

        previous_end = -1
        for rng in ranges:
            if rng.is_use_pass:
                doc.passes.append(ShaderPass.create_use_pass(rng.use_pass_path))
            else:
                doc.passes.append(self._parse_pass(lines, rng, previous_end))
            previous_end = rng.end
        self._attach_shared(doc, shared)

        doc.active_pass_index = next(
            (i for i, p in enumerate(doc.passes) if not p.is_use_pass), 0
        )
        logger.debug(
            f"Parsed '{doc.shader_name}': {len(doc.properties)} properties, "
            f"{len(doc.passes)} passes, {len(doc.all_blocks)} blocks"
        )
        return ParseResult(document=doc, warnings=list(self._warnings))

    def _warn(self, line: int, message: str) -> None:
        logger.warning(f"Line {line + 1}: {message}")
        self._warnings.append(ParseWarning(line=line, message=message))

    # --- Document level ---

    def _parse_global_settings(self, lines: list[str]) -> GlobalSettings:
        settings = GlobalSettings()
        for line in lines:
            match = self.markers.global_re.search(line)
            if not match:
                continue
            attrs = parse_attributes(match.group(1))
            settings.cull = attrs.get("cull", settings.cull)
            settings.blend = attrs.get("blend", settings.blend)
            settings.zwrite = attrs.get("zwrite", settings.zwrite)
            settings.render_type = attrs.get("rendertype", settings.render_type)
            settings.render_queue = attrs.get("queue", settings.render_queue)
        return settings

    def _parse_properties(self, lines: list[str]) -> list[Property]:
        properties: list[Property] = []
        for i, line in enumerate(lines):
            match = self.markers.property_re.search(line)
            if not match:
                continue
            attrs = parse_attributes(match.group(1))
            name = attrs.get("name", "")
            if not name:
                self._warn(i, "Property marker without a name ignored")
                continue
            if any(p.name == name for p in properties):
                self._warn(i, f"Duplicate property '{name}' ignored")
                continue

            prop = Property(
                name=name,
                display_name=attrs.get("display", ""),
                property_type=PropertyType.parse(attrs.get("type", "Float")),
                default_value=attrs.get("default", ""),
                min_value=_to_float(attrs.get("min", "0"), 0.0),
                max_value=_to_float(attrs.get("max", "1"), 1.0),
                role=attrs.get("role", ""),
                default_texture=attrs.get("texture", ""),
            )

            # The literal declaration follows the marker within a few lines
            for j in range(i + 1, min(i + 4, len(lines))):
                if self.markers.property_re.search(lines[j]):
                    break
                candidate = lines[j].strip()
                if not candidate or candidate.startswith("//"):
                    continue
                if PROPERTY_DECLARATION_RE.match(candidate):
                    prop.raw_declaration = candidate
                break

            if prop.is_texture and not prop.default_texture:
                texture_match = TEXTURE_DEFAULT_RE.search(prop.raw_declaration)
                if texture_match:
                    prop.default_texture = texture_match.group(1)
            if prop.raw_declaration == prop.synthesize_declaration():
                prop.raw_declaration = ""
            properties.append(prop)
        return properties

    def _find_pass_ranges(self, lines: list[str]) -> list[PassRange]:
        ranges: list[PassRange] = []
        i = 0
        while i < len(lines):
            use_match = USE_PASS_RE.match(lines[i])
            if use_match:
                ranges.append(PassRange(i, i, True, use_match.group(1)))
                i += 1
                continue
            if PASS_OPEN_RE.match(lines[i]):
                end = self._find_pass_end(lines, i)
                ranges.append(PassRange(i, end))
                i = end + 1
                continue
            i += 1
        return ranges

    def _find_pass_end(self, lines: list[str], start: int) -> int:
        depth = 0
        opened = False
        for j in range(start, len(lines)):
            depth += brace_delta(lines[j])
            if depth > 0:
                opened = True
            if opened and depth <= 0:
                return j
        self._warn(start, "Pass is not closed, range truncated at end of file")
        return len(lines) - 1

    # --- Shared program code ---

    def _parse_outside_passes(
        self, lines: list[str], ranges: list[PassRange]
    ) -> SharedContent:
        """Collect blocks and structs between passes, e.g. in ``HLSLINCLUDE``."""
        shared = SharedContent()
        gaps: list[tuple[int, int]] = []
        cursor = 0
        for rng in ranges:
            if rng.start > cursor:
                gaps.append((cursor, rng.start - 1))
            cursor = max(cursor, rng.end + 1)
        if cursor < len(lines):
            gaps.append((cursor, len(lines) - 1))

        section = SectionType.UNKNOWN
        for start, end in gaps:
            i = start
            while i <= end:
                line = lines[i]
                section_match = self.markers.section_re.search(line)
                start_match = self.markers.block_start_re.search(line)
                struct_match = self.struct_start_re.search(line)
                if section_match:
                    section = SectionType.from_label(section_match.group(1))
                elif start_match:
                    block, i = self._read_block(lines, i, end, start_match.group(1))
                    block.section = section
                    shared.blocks.append(block)
                    continue
                elif struct_match:
                    shared.struct_lines.append(i)
                    target = (
                        shared.inputs
                        if struct_match.group(1) == self.settings.input_struct
                        else shared.outputs
                    )
                    i = self._read_struct(lines, i, end, target)
                    continue
                i += 1
        return shared

    def _attach_shared(self, doc: ShaderDocument, shared: SharedContent) -> None:
        """Move code found outside passes into the first editable pass."""
        if shared.is_empty:
            return
        target = next((p for p in doc.passes if not p.is_use_pass), None)
        if target is None:
            for block in shared.blocks:
                self._warn(
                    block.start_line,
                    f"Block '{block.title}' is outside any pass and was dropped",
                )
            for line in shared.struct_lines:
                self._warn(line, "Struct outside any pass was dropped")
            return

        for block in shared.blocks:
            self._warn(
                block.start_line,
                f"Block '{block.title}' is outside any pass, "
                f"attached to pass '{target.name}'",
            )
        target.blocks = sorted(
            [*shared.blocks, *target.blocks], key=lambda b: b.start_line
        )

        for line in shared.struct_lines:
            self._warn(
                line,
                f"Struct outside any pass, fields applied to pass '{target.name}'",
            )
        if shared.inputs:
            self._apply_struct_fields(target.data_flow, FieldStage.INPUT, shared.inputs)
        if shared.outputs:
            self._apply_struct_fields(
                target.data_flow, FieldStage.OUTPUT, shared.outputs
            )

    # --- Pass level ---

    def _parse_pass(
        self, lines: list[str], rng: PassRange, previous_end: int
    ) -> ShaderPass:
        shader_pass = ShaderPass.create("NewPass", "", self.registry)
        literal_name: str | None = None
        literal_light_mode: str | None = None
        render_state = RenderState()
        inputs: list[StructFieldInfo] = []
        outputs: list[StructFieldInfo] = []
        section = SectionType.UNKNOWN
        in_program = False

        i = rng.start
        while i <= rng.end:
            line = lines[i]

            section_match = self.markers.section_re.search(line)
            if section_match:
                section = SectionType.from_label(section_match.group(1))
                i += 1
                continue

            start_match = self.markers.block_start_re.search(line)
            if start_match:
                block, i = self._read_block(lines, i, rng.end, start_match.group(1))
                block.section = section
                shader_pass.blocks.append(block)
                continue

            struct_match = self.struct_start_re.search(line)
            if struct_match:
                target = (
                    inputs
                    if struct_match.group(1) == self.settings.input_struct
                    else outputs
                )
                i = self._read_struct(lines, i, rng.end, target)
                continue

            if PROGRAM_START_RE.match(line):
                in_program = True
            elif PROGRAM_END_RE.match(line):
                in_program = False
            elif in_program:
                include_match = INCLUDE_RE.match(line)
                pragma_match = PRAGMA_RE.match(line)
                if include_match:
                    shader_pass.includes.append(include_match.group(1))
                elif pragma_match:
                    shader_pass.pragmas.append(pragma_match.group(1))
            else:
                name_match = PASS_NAME_RE.match(line)
                light_match = LIGHT_MODE_RE.search(line)
                state_match = RENDER_STATE_RE.match(line)
                if name_match and literal_name is None:
                    literal_name = name_match.group(1)
                elif light_match and literal_light_mode is None:
                    literal_light_mode = light_match.group(1)
                elif state_match:
                    self._apply_render_state(
                        render_state, state_match.group(1), state_match.group(2)
                    )
                elif STENCIL_OPEN_RE.match(line):
                    render_state.stencil, i = self._read_stencil(lines, i, rng.end)
                    continue
            i += 1

        marker_attrs = self._find_pass_marker(lines, rng.start, previous_end)
        shader_pass.name = (
            marker_attrs.get("name") or literal_name or shader_pass.name
        )
        shader_pass.light_mode = (
            marker_attrs.get("lightmode")
            or literal_light_mode
            or shader_pass.light_mode
        )
        if render_state.has_overrides:
            shader_pass.render_state = render_state

        shader_pass.data_flow = self._build_data_flow(inputs, outputs)
        logger.debug(
            f"Pass '{shader_pass.name}': {len(shader_pass.blocks)} blocks, "
            f"{len(inputs)} input fields, {len(outputs)} output fields"
        )
        return shader_pass

    def _find_pass_marker(
        self, lines: list[str], start: int, previous_end: int
    ) -> dict[str, str]:
        """Attributes of the pass marker directly above a pass, if any."""
        for j in range(start - 1, previous_end, -1):
            stripped = lines[j].strip()
            match = self.markers.pass_re.search(stripped)
            if match:
                return parse_attributes(match.group(1))
            if stripped and not stripped.startswith("//"):
                break
        return {}

    @staticmethod
    def _apply_render_state(state: RenderState, key: str, value: str) -> None:
        match key:
            case "Cull":
                state.cull = value
            case "Blend":
                state.blend = value
            case "ZWrite":
                state.zwrite = value
            case "ZTest":
                state.ztest = value
            case "ColorMask":
                state.color_mask = value

    def _read_stencil(
        self, lines: list[str], start: int, end: int
    ) -> tuple[Stencil, int]:
        """Read a ``Stencil { ... }`` group, on one line or several."""
        text_parts: list[str] = []
        depth = 0
        i = start
        while i <= end:
            text_parts.append(lines[i])
            depth += brace_delta(lines[i])
            i += 1
            if depth <= 0 and "{" in "".join(text_parts):
                break
        else:
            self._warn(start, "Stencil group is not closed")

        stencil = Stencil()
        body = " ".join(text_parts).split("Stencil", 1)[1]
        for key, value in STENCIL_ENTRY_RE.findall(body):
            match key:
                case "Ref":
                    stencil.ref = _to_int(value, stencil.ref)
                case "Comp":
                    stencil.comp = value
                case "Pass":
                    stencil.pass_op = value
                case "Fail":
                    stencil.fail_op = value
                case "ZFail":
                    stencil.zfail_op = value
                case "ReadMask":
                    stencil.read_mask = _to_int(value, stencil.read_mask)
                case "WriteMask":
                    stencil.write_mask = _to_int(value, stencil.write_mask)
        return stencil, i

    def _read_block(
        self, lines: list[str], start: int, end: int, title: str
    ) -> tuple[Block, int]:
        """Read one block starting at its start marker.

        Returns:
            The block and the index of the first line after it
        """
        block = Block(title=title, start_line=start)
        code_lines: list[str] = []
        disabled = False
        closed = False
        i = start + 1

        while i <= end:
            line = lines[i]
            if self.markers.block_end_re.search(line):
                block.end_line = i
                closed = True
                i += 1
                break
            if self.markers.block_start_re.search(line):
                break

            intent_match = self.markers.intent_re.search(line)
            param_match = self.markers.param_re.search(line)
            if intent_match:
                block.intent = intent_match.group(1)
            elif param_match:
                block.add_param(param_match.group(1))
            elif self.markers.disabled_re.search(line):
                disabled = True
            else:
                code_lines.append(uncomment_line(line) if disabled else line)
            i += 1

        if not closed:
            block.end_line = i - 1
            self._warn(start, f"Block '{title}' has no end marker, truncated")

        block.is_enabled = not disabled
        block.code = "\n".join(dedent_lines(code_lines)).strip("\n")
        return block, i

    def _read_struct(
        self,
        lines: list[str],
        start: int,
        end: int,
        target: list[StructFieldInfo],
    ) -> int:
        i = start + 1
        while i <= end:
            line = lines[i]
            i += 1
            if "}" in line:
                return i
            match = STRUCT_FIELD_RE.match(line)
            if match:
                target.append(
                    StructFieldInfo(
                        data_type=match.group(1),
                        name=match.group(2),
                        semantic=match.group(3),
                    )
                )
        self._warn(start, "Struct is not closed")
        return i

    # --- Data flow ---

    def _build_data_flow(
        self, inputs: list[StructFieldInfo], outputs: list[StructFieldInfo]
    ) -> DataFlowGraph:
        graph = DataFlowGraph.create_default(self.registry)
        if inputs:
            self._apply_struct_fields(graph, FieldStage.INPUT, inputs)
        if outputs:
            self._apply_struct_fields(graph, FieldStage.OUTPUT, outputs)
        return graph

    def _apply_struct_fields(
        self,
        graph: DataFlowGraph,
        stage: FieldStage,
        parsed: list[StructFieldInfo],
    ) -> None:
        """Activate declared fields; keep unknown ones as custom fields."""
        matched: set[str] = set()
        for info in parsed:
            if info.name in matched:
                continue
            matched.add(info.name)
            existing = graph.find_field(info.name, stage)
            if existing is not None:
                existing.is_active = True
                continue

            semantic = info.semantic
            if stage == FieldStage.OUTPUT and POSITIONAL_SEMANTIC_RE.match(semantic):
                semantic = ""
            graph.add_custom_field(
                Field(
                    name=info.name,
                    data_type=info.data_type,
                    semantic=semantic,
                    display_name=info.name,
                    stage=stage,
                    is_required=False,
                    is_active=True,
                )
            )
            logger.debug(f"Custom {stage.name.lower()} field: {info.name}")

        for f in graph.input_fields if stage == FieldStage.INPUT else graph.output_fields:
            if not f.is_required and f.name not in matched:
                f.is_active = False


def parse_content(
    content: str,
    registry: FieldRegistry | None = None,
    settings: LabSettings | None = None,
) -> ShaderDocument:
    """Parse shader text and return the document, dropping warnings."""
    return ShaderParser(registry, settings).parse(content).document


def parse_file(
    path: str | Path,
    registry: FieldRegistry | None = None,
    settings: LabSettings | None = None,
) -> ShaderDocument:
    """Parse a shader file from disk and return the document."""
    return ShaderParser(registry, settings).parse_file(path).document
