"""
Helpers around externally generated shader code.

The generation service itself lives outside this package. These functions
prepare what it needs to know about a document, clean up what it returns and
fold the result back into the document as blocks and properties.
"""

import re
from dataclasses import dataclass, field

from loguru import logger

from shaderlab.document import ShaderDocument
from shaderlab.models import Block, Property, SectionType
from shaderlab.registry import FieldRegistry, FieldStage
from shaderlab.utils import dedent_code, extract_function_signature, is_declaration_only

FENCED_CODE_RE = re.compile(r"```[\w+-]*[ \t]*\n(.*?)```", re.DOTALL)
IDENTIFIER_RE = re.compile(r"\b\w+\b")


@dataclass
class GenerationContext:
    """What a code generator is told about the document it writes for."""

    shader_name: str
    pass_name: str
    instruction: str
    properties: list[str] = field(default_factory=list)
    input_fields: list[str] = field(default_factory=list)
    output_fields: list[str] = field(default_factory=list)
    globals: list[str] = field(default_factory=list)

    def render(self) -> str:
        """Plain-text summary suitable for a prompt."""
        sections = [
            f"Shader: {self.shader_name}",
            f"Pass: {self.pass_name}",
            "Properties:",
            *(f"  {p}" for p in self.properties or ["(none)"]),
            "Attributes:",
            *(f"  {f}" for f in self.input_fields or ["(none)"]),
            "Varyings:",
            *(f"  {f}" for f in self.output_fields or ["(none)"]),
            "Globals:",
            *(f"  {g}" for g in self.globals or ["(none)"]),
            "",
            f"Instruction: {self.instruction}",
        ]
        return "\n".join(sections)


def build_generation_context(
    doc: ShaderDocument,
    instruction: str,
    registry: FieldRegistry | None = None,
) -> GenerationContext:
    """Collect properties and active fields of the document's active pass."""
    registry = registry or FieldRegistry.default()
    active = doc.active_pass
    context = GenerationContext(
        shader_name=doc.shader_name,
        pass_name=active.name if active else "",
        instruction=instruction,
        properties=[f"{p.name} ({p.property_type.value})" for p in doc.properties],
        globals=[
            f"{g.name} {g.data_type}: {registry.tooltip_for(g.name) or g.display_name}"
            for g in registry.globals
        ],
    )
    if active is not None and active.data_flow is not None:
        graph = active.data_flow
        context.input_fields = [
            f"{f.data_type} {f.name}" for f in graph.active_fields(FieldStage.INPUT)
        ]
        context.output_fields = [
            f"{f.data_type} {f.name}" for f in graph.active_fields(FieldStage.OUTPUT)
        ]
    return context


def extract_code_from_response(text: str) -> str:
    """Return the first fenced code block of a response, or the whole text."""
    match = FENCED_CODE_RE.search(text)
    if match:
        return match.group(1).strip("\n")
    return text.strip()


def infer_section(code: str) -> SectionType:
    """Guess the section a piece of code belongs to from its first function."""
    if is_declaration_only(code):
        return SectionType.CONSTANTS
    sig = extract_function_signature(code)
    if sig is None:
        return SectionType.UNKNOWN
    params = sig.parameter_list
    if len(params) == 1 and params[0].startswith("Varyings"):
        return SectionType.FRAGMENT
    if sig.return_type == "void" and len(params) == 1 and "float3" in params[0]:
        return SectionType.VERTEX
    return SectionType.HELPER


def merge_properties(doc: ShaderDocument, properties: list[Property]) -> list[str]:
    """Add properties the document does not declare yet.

    Returns:
        Names of the properties that were added
    """
    added = [p.name for p in properties if doc.add_property(p)]
    if added:
        logger.debug(f"Merged properties: {added}")
    return added


def apply_generated_code(
    doc: ShaderDocument,
    generated: str,
    title: str = "",
    section: SectionType | None = None,
    intent: str = "",
    block_id: str | None = None,
) -> Block:
    """Store generated code in the active pass.

    With ``block_id`` the code replaces that block's code. Otherwise a new
    block is appended, titled after its first function when no title is given
    and placed in the inferred section when no section is given. Properties
    named in the code are recorded as referenced parameters.

    Raises:
        KeyError: If ``block_id`` names no block of the document
    """
    code = dedent_code(extract_code_from_response(generated))

    if block_id is not None:
        block = doc.find_block_by_id(block_id)
        if block is None:
            raise KeyError(f"Unknown block: {block_id}")
        doc.update_block_code(block_id, code)
    else:
        if not title:
            sig = extract_function_signature(code)
            title = sig.name if sig else "Generated Block"
        block = Block(
            title=title,
            code=code,
            section=section or infer_section(code),
            intent=intent,
        )
        doc.add_block(block)
        logger.debug(f"Added block '{block.title}' to section {block.section.value}")

    identifiers = set(IDENTIFIER_RE.findall(code))
    for prop in doc.properties:
        if prop.name in identifiers:
            block.add_param(prop.name)
    return block
