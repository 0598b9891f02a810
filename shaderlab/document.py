"""
Shader document and pass entities.

A :class:`ShaderDocument` is the root of the editable model. It owns the
material properties shared by every pass and an ordered list of
:class:`ShaderPass` objects, each carrying its own blocks and data-flow graph.
Mutation methods return whether anything changed and flag the document dirty;
observing changes is left to the caller.
"""

from dataclasses import dataclass, field

from loguru import logger

from shaderlab.dataflow import DataFlowGraph
from shaderlab.errors import UsePassError
from shaderlab.models import (
    Block,
    GlobalSettings,
    Property,
    RenderState,
    SectionType,
    new_id,
)
from shaderlab.registry import FieldRegistry

URP_CORE_INCLUDE = "Packages/com.unity.render-pipelines.universal/ShaderLibrary/Core.hlsl"
URP_LIGHTING_INCLUDE = (
    "Packages/com.unity.render-pipelines.universal/ShaderLibrary/Lighting.hlsl"
)

ENTRY_PRAGMAS = ("#pragma vertex vert", "#pragma fragment frag")


@dataclass
class ShaderPass:
    """One rendering pass, or a reference to a pass of another shader."""

    name: str = "NewPass"
    light_mode: str = ""
    blocks: list[Block] = field(default_factory=list)
    data_flow: DataFlowGraph | None = None
    pragmas: list[str] = field(default_factory=list)
    includes: list[str] = field(default_factory=list)
    render_state: RenderState | None = None
    is_use_pass: bool = False
    use_pass_path: str = ""
    id: str = field(default_factory=new_id)

    @classmethod
    def create(
        cls, name: str, light_mode: str, registry: FieldRegistry
    ) -> "ShaderPass":
        """Empty pass with a default data-flow graph."""
        return cls(
            name=name,
            light_mode=light_mode,
            data_flow=DataFlowGraph.create_default(registry),
        )

    @classmethod
    def create_forward_lit(cls, registry: FieldRegistry) -> "ShaderPass":
        shader_pass = cls.create("ForwardLit", "UniversalForward", registry)
        shader_pass.pragmas.extend(
            [
                *ENTRY_PRAGMAS,
                "#pragma multi_compile _ _MAIN_LIGHT_SHADOWS _MAIN_LIGHT_SHADOWS_CASCADE",
                "#pragma multi_compile _ _ADDITIONAL_LIGHTS",
                "#pragma multi_compile_fragment _ _SHADOWS_SOFT",
                "#pragma multi_compile_fog",
            ]
        )
        shader_pass.includes.extend([URP_CORE_INCLUDE, URP_LIGHTING_INCLUDE])
        return shader_pass

    @classmethod
    def create_unlit(cls, registry: FieldRegistry) -> "ShaderPass":
        shader_pass = cls.create("ForwardUnlit", "UniversalForward", registry)
        shader_pass.pragmas.extend([*ENTRY_PRAGMAS, "#pragma multi_compile_fog"])
        shader_pass.includes.append(URP_CORE_INCLUDE)
        return shader_pass

    @classmethod
    def create_outline(cls, registry: FieldRegistry) -> "ShaderPass":
        shader_pass = cls.create("Outline", "SRPDefaultUnlit", registry)
        shader_pass.render_state = RenderState(cull="Front", blend="Off", zwrite="On")
        shader_pass.pragmas.extend(ENTRY_PRAGMAS)
        shader_pass.includes.append(URP_CORE_INCLUDE)
        return shader_pass

    @classmethod
    def create_use_pass(cls, path: str) -> "ShaderPass":
        """Reference to an external pass, named after the last path segment."""
        return cls(name=path.rsplit("/", 1)[-1], is_use_pass=True, use_pass_path=path)

    @classmethod
    def create_shadow_caster(cls) -> "ShaderPass":
        return cls.create_use_pass("Universal Render Pipeline/Lit/ShadowCaster")

    @classmethod
    def create_depth_only(cls) -> "ShaderPass":
        return cls.create_use_pass("Universal Render Pipeline/Lit/DepthOnly")

    def find_block_by_title(self, title: str) -> Block | None:
        """Case-insensitive title lookup."""
        wanted = title.lower()
        return next((b for b in self.blocks if b.title.lower() == wanted), None)

    def find_block_by_id(self, block_id: str) -> Block | None:
        return next((b for b in self.blocks if b.id == block_id), None)

    def get_blocks_by_section(self, section: SectionType) -> list[Block]:
        return [b for b in self.blocks if b.section == section]

    def add_block(self, block: Block) -> bool:
        if self.is_use_pass:
            raise UsePassError(self.name, "hold blocks")
        self.blocks.append(block)
        return True

    def remove_block(self, block_id: str) -> bool:
        remaining = [b for b in self.blocks if b.id != block_id]
        removed = len(remaining) != len(self.blocks)
        self.blocks = remaining
        return removed

    def add_pragma(self, pragma: str) -> bool:
        if self.is_use_pass:
            raise UsePassError(self.name, "hold pragmas")
        if pragma in self.pragmas:
            return False
        self.pragmas.append(pragma)
        return True

    def add_include(self, path: str) -> bool:
        if self.is_use_pass:
            raise UsePassError(self.name, "hold includes")
        if path in self.includes:
            return False
        self.includes.append(path)
        return True


@dataclass
class ShaderDocument:
    """Root of the model: one annotated shader file.

    Attributes:
        shader_name: Name from the ``Shader "..."`` header
        file_path: Source path, empty for documents not loaded from disk
        global_settings: Subshader-wide render defaults and tags
        properties: Material properties shared by all passes
        passes: Rendering passes in file order
        active_pass_index: Pass targeted by block edits
        raw_content: Last known literal text, base for targeted replacement
        is_dirty: Whether the model changed since the last save
    """

    shader_name: str = "AILab/NewShader"
    file_path: str = ""
    global_settings: GlobalSettings = field(default_factory=GlobalSettings)
    properties: list[Property] = field(default_factory=list)
    passes: list[ShaderPass] = field(default_factory=list)
    active_pass_index: int = 0
    raw_content: str = ""
    is_dirty: bool = False

    @classmethod
    def create_default(
        cls, registry: FieldRegistry, shader_name: str = "AILab/NewShader"
    ) -> "ShaderDocument":
        """Blank document with a lit pass plus shadow-caster and depth references."""
        return cls(
            shader_name=shader_name,
            passes=[
                ShaderPass.create_forward_lit(registry),
                ShaderPass.create_shadow_caster(),
                ShaderPass.create_depth_only(),
            ],
        )

    # --- Passes ---

    @property
    def active_pass(self) -> ShaderPass | None:
        if 0 <= self.active_pass_index < len(self.passes):
            return self.passes[self.active_pass_index]
        return None

    def _require_active_pass(self) -> ShaderPass:
        shader_pass = self.active_pass
        if shader_pass is None:
            raise IndexError(f"No pass at index {self.active_pass_index}")
        return shader_pass

    def set_active_pass(self, index: int) -> bool:
        if not 0 <= index < len(self.passes) or index == self.active_pass_index:
            return False
        self.active_pass_index = index
        return True

    def find_pass_by_id(self, pass_id: str) -> ShaderPass | None:
        return next((p for p in self.passes if p.id == pass_id), None)

    def add_pass(self, shader_pass: ShaderPass) -> bool:
        self.passes.append(shader_pass)
        self.is_dirty = True
        return True

    def remove_pass(self, pass_id: str) -> bool:
        index = next((i for i, p in enumerate(self.passes) if p.id == pass_id), -1)
        if index < 0:
            return False
        del self.passes[index]
        if index < self.active_pass_index or self.active_pass_index >= len(self.passes):
            self.active_pass_index = max(0, self.active_pass_index - 1)
        self.is_dirty = True
        return True

    def move_pass(self, from_index: int, to_index: int) -> bool:
        """Reorder a pass. The active pass stays the same pass object."""
        count = len(self.passes)
        if not (0 <= from_index < count and 0 <= to_index < count):
            return False
        if from_index == to_index:
            return False
        active = self.active_pass
        self.passes.insert(to_index, self.passes.pop(from_index))
        if active is not None:
            self.active_pass_index = self.passes.index(active)
        self.is_dirty = True
        return True

    # --- Blocks ---

    @property
    def all_blocks(self) -> list[Block]:
        return [b for p in self.passes for b in p.blocks]

    def find_block_by_id(self, block_id: str) -> Block | None:
        return next((b for b in self.all_blocks if b.id == block_id), None)

    def find_pass_of_block(self, block_id: str) -> ShaderPass | None:
        return next(
            (p for p in self.passes if p.find_block_by_id(block_id) is not None), None
        )

    def find_block_by_title(self, title: str) -> Block | None:
        """Look in the active pass first, then in the other passes."""
        active = self.active_pass
        if active is not None:
            found = active.find_block_by_title(title)
            if found is not None:
                return found
        for shader_pass in self.passes:
            if shader_pass is active:
                continue
            found = shader_pass.find_block_by_title(title)
            if found is not None:
                return found
        return None

    def get_blocks_by_section(self, section: SectionType) -> list[Block]:
        """Blocks of the active pass in the given section."""
        active = self.active_pass
        return active.get_blocks_by_section(section) if active else []

    def add_block(self, block: Block) -> bool:
        """Append a block to the active pass."""
        self._require_active_pass().add_block(block)
        self.is_dirty = True
        return True

    def remove_block(self, block_id: str) -> bool:
        shader_pass = self.find_pass_of_block(block_id)
        if shader_pass is None:
            return False
        shader_pass.remove_block(block_id)
        self.is_dirty = True
        return True

    def update_block_code(self, block_id: str, code: str) -> bool:
        block = self.find_block_by_id(block_id)
        if block is None or block.code == code:
            return False
        block.code = code
        self.is_dirty = True
        return True

    # --- Properties ---

    def find_property(self, name: str) -> Property | None:
        return next((p for p in self.properties if p.name == name), None)

    def add_property(self, prop: Property) -> bool:
        """Add a property unless one with the same name exists."""
        if self.find_property(prop.name) is not None:
            logger.debug(f"Property {prop.name} already declared, skipping")
            return False
        self.properties.append(prop)
        self.is_dirty = True
        return True

    def remove_property(self, name: str) -> bool:
        remaining = [p for p in self.properties if p.name != name]
        if len(remaining) == len(self.properties):
            return False
        self.properties = remaining
        self.is_dirty = True
        return True

    def mark_clean(self) -> None:
        self.is_dirty = False
