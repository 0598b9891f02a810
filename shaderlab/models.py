"""
Data models for annotated shader documents.

This module contains the dataclass definitions for the leaf entities of the
document model: properties, blocks and render state.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum


def new_id() -> str:
    """Short random identifier for blocks and passes."""
    return uuid.uuid4().hex[:8]


def format_number(value: float) -> str:
    """Format a float as a plain decimal literal without losing digits.

    Whole numbers drop their trailing ``.0`` and exponents are expanded,
    so ``1234567.0`` becomes ``1234567`` and ``1e-05`` becomes ``0.00001``.
    """
    text = format(Decimal(repr(value)), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


class SectionType(Enum):
    """Section of the stage program a block belongs to."""

    PROPERTIES = "Properties"
    CONSTANTS = "Constants"
    VERTEX = "Vertex"
    FRAGMENT = "Fragment"
    HELPER = "Helper"
    GLOBAL = "Global"
    UNKNOWN = "Unknown"

    @classmethod
    def from_label(cls, label: str) -> "SectionType":
        """Map a section marker label such as "Helper Functions" to a section."""
        text = label.lower()
        for keyword, section in (
            ("constant", cls.CONSTANTS),
            ("vertex", cls.VERTEX),
            ("fragment", cls.FRAGMENT),
            ("helper", cls.HELPER),
            ("propert", cls.PROPERTIES),
            ("global", cls.GLOBAL),
        ):
            if keyword in text:
                return section
        return cls.UNKNOWN


class PropertyType(Enum):
    """Shader property kinds."""

    FLOAT = "Float"
    RANGE = "Range"
    COLOR = "Color"
    VECTOR = "Vector"
    TEXTURE2D = "Texture2D"
    TEXTURE3D = "Texture3D"
    CUBEMAP = "Cubemap"
    INT = "Int"

    @classmethod
    def parse(cls, raw: str) -> "PropertyType":
        """Parse a type name as written in markers or declarations.

        Unknown names fall back to ``FLOAT``.
        """
        aliases = {
            "float": cls.FLOAT,
            "range": cls.RANGE,
            "color": cls.COLOR,
            "vector": cls.VECTOR,
            "2d": cls.TEXTURE2D,
            "texture2d": cls.TEXTURE2D,
            "3d": cls.TEXTURE3D,
            "texture3d": cls.TEXTURE3D,
            "cube": cls.CUBEMAP,
            "cubemap": cls.CUBEMAP,
            "int": cls.INT,
            "integer": cls.INT,
        }
        return aliases.get(raw.strip().lower(), cls.FLOAT)


@dataclass
class Property:
    """A material parameter declared in the ``Properties`` block.

    Attributes:
        name: Shader-visible identifier, e.g. ``_BaseColor``
        display_name: Inspector label
        property_type: Kind of property
        default_value: Default as written in the declaration
        min_value: Lower bound for ``Range`` properties
        max_value: Upper bound for ``Range`` properties
        role: Free-text grouping hint
        raw_declaration: Literal declaration line; wins over synthesis
        default_texture: Built-in texture default ("white", "bump", ...)
    """

    name: str
    display_name: str = ""
    property_type: PropertyType = PropertyType.FLOAT
    default_value: str = ""
    min_value: float = 0.0
    max_value: float = 1.0
    role: str = ""
    raw_declaration: str = ""
    default_texture: str = ""

    @property
    def is_numeric(self) -> bool:
        return self.property_type in (
            PropertyType.FLOAT,
            PropertyType.RANGE,
            PropertyType.INT,
        )

    @property
    def is_texture(self) -> bool:
        return self.property_type in (
            PropertyType.TEXTURE2D,
            PropertyType.TEXTURE3D,
            PropertyType.CUBEMAP,
        )

    def synthesize_declaration(self) -> str:
        """Build the ``Properties`` block line from type, default and range."""
        label = f'{self.name}("{self.display_name}"'
        match self.property_type:
            case PropertyType.RANGE:
                bounds = f"{format_number(self.min_value)},{format_number(self.max_value)}"
                return f"{label}, Range({bounds})) = {self.default_value}"
            case PropertyType.TEXTURE2D:
                return f'{label}, 2D) = "{self.default_texture or "white"}" {{}}'
            case PropertyType.TEXTURE3D:
                return f'{label}, 3D) = "{self.default_texture}" {{}}'
            case PropertyType.CUBEMAP:
                return f'{label}, Cube) = "{self.default_texture}" {{}}'
            case _:
                return f"{label}, {self.property_type.value}) = {self.default_value}"

    def declaration(self) -> str:
        return self.raw_declaration or self.synthesize_declaration()


@dataclass
class Block:
    """A titled, independently editable span of code.

    ``start_line`` and ``end_line`` are 0-based positions of the block's start
    and end markers in the text it was parsed from; they go stale as soon as
    the text changes.
    """

    title: str
    code: str = ""
    section: SectionType = SectionType.UNKNOWN
    intent: str = ""
    referenced_params: list[str] = field(default_factory=list)
    is_enabled: bool = True
    start_line: int = -1
    end_line: int = -1
    id: str = field(default_factory=new_id)

    def references(self, param: str) -> bool:
        return param in self.referenced_params

    def add_param(self, param: str) -> bool:
        if param in self.referenced_params:
            return False
        self.referenced_params.append(param)
        return True

    def contains_line(self, line: int) -> bool:
        return 0 <= self.start_line <= line <= self.end_line


@dataclass
class Stencil:
    """Stencil buffer configuration of a pass."""

    ref: int = 0
    comp: str = "Always"
    pass_op: str = "Keep"
    fail_op: str = "Keep"
    zfail_op: str = "Keep"
    read_mask: int = 255
    write_mask: int = 255


@dataclass
class RenderState:
    """Per-pass render state overrides. ``None`` means inherit the default."""

    cull: str | None = None
    blend: str | None = None
    zwrite: str | None = None
    ztest: str | None = None
    color_mask: str | None = None
    stencil: Stencil | None = None

    @property
    def has_overrides(self) -> bool:
        return any(
            (self.cull, self.blend, self.zwrite, self.ztest, self.color_mask)
        ) or self.stencil is not None


@dataclass
class GlobalSettings:
    """Document-wide render defaults and subshader tags."""

    cull: str = "Back"
    blend: str = "Off"
    zwrite: str = "On"
    render_type: str = "Opaque"
    render_queue: str = "Geometry"
