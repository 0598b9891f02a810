"""
Field registry for the vertex/fragment data flow.

This module holds the static catalog of known input-stage fields (vertex
attributes), output-stage fields (vertex-to-fragment interpolants) and global
values, together with the dependency rules that say which input fields an
output field is computed from.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, auto


class FieldStage(Enum):
    """Where a field lives in the pipeline."""

    INPUT = auto()
    OUTPUT = auto()
    GLOBAL = auto()


@dataclass
class Field:
    """A single struct member.

    Attributes:
        name: Identifier used in the struct
        data_type: HLSL type, e.g. ``float3``
        semantic: Binding semantic, empty when the writer assigns one
        display_name: Human readable label
        stage: Pipeline stage the field belongs to
        is_required: Required fields can never be deactivated
        is_active: Whether the field is emitted into its struct
        annotation: Free-text note attached by a collaborator
    """

    name: str
    data_type: str
    semantic: str = ""
    display_name: str = ""
    stage: FieldStage = FieldStage.INPUT
    is_required: bool = False
    is_active: bool = False
    annotation: str = ""

    def __post_init__(self) -> None:
        if not self.display_name:
            self.display_name = self.name
        if self.is_required:
            self.is_active = True

    def clone(self) -> "Field":
        return replace(self)


@dataclass(frozen=True)
class Dependency:
    """Edge from an input field to the output field computed from it."""

    source: str
    target: str
    transform_code: str
    description: str = ""

    @property
    def key(self) -> str:
        return f"{self.source}->{self.target}"


def _input(name: str, data_type: str, semantic: str, display: str,
           required: bool = False) -> Field:
    return Field(name, data_type, semantic, display, FieldStage.INPUT, required)


def _output(name: str, data_type: str, display: str,
            semantic: str = "", required: bool = False) -> Field:
    return Field(name, data_type, semantic, display, FieldStage.OUTPUT, required)


def _global(name: str, data_type: str, display: str) -> Field:
    return Field(name, data_type, "", display, FieldStage.GLOBAL, False)


DEFAULT_INPUT_FIELDS: tuple[Field, ...] = (
    _input("positionOS", "float4", "POSITION", "Object Position", required=True),
    _input("normalOS", "float3", "NORMAL", "Object Normal"),
    _input("tangentOS", "float4", "TANGENT", "Object Tangent"),
    _input("uv", "float2", "TEXCOORD0", "UV Channel 0"),
    _input("uv2", "float2", "TEXCOORD1", "UV Channel 1"),
    _input("color", "float4", "COLOR", "Vertex Color"),
)

DEFAULT_OUTPUT_FIELDS: tuple[Field, ...] = (
    _output("positionCS", "float4", "Clip Position", "SV_POSITION", required=True),
    _output("normalWS", "float3", "World Normal"),
    _output("tangentWS", "float4", "World Tangent"),
    _output("bitangentWS", "float3", "World Bitangent"),
    _output("uv", "float2", "UV"),
    _output("positionWS", "float3", "World Position"),
    _output("viewDirWS", "float3", "View Direction"),
    _output("fogFactor", "float", "Fog Factor"),
    _output("shadowCoord", "float4", "Shadow Coord"),
    _output("vertexColor", "float4", "Vertex Color"),
    _output("screenPos", "float4", "Screen Position"),
)

# Always available in any stage, never declared in a struct.
DEFAULT_GLOBAL_FIELDS: tuple[Field, ...] = (
    _global("_Time", "float4", "Time"),
    _global("_SinTime", "float4", "Sine of Time"),
    _global("_CosTime", "float4", "Cosine of Time"),
    _global("unity_DeltaTime", "float4", "Delta Time"),
    _global("_WorldSpaceCameraPos", "float3", "Camera Position (World)"),
    _global("_ScreenParams", "float4", "Screen Size"),
    _global("_ProjectionParams", "float4", "Projection Params"),
    _global("unity_OrthoParams", "float4", "Ortho Params"),
    _global("unity_ObjectToWorld", "float4x4", "Object to World Matrix"),
    _global("unity_WorldToObject", "float4x4", "World to Object Matrix"),
)

GLOBAL_TOOLTIPS: dict[str, str] = {
    "_Time": "(t/20, t, t*2, t*3)",
    "_SinTime": "(sin(t/8), sin(t/4), sin(t/2), sin(t))",
    "_CosTime": "(cos(t/8), cos(t/4), cos(t/2), cos(t))",
    "unity_DeltaTime": "(dt, 1/dt, smoothDt, 1/smoothDt)",
    "_WorldSpaceCameraPos": "World space position of the camera",
    "_ScreenParams": "(width, height, 1 + 1/width, 1 + 1/height)",
    "_ProjectionParams": "(1 or -1 if flipped, near, far, 1/far)",
    "unity_OrthoParams": "(width, height, unused, 1 if orthographic)",
    "unity_ObjectToWorld": "Current model matrix",
    "unity_WorldToObject": "Inverse of the current model matrix",
}

# Markers the writer looks for inside transform snippets to decide which
# shared helper structs the vertex entry must declare.
POSITION_INPUTS_MARKER = "GetVertexPositionInputs"
NORMAL_INPUTS_MARKER = "GetVertexNormalInputs"

DEFAULT_DEPENDENCIES: dict[str, tuple[Dependency, ...]] = {
    "positionCS": (
        Dependency(
            "positionOS",
            "positionCS",
            "VertexPositionInputs vpi = GetVertexPositionInputs(input.positionOS.xyz);\n"
            "output.positionCS = vpi.positionCS;",
            "GetVertexPositionInputs",
        ),
    ),
    "positionWS": (
        Dependency(
            "positionOS",
            "positionWS",
            "output.positionWS = vpi.positionWS;",
            "GetVertexPositionInputs -> positionWS",
        ),
    ),
    "normalWS": (
        Dependency(
            "normalOS",
            "normalWS",
            "VertexNormalInputs vni = GetVertexNormalInputs(input.normalOS);\n"
            "output.normalWS = vni.normalWS;",
            "TransformObjectToWorldNormal",
        ),
    ),
    "tangentWS": (
        Dependency(
            "tangentOS",
            "tangentWS",
            "VertexNormalInputs vni = GetVertexNormalInputs(input.normalOS, input.tangentOS);\n"
            "output.tangentWS = float4(vni.tangentWS, input.tangentOS.w);",
            "GetVertexNormalInputs -> tangentWS",
        ),
    ),
    "bitangentWS": (
        Dependency(
            "normalOS",
            "bitangentWS",
            "output.bitangentWS = vni.bitangentWS;",
            "GetVertexNormalInputs -> bitangentWS",
        ),
        Dependency("tangentOS", "bitangentWS", "", "requires tangentOS for bitangent"),
    ),
    "uv": (Dependency("uv", "uv", "output.uv = input.uv;", "Pass-through UV"),),
    "fogFactor": (
        Dependency(
            "positionOS",
            "fogFactor",
            "output.fogFactor = ComputeFogFactor(vpi.positionCS.z);",
            "ComputeFogFactor",
        ),
    ),
    "shadowCoord": (
        Dependency(
            "positionOS",
            "shadowCoord",
            "output.shadowCoord = GetShadowCoord(vpi);",
            "GetShadowCoord",
        ),
    ),
    "viewDirWS": (
        Dependency(
            "positionOS",
            "viewDirWS",
            "output.viewDirWS = GetWorldSpaceNormalizeViewDir(vpi.positionWS);",
            "GetWorldSpaceNormalizeViewDir",
        ),
    ),
    "vertexColor": (
        Dependency(
            "color",
            "vertexColor",
            "output.vertexColor = input.color;",
            "Pass-through vertex color",
        ),
    ),
    "screenPos": (
        Dependency(
            "positionOS",
            "screenPos",
            "output.screenPos = ComputeScreenPos(vpi.positionCS);",
            "ComputeScreenPos",
        ),
    ),
}


@dataclass(frozen=True)
class FieldRegistry:
    """Read-only catalog of field prototypes and dependency rules.

    Build one with :meth:`default` at startup and hand it to the graphs,
    parser and writer that need it.
    """

    inputs: tuple[Field, ...]
    outputs: tuple[Field, ...]
    globals: tuple[Field, ...] = ()
    dependencies: dict[str, tuple[Dependency, ...]] = field(default_factory=dict)
    tooltips: dict[str, str] = field(default_factory=dict)

    @classmethod
    def default(cls) -> "FieldRegistry":
        """Registry with the standard URP attribute and varying fields."""
        return cls(
            inputs=DEFAULT_INPUT_FIELDS,
            outputs=DEFAULT_OUTPUT_FIELDS,
            globals=DEFAULT_GLOBAL_FIELDS,
            dependencies=dict(DEFAULT_DEPENDENCIES),
            tooltips=dict(GLOBAL_TOOLTIPS),
        )

    def dependencies_of(self, output_name: str) -> list[Dependency]:
        """Return the dependency edges of an output field, in declaration order.

        Unknown names yield an empty list.
        """
        return list(self.dependencies.get(output_name, ()))

    def find_input_prototype(self, name_or_semantic: str) -> Field | None:
        """Find an input prototype by field name or by semantic."""
        for proto in self.inputs:
            if name_or_semantic in (proto.name, proto.semantic):
                return proto
        return None

    def find_output_prototype(self, name: str) -> Field | None:
        for proto in self.outputs:
            if proto.name == name:
                return proto
        return None

    def find_global(self, name: str) -> Field | None:
        for proto in self.globals:
            if proto.name == name:
                return proto
        return None

    def tooltip_for(self, name: str) -> str:
        """Display-only description of a global value."""
        return self.tooltips.get(name, "")
