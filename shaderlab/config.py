"""Settings shared by the parser and the writer."""

import os
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class LabSettings:
    """Configuration for the annotated shader format.

    Attributes:
        tag_prefix: Prefix of every comment marker, e.g. ``AILab`` in
            ``// [AILab_Block_Start: "Title"]``
        default_shader_name: Name used when the source has no ``Shader "..."``
        fallback_shader: Shader named in the trailing ``FallBack`` line
        indent: One indentation step in generated text
        input_struct: Name of the per-vertex input struct
        output_struct: Name of the vertex-to-fragment struct
        cbuffer_name: Name of the per-material constant buffer
        render_pipeline: Value of the ``RenderPipeline`` subshader tag
    """

    tag_prefix: str = "AILab"
    default_shader_name: str = "AILab/NewShader"
    fallback_shader: str = "Hidden/Universal Render Pipeline/FallbackError"
    indent: str = "    "
    input_struct: str = "Attributes"
    output_struct: str = "Varyings"
    cbuffer_name: str = "UnityPerMaterial"
    render_pipeline: str = "UniversalPipeline"

    @classmethod
    def from_env(cls) -> "LabSettings":
        """Build settings, overriding defaults from ``SHADERLAB_*`` variables."""
        settings = cls()
        overrides: dict[str, str] = {}
        if os.environ.get("SHADERLAB_TAG_PREFIX"):
            overrides["tag_prefix"] = os.environ["SHADERLAB_TAG_PREFIX"]
        if os.environ.get("SHADERLAB_FALLBACK"):
            overrides["fallback_shader"] = os.environ["SHADERLAB_FALLBACK"]
        return replace(settings, **overrides) if overrides else settings
