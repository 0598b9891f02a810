from shaderlab.config import LabSettings
from shaderlab.dataflow import DataFlowGraph, ValidationIssue
from shaderlab.document import ShaderDocument, ShaderPass
from shaderlab.errors import ShaderLabError
from shaderlab.models import Block, Property, PropertyType, SectionType
from shaderlab.parser import ShaderParser, parse_content, parse_file
from shaderlab.registry import FieldRegistry, FieldStage
from shaderlab.writer import ShaderWriter, generate, replace_block, write_file

__version__ = "0.1.0"


__all__ = [
    "Block",
    "DataFlowGraph",
    "FieldRegistry",
    "FieldStage",
    "LabSettings",
    "Property",
    "PropertyType",
    "SectionType",
    "ShaderDocument",
    "ShaderLabError",
    "ShaderParser",
    "ShaderPass",
    "ShaderWriter",
    "ValidationIssue",
    "generate",
    "parse_content",
    "parse_file",
    "replace_block",
    "write_file",
]
