"""Tests for compile message mapping."""

from shaderlab.diagnostics import (
    CompileMessage,
    Severity,
    find_block_at_line,
    has_errors,
    map_compile_messages,
    parse_compile_output,
)
from shaderlab.document import ShaderDocument


class TestMapping:
    """Test attribution of compiler messages to blocks."""

    def test_error_inside_block(self, toon_doc: ShaderDocument):
        quantize = toon_doc.find_block_by_title("Quantize")
        # Compiler lines are 1-based
        line = quantize.start_line + 4
        errors = map_compile_messages(toon_doc, [CompileMessage("syntax error", line)])

        assert len(errors) == 1
        assert errors[0].block_id == quantize.id
        assert errors[0].block_title == "Quantize"
        assert errors[0].shader_name == "AILab/Toon"

    def test_error_outside_blocks(self, toon_doc: ShaderDocument):
        errors = map_compile_messages(toon_doc, [CompileMessage("bad", 1)])
        assert errors[0].block_id == ""
        assert errors[0].line == 1

    def test_warnings_are_dropped(self, toon_doc: ShaderDocument):
        messages = [CompileMessage("implicit truncation", 10, Severity.WARNING)]
        assert map_compile_messages(toon_doc, messages) == []
        assert not has_errors(messages)

    def test_find_block_at_line(self, toon_doc: ShaderDocument):
        wobble = toon_doc.find_block_by_title("Wobble")
        assert find_block_at_line(toon_doc, wobble.start_line) is wobble
        assert find_block_at_line(toon_doc, wobble.end_line) is wobble
        assert find_block_at_line(toon_doc, wobble.end_line + 1) is None


def test_parse_compile_output():
    output = (
        "Shader error in 'AILab/Toon': undeclared identifier 'foo' at line 64 (on d3d11)\n"
        "Shader warning in 'AILab/Toon': implicit truncation of vector type at line 70 (on d3d11)\n"
    )
    messages = parse_compile_output(output)
    assert [(m.severity, m.line) for m in messages] == [
        (Severity.ERROR, 64),
        (Severity.WARNING, 70),
    ]
    assert messages[0].message == "undeclared identifier 'foo'"
    assert has_errors(messages)
