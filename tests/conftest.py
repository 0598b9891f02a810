"""Fixtures and configuration for pytest."""

from pathlib import Path

import pytest

from shaderlab.config import LabSettings
from shaderlab.document import ShaderDocument
from shaderlab.parser import ShaderParser
from shaderlab.registry import FieldRegistry
from shaderlab.writer import ShaderWriter

DATA_DIR = Path(__file__).parent / "data"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "roundtrip: parse/generate stability tests")


@pytest.fixture
def registry() -> FieldRegistry:
    return FieldRegistry.default()


@pytest.fixture
def settings() -> LabSettings:
    return LabSettings()


@pytest.fixture
def parser(registry: FieldRegistry, settings: LabSettings) -> ShaderParser:
    return ShaderParser(registry, settings)


@pytest.fixture
def writer(registry: FieldRegistry, settings: LabSettings) -> ShaderWriter:
    return ShaderWriter(registry, settings)


@pytest.fixture
def toon_path() -> Path:
    """Two-pass annotated shader with a use-pass reference."""
    return DATA_DIR / "toon.shader"


@pytest.fixture
def toon_source(toon_path: Path) -> str:
    return toon_path.read_text(encoding="utf-8")


@pytest.fixture
def toon_doc(parser: ShaderParser, toon_source: str) -> ShaderDocument:
    return parser.parse(toon_source).document


@pytest.fixture
def default_doc(registry: FieldRegistry) -> ShaderDocument:
    return ShaderDocument.create_default(registry)
