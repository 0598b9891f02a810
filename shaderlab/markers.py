"""
Comment marker grammar shared by the parser and the writer.

Every marker is a single-line comment of the form::

    // [<Prefix>_<Tag>: attr="value" ...]
    // [<Prefix>_Block_Start: "Title"]
    // [<Prefix>_Block_End]

Attribute order is not significant. A marker whose attributes cannot be read
simply does not match, and the caller falls back to defaults.
"""

import re
from dataclasses import dataclass
from functools import cached_property

from loguru import logger

ATTRIBUTE_RE = re.compile(r'(\w+)="([^"]*)"')


def parse_attributes(text: str) -> dict[str, str]:
    """Read ``key="value"`` pairs. Keys are lower-cased."""
    return {key.lower(): value for key, value in ATTRIBUTE_RE.findall(text)}


def quote(value: str) -> str:
    """Make a value safe to embed between marker quotes.

    Double quotes become single quotes and newlines become spaces, so such
    values come back changed after a parse.
    """
    safe = value.replace('"', "'").replace("\n", " ")
    if safe != value:
        logger.warning(f"Marker value rewritten to fit quotes: {safe!r}")
    return safe


def format_attributes(attributes: dict[str, str]) -> str:
    return " ".join(f'{key}="{quote(value)}"' for key, value in attributes.items())


@dataclass(frozen=True)
class MarkerGrammar:
    """Regexes and formatters for markers with a given tag prefix."""

    prefix: str = "AILab"

    def _tag(self, name: str, body: str = "") -> re.Pattern[str]:
        tag = re.escape(f"{self.prefix}_{name}")
        if body:
            return re.compile(rf"//\s*\[{tag}:\s*{body}\]")
        return re.compile(rf"//\s*\[{tag}\]")

    @cached_property
    def property_re(self) -> re.Pattern[str]:
        return self._tag("Property", r"(.*)")

    @cached_property
    def global_re(self) -> re.Pattern[str]:
        return self._tag("Global", r"(.*)")

    @cached_property
    def pass_re(self) -> re.Pattern[str]:
        return self._tag("Pass", r"(.*)")

    @cached_property
    def block_start_re(self) -> re.Pattern[str]:
        return self._tag("Block_Start", r'"([^"]+)"')

    @cached_property
    def block_end_re(self) -> re.Pattern[str]:
        return self._tag("Block_End")

    @cached_property
    def intent_re(self) -> re.Pattern[str]:
        return self._tag("Intent", r'"([^"]*)"')

    @cached_property
    def param_re(self) -> re.Pattern[str]:
        return self._tag("Param", r'"([^"]+)"(?:\s+role="([^"]*)")?')

    @cached_property
    def section_re(self) -> re.Pattern[str]:
        return self._tag("Section", r'"([^"]+)"')

    @cached_property
    def disabled_re(self) -> re.Pattern[str]:
        return self._tag("Disabled")

    # --- Formatting ---

    def _marker(self, name: str, body: str = "") -> str:
        if body:
            return f"// [{self.prefix}_{name}: {body}]"
        return f"// [{self.prefix}_{name}]"

    def property_marker(self, attributes: dict[str, str]) -> str:
        return self._marker("Property", format_attributes(attributes))

    def global_marker(self, attributes: dict[str, str]) -> str:
        return self._marker("Global", format_attributes(attributes))

    def pass_marker(self, attributes: dict[str, str]) -> str:
        return self._marker("Pass", format_attributes(attributes))

    def block_start(self, title: str) -> str:
        return self._marker("Block_Start", f'"{quote(title) or "Untitled"}"')

    def block_end(self) -> str:
        return self._marker("Block_End")

    def intent(self, text: str) -> str:
        return self._marker("Intent", f'"{quote(text)}"')

    def param(self, name: str, role: str) -> str:
        return self._marker("Param", f'"{quote(name)}" role="{quote(role)}"')

    def section(self, label: str) -> str:
        return self._marker("Section", f'"{quote(label)}"')

    def disabled(self) -> str:
        return self._marker("Disabled")

    def is_marker(self, line: str) -> bool:
        """Whether a line carries any marker of this grammar."""
        return f"[{self.prefix}_" in line
