# Copyright 2025 Vijaykumar Singh <singhvjd@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Text rendering of LSP results.

Pure functions turning hover contents, locations, symbols and diagnostics
into the plain text returned to callers.
"""

from typing import Any, Dict, List, Optional, Union

from lspbridge.lsp.types import (
    AnyLocation,
    Diagnostic,
    DiagnosticSeverity,
    DocumentSymbol,
    Hover,
    Location,
    LocationLink,
    SymbolInformation,
    SymbolKind,
)
from lspbridge.lsp.workspace import uri_to_path

NO_HOVER_INFORMATION = "No hover information available"

SEVERITY_NAMES: Dict[int, str] = {
    DiagnosticSeverity.ERROR: "error",
    DiagnosticSeverity.WARNING: "warning",
    DiagnosticSeverity.INFORMATION: "information",
    DiagnosticSeverity.HINT: "hint",
}

SEVERITY_BY_NAME: Dict[str, int] = {name: level for level, name in SEVERITY_NAMES.items()}

# Display names, e.g. SymbolKind.ENUM_MEMBER -> "EnumMember"
SYMBOL_KIND_NAMES: Dict[int, str] = {
    kind.value: "".join(part.capitalize() for part in kind.name.split("_"))
    for kind in SymbolKind
}

Symbols = Union[List[DocumentSymbol], List[SymbolInformation]]


def _hover_text(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, dict):
        return str(item.get("value") or "")
    return ""


def format_hover_result(result: Any) -> str:
    """Render a hover result.

    Accepts a Hover (dict or dataclass) or bare contents: a string, a
    ``{kind, value}`` / ``{language, value}`` record, or a list of either.
    """
    if not result:
        return NO_HOVER_INFORMATION

    if isinstance(result, Hover):
        contents = result.contents
    elif isinstance(result, dict) and "contents" in result:
        contents = result["contents"]
    else:
        contents = result

    if isinstance(contents, list):
        text = "\n\n".join(part for part in map(_hover_text, contents) if part)
    else:
        text = _hover_text(contents)

    return text or NO_HOVER_INFORMATION


def format_location(loc: AnyLocation) -> str:
    """Render a Location or LocationLink as ``path:line:character`` (1-based line)."""
    if isinstance(loc, LocationLink):
        uri, start = loc.target_uri, loc.target_range.start
    else:
        uri, start = loc.uri, loc.range.start
    return f"{uri_to_path(uri)}:{start.line + 1}:{start.character}"


def format_symbol_kind(kind: int) -> str:
    return SYMBOL_KIND_NAMES.get(kind, f"Unknown({kind})")


def format_severity(severity: Optional[int]) -> str:
    if not severity:
        return "unknown"
    return SEVERITY_NAMES.get(severity, f"unknown({severity})")


def format_document_symbol(symbol: DocumentSymbol, indent: int = 0) -> str:
    """Render a symbol tree, indenting two spaces per level."""
    prefix = "  " * indent
    lines = [
        f"{prefix}{symbol.name} ({format_symbol_kind(symbol.kind)}) "
        f"- line {symbol.range.start.line + 1}"
    ]
    for child in symbol.children:
        lines.append(format_document_symbol(child, indent + 1))
    return "\n".join(lines)


def format_symbol_information(symbol: SymbolInformation) -> str:
    kind = format_symbol_kind(symbol.kind)
    container = f" (in {symbol.container_name})" if symbol.container_name else ""
    return f"{symbol.name} ({kind}){container} - {format_location(symbol.location)}"


def format_symbols(symbols: Symbols) -> str:
    """Render either symbol shape, one entry per line."""
    lines = []
    for symbol in symbols:
        if isinstance(symbol, DocumentSymbol):
            lines.append(format_document_symbol(symbol))
        else:
            lines.append(format_symbol_information(symbol))
    return "\n".join(lines)


def format_diagnostic(diagnostic: Diagnostic) -> str:
    """Render ``severity[source] (code) at line:col: message``."""
    severity = format_severity(diagnostic.severity)
    start = diagnostic.range.start
    source = f"[{diagnostic.source}]" if diagnostic.source else ""
    code = f" ({diagnostic.code})" if diagnostic.code not in (None, "") else ""
    return f"{severity}{source}{code} at {start.line + 1}:{start.character}: {diagnostic.message}"


def filter_diagnostics_by_severity(
    diagnostics: List[Diagnostic], severity: Optional[str] = None
) -> List[Diagnostic]:
    """Keep diagnostics of one severity.

    Args:
        diagnostics: Diagnostics to filter
        severity: "error", "warning", "information", "hint", "all" or None

    Returns:
        The input list unchanged for None/"all", otherwise the matching
        subset; an unknown severity name matches nothing
    """
    if not severity or severity == "all":
        return diagnostics

    target = SEVERITY_BY_NAME.get(severity)
    if target is None:
        return []
    return [d for d in diagnostics if d.severity == target]


def parse_locations(result: Any) -> List[AnyLocation]:
    """Parse a definition/references result (single object or list)."""
    if not result:
        return []
    items = result if isinstance(result, list) else [result]

    locations: List[AnyLocation] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        if "targetUri" in item:
            locations.append(LocationLink.from_dict(item))
        else:
            locations.append(Location.from_dict(item))
    return locations


def parse_symbols(result: Any) -> Symbols:
    """Parse a symbol result.

    The hierarchical shape has ``range`` on its elements, the flat shape
    has ``location``; the first element decides.
    """
    if not result or not isinstance(result, list):
        return []
    items = [item for item in result if isinstance(item, dict)]
    if not items:
        return []
    if "range" in items[0]:
        return [DocumentSymbol.from_dict(item) for item in items]
    return [SymbolInformation.from_dict(item) for item in items]


def parse_diagnostics(result: Any) -> List[Diagnostic]:
    """Parse a diagnostic list or a document diagnostic report (``items``)."""
    if not result:
        return []
    if isinstance(result, dict):
        result = result.get("items") or []
    if not isinstance(result, list):
        return []
    return [Diagnostic.from_dict(item) for item in result if isinstance(item, dict)]
