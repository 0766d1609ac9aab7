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

"""Code intelligence tools backed by language servers.

Every tool takes a file path (and a 1-based line / 0-based character where
relevant) and returns text. Failures are returned as ``Error: ...`` text,
never raised.
"""

import logging
from typing import Optional

from lspbridge.lsp.config import ServerRegistry, get_server_registry
from lspbridge.lsp.formatting import (
    filter_diagnostics_by_severity,
    format_diagnostic,
    format_hover_result,
    format_location,
    format_symbol_information,
    format_symbols,
    parse_diagnostics,
    parse_locations,
    parse_symbols,
)
from lspbridge.lsp.session import with_lsp_client
from lspbridge.lsp.types import SymbolInformation

logger = logging.getLogger(__name__)


def _error(tool: str, e: Exception) -> str:
    logger.error(f"{tool} failed: {e}")
    return f"Error: {e}"


async def lsp_hover(
    file_path: str,
    line: int,
    character: int,
    registry: Optional[ServerRegistry] = None,
) -> str:
    """Type information and documentation for the symbol at a position."""
    try:
        result = await with_lsp_client(
            file_path, lambda client: client.hover(file_path, line, character), registry
        )
        return format_hover_result(result)
    except Exception as e:
        return _error("lsp_hover", e)


async def lsp_goto_definition(
    file_path: str,
    line: int,
    character: int,
    registry: Optional[ServerRegistry] = None,
) -> str:
    """Where the symbol at a position is defined."""
    try:
        result = await with_lsp_client(
            file_path, lambda client: client.definition(file_path, line, character), registry
        )
        locations = parse_locations(result)
        if not locations:
            return "No definition found"
        return "\n".join(format_location(loc) for loc in locations)
    except Exception as e:
        return _error("lsp_goto_definition", e)


async def lsp_find_references(
    file_path: str,
    line: int,
    character: int,
    include_declaration: bool = True,
    registry: Optional[ServerRegistry] = None,
) -> str:
    """All usages of the symbol at a position across the workspace."""
    try:
        result = await with_lsp_client(
            file_path,
            lambda client: client.references(file_path, line, character, include_declaration),
            registry,
        )
        locations = parse_locations(result)
        if not locations:
            return "No references found"
        return "\n".join(format_location(loc) for loc in locations)
    except Exception as e:
        return _error("lsp_find_references", e)


async def lsp_document_symbols(
    file_path: str, registry: Optional[ServerRegistry] = None
) -> str:
    """Outline of the symbols defined in one file."""
    try:
        result = await with_lsp_client(
            file_path, lambda client: client.document_symbols(file_path), registry
        )
        symbols = parse_symbols(result)
        if not symbols:
            return "No symbols found"
        return format_symbols(symbols)
    except Exception as e:
        return _error("lsp_document_symbols", e)


async def lsp_workspace_symbols(
    file_path: str,
    query: str,
    limit: Optional[int] = None,
    registry: Optional[ServerRegistry] = None,
) -> str:
    """Search symbols by name across the workspace containing ``file_path``."""
    try:
        result = await with_lsp_client(
            file_path, lambda client: client.workspace_symbols(query), registry
        )
        symbols = [
            SymbolInformation.from_dict(item) for item in result or [] if isinstance(item, dict)
        ]
        if not symbols:
            return "No symbols found"
        if limit:
            symbols = symbols[:limit]
        return "\n".join(format_symbol_information(s) for s in symbols)
    except Exception as e:
        return _error("lsp_workspace_symbols", e)


async def lsp_diagnostics(
    file_path: str,
    severity: Optional[str] = None,
    registry: Optional[ServerRegistry] = None,
) -> str:
    """Errors, warnings and hints for a file.

    Args:
        file_path: Path to the file
        severity: "error", "warning", "information", "hint" or "all"
    """
    try:
        result = await with_lsp_client(
            file_path, lambda client: client.diagnostics(file_path), registry
        )
        diagnostics = filter_diagnostics_by_severity(parse_diagnostics(result), severity)
        if not diagnostics:
            return "No diagnostics found"
        return "\n".join(format_diagnostic(d) for d in diagnostics)
    except Exception as e:
        return _error("lsp_diagnostics", e)


def lsp_servers(registry: Optional[ServerRegistry] = None) -> str:
    """List known language servers and whether they are installed."""
    try:
        registry = registry or get_server_registry()
        lines = []
        for server in registry.list_all():
            extensions = ", ".join(server.extensions)
            if server.disabled:
                status = "[disabled]"
            elif server.installed:
                status = "[installed]"
            else:
                status = "[not installed]"
            lines.append(f"{server.id} {status} - {extensions}")
        return "\n".join(lines)
    except Exception as e:
        return _error("lsp_servers", e)
