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

"""Language Server Protocol (LSP) integration.

This module provides a short-lived LSP client for code intelligence features
like hover, go-to-definition, find references, symbols and diagnostics. Each
call spawns one server, runs one operation and shuts the server down.
"""

from lspbridge.lsp.client import ClientState, LSPClient
from lspbridge.lsp.config import (
    LANGUAGE_SERVERS,
    LSPTimings,
    ResolvedServer,
    ServerDescriptor,
    ServerRegistry,
    ServerStatus,
    get_language_id,
    get_server_registry,
    load_user_config,
    reload_user_config,
    reset_server_registry,
)
from lspbridge.lsp.errors import (
    LSPError,
    LSPResponseError,
    LSPStateError,
    LSPTimeoutError,
    LSPTransportError,
    ServerNotFoundError,
)
from lspbridge.lsp.framing import MessageBuffer, encode_message
from lspbridge.lsp.session import lsp_session, with_lsp_client
from lspbridge.lsp.workspace import find_workspace_root

from lspbridge.lsp.types import (
    # Enumerations
    DiagnosticSeverity,
    SymbolKind,
    # Position and Range
    Position,
    Range,
    Location,
    LocationLink,
    # Results
    Diagnostic,
    DocumentSymbol,
    SymbolInformation,
    Hover,
)

__all__ = [
    # Client
    "ClientState",
    "LSPClient",
    "lsp_session",
    "with_lsp_client",
    # Registry
    "LANGUAGE_SERVERS",
    "LSPTimings",
    "ResolvedServer",
    "ServerDescriptor",
    "ServerRegistry",
    "ServerStatus",
    "get_language_id",
    "get_server_registry",
    "load_user_config",
    "reload_user_config",
    "reset_server_registry",
    "find_workspace_root",
    # Wire format
    "MessageBuffer",
    "encode_message",
    # Errors
    "LSPError",
    "LSPResponseError",
    "LSPStateError",
    "LSPTimeoutError",
    "LSPTransportError",
    "ServerNotFoundError",
    # Core LSP types
    "DiagnosticSeverity",
    "SymbolKind",
    "Position",
    "Range",
    "Location",
    "LocationLink",
    "Diagnostic",
    "DocumentSymbol",
    "SymbolInformation",
    "Hover",
]
