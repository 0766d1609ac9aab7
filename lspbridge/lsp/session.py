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

"""One-shot LSP sessions.

Each call resolves a server and workspace root for a file, runs a fresh
client for exactly one operation, and always stops it afterwards. Servers
are never reused between calls.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional, TypeVar

from lspbridge.lsp.client import LSPClient
from lspbridge.lsp.config import (
    ResolvedServer,
    ServerRegistry,
    file_extension,
    get_server_registry,
)
from lspbridge.lsp.errors import ServerNotFoundError
from lspbridge.lsp.workspace import find_workspace_root

logger = logging.getLogger(__name__)

T = TypeVar("T")


def resolve_server(file_path: str, registry: Optional[ServerRegistry] = None) -> ResolvedServer:
    """Find the installed server for a file or raise ServerNotFoundError."""
    registry = registry or get_server_registry()
    server = registry.resolve_for_file(file_path)
    if server is None:
        raise ServerNotFoundError(file_extension(file_path))
    return server


@asynccontextmanager
async def lsp_session(
    file_path: str, registry: Optional[ServerRegistry] = None
) -> AsyncIterator[LSPClient]:
    """Yield an initialized client for a file's server; stop it on exit.

    Raises:
        ServerNotFoundError: Before anything is spawned, if no server matches
    """
    registry = registry or get_server_registry()
    abs_path = os.path.abspath(file_path)
    server = resolve_server(abs_path, registry)
    root = find_workspace_root(abs_path)
    logger.debug(f"Using LSP server {server.id} for {abs_path} (root: {root})")

    async with LSPClient(root, server, timings=registry.timings) as client:
        yield client


async def with_lsp_client(
    file_path: str,
    operation: Callable[[LSPClient], Awaitable[T]],
    registry: Optional[ServerRegistry] = None,
) -> T:
    """Run one operation against a fresh client for ``file_path``."""
    async with lsp_session(file_path, registry) as client:
        return await operation(client)
