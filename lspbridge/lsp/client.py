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

"""LSP client implementation for communicating with language servers.

One client owns one server process. A reader task drains the server's stdout
into a MessageBuffer and dispatches each message: responses resolve the
pending request with the same id, server requests get a canned reply, and
notifications are cached or logged.

Lifecycle: CREATED -> STARTED -> INITIALIZED -> OPERATING -> STOPPING -> STOPPED.
"""

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Set

from lspbridge.lsp.config import LSPTimings, ResolvedServer, get_language_id
from lspbridge.lsp.errors import (
    LSPError,
    LSPResponseError,
    LSPStateError,
    LSPTimeoutError,
    LSPTransportError,
)
from lspbridge.lsp.framing import MessageBuffer, encode_message
from lspbridge.lsp.types import Position
from lspbridge.lsp.workspace import path_to_uri, uri_to_path

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 65536


class ClientState(Enum):
    """Lifecycle state of an LSPClient."""

    CREATED = "created"
    STARTED = "started"
    INITIALIZED = "initialized"
    OPERATING = "operating"
    STOPPING = "stopping"
    STOPPED = "stopped"


# Capabilities limited to the operations this client issues
CLIENT_CAPABILITIES: Dict[str, Any] = {
    "textDocument": {
        "hover": {"contentFormat": ["markdown", "plaintext"]},
        "definition": {"linkSupport": True},
        "references": {},
        "documentSymbol": {"hierarchicalDocumentSymbolSupport": True},
        "publishDiagnostics": {},
        "diagnostic": {},
    },
    "workspace": {
        "symbol": {},
        "workspaceFolders": True,
        "configuration": True,
    },
}


def _configuration_result(params: Any) -> List[Dict[str, Any]]:
    items = params.get("items") if isinstance(params, dict) else None
    if not isinstance(items, list) or not items:
        return [{}]
    return [{} for _ in items]


# Server-to-client requests answered with a minimal success value
SERVER_REQUEST_HANDLERS: Dict[str, Callable[[Any], Any]] = {
    "workspace/configuration": _configuration_result,
    "client/registerCapability": lambda params: None,
    "window/workDoneProgress/create": lambda params: None,
}


class LSPClient:
    """Client for communicating with a Language Server Protocol server.

    Usage:
        async with LSPClient(root, server) as client:
            result = await client.hover("/repo/main.py", 10, 4)
        # Server shut down and killed on exit
    """

    def __init__(
        self,
        root: str,
        server: ResolvedServer,
        timings: Optional[LSPTimings] = None,
    ):
        """Initialize the LSP client.

        Args:
            root: Workspace root directory
            server: Installed server to launch
            timings: Timeouts and settle delays (defaults if omitted)
        """
        self.root = os.path.abspath(root)
        self.root_uri = path_to_uri(self.root)
        self.server = server
        self.timings = timings or LSPTimings()
        self._state = ClientState.CREATED
        self._process: Optional[asyncio.subprocess.Process] = None
        self._request_id = 0
        self._pending_requests: Dict[Any, asyncio.Future] = {}
        self._write_lock = asyncio.Lock()
        self._buffer = MessageBuffer()
        self._opened_files: Set[str] = set()
        self._diagnostics: Dict[str, List[Dict[str, Any]]] = {}  # path -> pushed diagnostics
        self._capabilities: Dict[str, Any] = {}
        self._reader_task: Optional[asyncio.Task] = None
        self._stderr_task: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "LSPClient":
        """Start and initialize; the server is stopped if initialization fails."""
        await self.start()
        try:
            await self.initialize()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    @property
    def state(self) -> ClientState:
        return self._state

    @property
    def is_running(self) -> bool:
        """Check if the server process is running."""
        return self._process is not None and self._process.returncode is None

    @property
    def capabilities(self) -> Dict[str, Any]:
        return self._capabilities

    @property
    def opened_files(self) -> FrozenSet[str]:
        return frozenset(self._opened_files)

    async def start(self) -> None:
        """Spawn the language server and attach the output readers.

        Raises:
            LSPTransportError: If the process cannot be spawned
        """
        if self._state is not ClientState.CREATED:
            raise LSPStateError(f"Cannot start LSP client in state {self._state.value}")

        cmd = self.server.command
        env = {**os.environ, **self.server.env}
        logger.info(f"Starting LSP server {self.server.id}: {' '.join(cmd)}")

        try:
            self._process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.root,
                env=env,
            )
        except OSError as e:
            raise LSPTransportError(f"Failed to start LSP server {self.server.id}: {e}") from e

        self._state = ClientState.STARTED
        self._reader_task = asyncio.create_task(self._read_messages())
        self._stderr_task = asyncio.create_task(self._read_stderr())

    async def initialize(self) -> None:
        """Run the initialize handshake and wait for the server to settle."""
        if self._state is not ClientState.STARTED:
            raise LSPStateError(f"Cannot initialize LSP client in state {self._state.value}")

        params: Dict[str, Any] = {
            "processId": os.getpid(),
            "rootUri": self.root_uri,
            "rootPath": self.root,
            "workspaceFolders": [
                {"uri": self.root_uri, "name": Path(self.root).name or "workspace"}
            ],
            "capabilities": CLIENT_CAPABILITIES,
        }
        params.update(self.server.initialization)

        result = await self._send_request("initialize", params)
        if isinstance(result, dict):
            self._capabilities = result.get("capabilities") or {}

        await self._send_notification("initialized", {})
        await self._send_notification("workspace/didChangeConfiguration", {"settings": {}})

        await asyncio.sleep(self.timings.initialize_settle)
        self._state = ClientState.INITIALIZED
        logger.info(f"LSP server {self.server.id} initialized (root: {self.root})")

    async def stop(self) -> None:
        """Shut the server down and kill it.

        Safe to call more than once and from any state. Outstanding requests
        fail with LSPStateError.
        """
        if self._state in (ClientState.STOPPING, ClientState.STOPPED):
            return
        self._state = ClientState.STOPPING

        try:
            if self.is_running:
                try:
                    await self._send_request(
                        "shutdown", None, timeout=self.timings.shutdown_timeout
                    )
                    await self._send_notification("exit")
                except LSPError as e:
                    logger.warning(f"Error during shutdown of {self.server.id}: {e}")
        finally:
            await self._terminate()
            self._fail_pending(LSPStateError("LSP client stopped"))
            self._opened_files.clear()
            self._state = ClientState.STOPPED
            logger.info(f"LSP server {self.server.id} stopped")

    async def _terminate(self) -> None:
        process = self._process
        if process is not None:
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
            try:
                await asyncio.wait_for(process.wait(), timeout=self.timings.shutdown_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"LSP server {self.server.id} did not exit after kill")

        for task in (self._reader_task, self._stderr_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    def _get_next_id(self) -> int:
        """Get next request ID."""
        self._request_id += 1
        return self._request_id

    async def _send_request(
        self, method: str, params: Any, timeout: Optional[float] = None
    ) -> Any:
        """Send a request to the server and wait for response.

        Args:
            method: LSP method name
            params: Request parameters (omitted from the message if None)
            timeout: Timeout in seconds (defaults to timings.request_timeout)

        Returns:
            Response result

        Raises:
            LSPTimeoutError: No response within the timeout
            LSPResponseError: The server returned an error object
            LSPTransportError: The server is gone
        """
        if not self.is_running:
            raise LSPTransportError(f"LSP server {self.server.id} is not running")

        timeout = self.timings.request_timeout if timeout is None else timeout
        request_id = self._get_next_id()
        message: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            message["params"] = params

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending_requests[request_id] = future

        try:
            await self._write_message(message)
        except LSPTransportError:
            self._pending_requests.pop(request_id, None)
            raise

        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            self._pending_requests.pop(request_id, None)
            raise LSPTimeoutError(method, timeout) from None

    async def _send_notification(self, method: str, params: Any = None) -> None:
        """Send a notification to the server (no response expected)."""
        if not self.is_running:
            logger.debug(f"Dropping notification {method}: server not running")
            return

        message: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            message["params"] = params
        await self._write_message(message)

    async def _respond(self, request_id: Any, result: Any) -> None:
        """Reply to a server request, reusing the server's id."""
        await self._write_message({"jsonrpc": "2.0", "id": request_id, "result": result})

    async def _write_message(self, message: Dict[str, Any]) -> None:
        """Write a framed message; concurrent writers are serialized."""
        process = self._process
        if process is None or process.stdin is None:
            raise LSPTransportError(f"LSP server {self.server.id} is not running")

        data = encode_message(message)
        async with self._write_lock:
            try:
                process.stdin.write(data)
                await process.stdin.drain()
            except (ConnectionError, OSError) as e:
                raise LSPTransportError(
                    f"Failed to write to LSP server {self.server.id}: {e}"
                ) from e

    async def _read_messages(self) -> None:
        """Read messages from the server until its stdout closes."""
        if not self._process or not self._process.stdout:
            return

        stdout = self._process.stdout
        while True:
            try:
                chunk = await stdout.read(READ_CHUNK_SIZE)
                if not chunk:
                    break

                self._buffer.feed(chunk)
            except Exception as e:
                logger.error(f"Error reading from LSP server {self.server.id}: {e}")
                break

            for message in self._buffer.drain():
                try:
                    await self._handle_message(message)
                except Exception as e:
                    logger.debug(f"Dropping unhandled LSP message from {self.server.id}: {e}")

        self._fail_pending(
            LSPTransportError(f"LSP server {self.server.id} closed its output stream")
        )

    async def _read_stderr(self) -> None:
        """Drain stderr so a chatty server never blocks on a full pipe."""
        if not self._process or not self._process.stderr:
            return

        stderr = self._process.stderr
        while True:
            try:
                line = await stderr.readline()
            except ValueError:
                # Line longer than the stream limit; the partial data was discarded
                continue
            if not line:
                break
            logger.debug(f"[{self.server.id}] {line.decode('utf-8', errors='replace').rstrip()}")

    async def _handle_message(self, message: Dict[str, Any]) -> None:
        """Handle a message from the server."""
        if "id" in message and "method" in message:
            await self._handle_server_request(
                message["id"], message["method"], message.get("params")
            )
        elif "id" in message:
            self._handle_response(message)
        elif "method" in message:
            self._handle_notification(message["method"], message.get("params"))

    def _handle_response(self, message: Dict[str, Any]) -> None:
        request_id = message["id"]
        if not isinstance(request_id, (int, str)):
            return

        future = self._pending_requests.pop(request_id, None)
        if future is None or future.done():
            logger.debug(f"Dropping response for unknown request {request_id}")
            return

        error = message.get("error")
        if error is not None:
            future.set_exception(LSPResponseError.from_dict(error))
        else:
            future.set_result(message.get("result"))

    async def _handle_server_request(self, request_id: Any, method: str, params: Any) -> None:
        handler = SERVER_REQUEST_HANDLERS.get(method)
        if handler is None:
            logger.debug(f"Ignoring server request {method}")
            return

        try:
            await self._respond(request_id, handler(params))
        except LSPTransportError as e:
            logger.debug(f"Could not answer server request {method}: {e}")

    def _handle_notification(self, method: str, params: Any) -> None:
        if not isinstance(params, dict):
            params = {}

        if method == "textDocument/publishDiagnostics":
            uri = params.get("uri")
            diagnostics = params.get("diagnostics")
            if not isinstance(uri, str) or not isinstance(diagnostics, (list, type(None))):
                logger.debug(f"Ignoring malformed diagnostics notification for {uri!r}")
                return
            path = uri_to_path(uri)
            self._diagnostics[path] = list(diagnostics or [])
            logger.debug(f"Received {len(self._diagnostics[path])} diagnostics for {path}")
        elif method in ("window/logMessage", "window/showMessage"):
            logger.debug(f"[{self.server.id}] {params.get('message', '')}")

    def _fail_pending(self, error: Exception) -> None:
        pending = list(self._pending_requests.values())
        self._pending_requests.clear()
        for future in pending:
            if not future.done():
                future.set_exception(error)

    def _require_initialized(self) -> None:
        if self._state not in (ClientState.INITIALIZED, ClientState.OPERATING):
            raise LSPStateError(f"LSP client is not initialized (state: {self._state.value})")
        self._state = ClientState.OPERATING

    # Public API methods

    def get_pushed_diagnostics(self, file_path: str) -> List[Dict[str, Any]]:
        """Diagnostics the server published for a file, if any."""
        return list(self._diagnostics.get(os.path.abspath(file_path), []))

    async def open_file(self, file_path: str) -> None:
        """Announce a file to the server once per client, then let it settle.

        Args:
            file_path: Path to the file
        """
        self._require_initialized()
        abs_path = os.path.abspath(file_path)
        if abs_path in self._opened_files:
            return

        text = Path(abs_path).read_text(encoding="utf-8", errors="replace")
        await self._send_notification(
            "textDocument/didOpen",
            {
                "textDocument": {
                    "uri": path_to_uri(abs_path),
                    "languageId": get_language_id(abs_path),
                    "version": 1,
                    "text": text,
                }
            },
        )
        self._opened_files.add(abs_path)

        await asyncio.sleep(self.timings.open_settle)

    async def _position_params(self, file_path: str, line: int, character: int) -> Dict[str, Any]:
        """Open the file and build TextDocumentPositionParams from a 1-based line."""
        if line < 1:
            raise ValueError(f"line must be 1-based, got {line}")
        if character < 0:
            raise ValueError(f"character must be 0-based, got {character}")

        abs_path = os.path.abspath(file_path)
        await self.open_file(abs_path)
        return {
            "textDocument": {"uri": path_to_uri(abs_path)},
            "position": Position(line=line - 1, character=character).to_dict(),
        }

    async def hover(self, file_path: str, line: int, character: int) -> Any:
        """Get hover information at a position.

        Args:
            file_path: Path to the file
            line: Line number (1-indexed)
            character: Character offset (0-indexed)

        Returns:
            Raw Hover result or None
        """
        params = await self._position_params(file_path, line, character)
        return await self._send_request("textDocument/hover", params)

    async def definition(self, file_path: str, line: int, character: int) -> Any:
        """Get definition locations (Location, Location[] or LocationLink[])."""
        params = await self._position_params(file_path, line, character)
        return await self._send_request("textDocument/definition", params)

    async def references(
        self,
        file_path: str,
        line: int,
        character: int,
        include_declaration: bool = True,
    ) -> Any:
        """Get reference locations.

        Args:
            file_path: Path to the file
            line: Line number (1-indexed)
            character: Character offset (0-indexed)
            include_declaration: Include the declaration

        Returns:
            Raw Location[] or None
        """
        params = await self._position_params(file_path, line, character)
        params["context"] = {"includeDeclaration": include_declaration}
        return await self._send_request("textDocument/references", params)

    async def document_symbols(self, file_path: str) -> Any:
        """Get DocumentSymbol[] or SymbolInformation[] for a file."""
        abs_path = os.path.abspath(file_path)
        await self.open_file(abs_path)
        return await self._send_request(
            "textDocument/documentSymbol",
            {"textDocument": {"uri": path_to_uri(abs_path)}},
        )

    async def workspace_symbols(self, query: str) -> Any:
        """Search symbols across the workspace."""
        self._require_initialized()
        return await self._send_request("workspace/symbol", {"query": query})

    async def diagnostics(self, file_path: str) -> Any:
        """Get diagnostics for a file.

        Uses the pull model (textDocument/diagnostic). Servers that reject it
        answer from the diagnostics they published after didOpen.
        """
        abs_path = os.path.abspath(file_path)
        await self.open_file(abs_path)
        await asyncio.sleep(self.timings.diagnostics_settle)

        try:
            return await self._send_request(
                "textDocument/diagnostic",
                {"textDocument": {"uri": path_to_uri(abs_path)}},
            )
        except LSPResponseError as e:
            if abs_path not in self._diagnostics:
                raise
            logger.debug(f"Pull diagnostics failed ({e}); using published diagnostics")
            return {"kind": "full", "items": self.get_pushed_diagnostics(abs_path)}
