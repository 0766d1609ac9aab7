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

"""End-to-end session tests against the scripted fake server."""

import asyncio
import os
import sys
from pathlib import Path

import pytest

from lspbridge.lsp.client import ClientState
from lspbridge.lsp.config import ServerRegistry, UserConfig, UserServerEntry
from lspbridge.lsp.errors import LSPResponseError, LSPTimeoutError, ServerNotFoundError
from lspbridge.lsp.session import lsp_session, resolve_server, with_lsp_client


class TestResolveServer:
    """Server lookup before any process is spawned."""

    def test_unknown_extension(self, fake_registry, tmp_path):
        with pytest.raises(ServerNotFoundError) as exc_info:
            resolve_server(str(tmp_path / "notes.xyz"), fake_registry)

        assert exc_info.value.extension == ".xyz"
        assert str(exc_info.value) == "no server for extension .xyz"

    def test_configured_server(self, fake_registry, main_file):
        assert resolve_server(str(main_file), fake_registry).id == "fake"


class TestSession:
    """Full lifecycle with a real subprocess."""

    @pytest.mark.asyncio
    async def test_handshake_answers_server_requests(self, fake_registry, workspace, main_file):
        async with lsp_session(str(main_file), fake_registry) as client:
            assert client.state is ClientState.INITIALIZED
            experimental = client.capabilities["experimental"]

        assert experimental["configurationReply"] == [{}, {}]
        assert experimental["progressReply"] is None
        assert experimental["rootPath"] == str(workspace)
        assert experimental["rootUri"] == workspace.as_uri()

    @pytest.mark.asyncio
    async def test_process_environment_and_cwd(self, fake_registry, workspace, main_file):
        async with lsp_session(str(main_file), fake_registry) as client:
            environment = await client._send_request("test/environment", None)

        assert os.path.realpath(environment["cwd"]) == os.path.realpath(workspace)
        assert environment["marker"] == "from-config"

    @pytest.mark.asyncio
    async def test_file_opened_once_per_session(self, fake_registry, main_file):
        async with lsp_session(str(main_file), fake_registry) as client:
            await client.hover(str(main_file), 1, 0)
            await client.document_symbols(str(main_file))
            opens = await client._send_request("test/openCount", None)
            notifications = await client._send_request("test/notifications", None)

        assert opens == 1
        assert notifications[:3] == [
            "initialized",
            "workspace/didChangeConfiguration",
            "textDocument/didOpen",
        ]

    @pytest.mark.asyncio
    async def test_pushed_diagnostics_are_cached(self, fake_registry, main_file):
        async with lsp_session(str(main_file), fake_registry) as client:
            await client.open_file(str(main_file))
            # The notification precedes this response on the same stream
            await client._send_request("test/openCount", None)
            pushed = client.get_pushed_diagnostics(str(main_file))

        assert [d["message"] for d in pushed] == ["opened as python"]

    @pytest.mark.asyncio
    async def test_stray_responses_are_tolerated(self, fake_registry, main_file):
        async with lsp_session(str(main_file), fake_registry) as client:
            assert await client._send_request("test/double", None) == "first"
            assert await client._send_request("test/malformed", None) == "after-malformed"
            with pytest.raises(LSPResponseError) as exc_info:
                await client._send_request("test/error", None)
            assert exc_info.value.code == -32000
            # The session is still usable afterwards
            assert await client._send_request("test/openCount", None) == 0

    @pytest.mark.asyncio
    async def test_malformed_server_messages_keep_reader_alive(self, fake_registry, main_file):
        async with lsp_session(str(main_file), fake_registry) as client:
            result = await client._send_request("test/badMessages", None)
            assert await client._send_request("test/openCount", None) == 0

        assert result == {"configurationReply": [{}]}

    @pytest.mark.asyncio
    async def test_request_timeout(self, fake_registry, main_file):
        async with lsp_session(str(main_file), fake_registry) as client:
            with pytest.raises(LSPTimeoutError):
                await client._send_request("test/silent", None, timeout=0.2)
            assert client._pending_requests == {}

    @pytest.mark.asyncio
    async def test_client_is_stopped_after_session(self, fake_registry, main_file):
        async with lsp_session(str(main_file), fake_registry) as client:
            process = client._process

        assert client.state is ClientState.STOPPED
        assert not client.is_running
        assert process.returncode is not None
        assert client.opened_files == frozenset()

    @pytest.mark.asyncio
    async def test_client_is_stopped_when_operation_fails(self, fake_registry, main_file):
        seen = []

        async def failing(client):
            seen.append(client)
            raise RuntimeError("operation failed")

        with pytest.raises(RuntimeError):
            await with_lsp_client(str(main_file), failing, fake_registry)

        assert seen[0].state is ClientState.STOPPED
        assert not seen[0].is_running

    @pytest.mark.asyncio
    async def test_missing_server_spawns_nothing(self, fake_registry, tmp_path, monkeypatch):
        async def forbidden(*args, **kwargs):
            raise AssertionError("no process should be spawned")

        monkeypatch.setattr(asyncio, "create_subprocess_exec", forbidden)

        with pytest.raises(ServerNotFoundError):
            async with lsp_session(str(tmp_path / "notes.xyz"), fake_registry):
                pass

    @pytest.mark.asyncio
    async def test_initialization_options_are_forwarded(self, fast_timings, main_file):
        entry = UserServerEntry(
            command=[sys.executable, str(Path(__file__).parent / "fake_lsp_server.py")],
            extensions=[".py"],
            initialization={"initializationOptions": {"strict": True}},
        )
        registry = ServerRegistry(
            user_config=UserConfig(lsp={"fake": entry}, timings=fast_timings), builtins={}
        )

        async with lsp_session(str(main_file), registry) as client:
            experimental = client.capabilities["experimental"]

        assert experimental["initializationOptions"] == {"strict": True}
