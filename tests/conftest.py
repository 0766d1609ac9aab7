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

"""Shared fixtures for the LSP tests."""

import sys
from pathlib import Path

import pytest

from lspbridge.lsp import config
from lspbridge.lsp.config import LSPTimings, ServerRegistry, UserConfig, UserServerEntry

FAKE_SERVER = Path(__file__).parent / "fake_lsp_server.py"

SAMPLE_SOURCE = """class Foo:
    def bar(self):
        return x

import os

def helper():
    pass

def foo(): ...


    foo()
"""


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Point the user config at a missing file and clear process-wide caches."""
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(tmp_path / "no-such-config.yaml"))
    monkeypatch.setattr(config, "_user_config", None)
    config.reset_server_registry()
    yield
    config.reset_server_registry()


@pytest.fixture
def fast_timings():
    """Timings without settle delays."""
    return LSPTimings(
        request_timeout=10.0,
        initialize_settle=0,
        open_settle=0,
        diagnostics_settle=0,
        shutdown_timeout=5.0,
    )


def fake_server_entry(**env) -> UserServerEntry:
    return UserServerEntry(
        command=[sys.executable, str(FAKE_SERVER)],
        extensions=[".py"],
        env={"FAKE_LSP_MARKER": "from-config", **env},
    )


@pytest.fixture
def fake_registry(fast_timings):
    """Registry whose only server is the scripted fake server."""
    user_config = UserConfig(lsp={"fake": fake_server_entry()}, timings=fast_timings)
    return ServerRegistry(user_config=user_config, builtins={})


@pytest.fixture
def workspace(tmp_path):
    """A repository with a .git marker and a Python file in a subdirectory."""
    repo = tmp_path / "repo"
    (repo / ".git").mkdir(parents=True)
    (repo / "src").mkdir()
    source = repo / "src" / "main.py"
    source.write_text(SAMPLE_SOURCE)
    return repo


@pytest.fixture
def main_file(workspace):
    return workspace / "src" / "main.py"


@pytest.fixture
def pyright_on_path(tmp_path, monkeypatch):
    """Install a ``pyright-langserver`` shim that runs the fake server, alone on PATH."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    shim = bin_dir / "pyright-langserver"
    shim.write_text(f'#!/bin/sh\nexec "{sys.executable}" "{FAKE_SERVER}" "$@"\n')
    shim.chmod(0o755)
    monkeypatch.setenv("PATH", str(bin_dir))
    return shim
