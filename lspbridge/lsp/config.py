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

"""LSP server configuration and registry.

Defines the built-in language servers, loads user overrides from a YAML
configuration file, and resolves which installed server handles a file.

User configuration format (``~/.config/lspbridge/config.yaml``, or the path in
``$LSPBRIDGE_CONFIG``; JSON is accepted too):

```yaml
lsp:
  pyright:
    disabled: true
  ruff:
    command: [ruff, server]
    extensions: [.py]
    env: {RUFF_CACHE_DIR: /tmp/ruff}
    initialization:
      initializationOptions: {settings: {lineLength: 100}}
timings:
  open_settle: 3.0
```
"""

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "LSPBRIDGE_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.config/lspbridge/config.yaml")


class LSPTimings(BaseModel):
    """Timeouts and settle delays, in seconds."""

    request_timeout: float = Field(default=30.0, gt=0, description="Wait for a response")
    initialize_settle: float = Field(
        default=0.5, ge=0, description="Pause after the initialize handshake"
    )
    open_settle: float = Field(default=2.0, ge=0, description="Pause after didOpen")
    diagnostics_settle: float = Field(
        default=1.0, ge=0, description="Extra pause before asking for diagnostics"
    )
    shutdown_timeout: float = Field(
        default=5.0, gt=0, description="Wait for the shutdown response"
    )


class UserServerEntry(BaseModel):
    """One ``lsp`` entry in the user configuration."""

    disabled: bool = False
    command: Optional[List[str]] = None
    extensions: Optional[List[str]] = None
    env: Optional[Dict[str, str]] = None
    initialization: Optional[Dict[str, Any]] = None


class UserConfig(BaseModel):
    """Parsed user configuration file."""

    lsp: Dict[str, UserServerEntry] = Field(default_factory=dict)
    timings: LSPTimings = Field(default_factory=LSPTimings)


@dataclass(frozen=True)
class ServerDescriptor:
    """Configuration for a language server."""

    id: str  # Server identifier
    command: Tuple[str, ...]  # Command to start the server
    extensions: Tuple[str, ...]  # File extensions this server handles
    env: Dict[str, str] = field(default_factory=dict)  # Environment overrides
    initialization: Dict[str, Any] = field(default_factory=dict)  # Merged into initialize
    disabled: bool = False
    install_command: Optional[str] = None  # How to install the server

    def handles(self, extension: str) -> bool:
        return extension in self.extensions


@dataclass(frozen=True)
class ResolvedServer:
    """A server descriptor whose executable was found on PATH."""

    descriptor: ServerDescriptor
    executable: str

    @property
    def id(self) -> str:
        return self.descriptor.id

    @property
    def command(self) -> List[str]:
        return list(self.descriptor.command)

    @property
    def extensions(self) -> Tuple[str, ...]:
        return self.descriptor.extensions

    @property
    def env(self) -> Dict[str, str]:
        return self.descriptor.env

    @property
    def initialization(self) -> Dict[str, Any]:
        return self.descriptor.initialization


@dataclass
class ServerStatus:
    """Listing row for a known server."""

    id: str
    installed: bool
    extensions: List[str]
    disabled: bool


def _builtin(
    server_id: str,
    command: List[str],
    extensions: List[str],
    install_command: Optional[str] = None,
) -> ServerDescriptor:
    return ServerDescriptor(
        id=server_id,
        command=tuple(command),
        extensions=tuple(extensions),
        install_command=install_command,
    )


# Pre-configured language servers, tried in this order
LANGUAGE_SERVERS: Dict[str, ServerDescriptor] = {
    "pyright": _builtin(
        "pyright",
        ["pyright-langserver", "--stdio"],
        [".py", ".pyi"],
        "pip install pyright",
    ),
    "basedpyright": _builtin(
        "basedpyright",
        ["basedpyright-langserver", "--stdio"],
        [".py", ".pyi"],
        "pip install basedpyright",
    ),
    "pylsp": _builtin(
        "pylsp",
        ["pylsp"],
        [".py", ".pyi"],
        "pip install python-lsp-server",
    ),
    "typescript": _builtin(
        "typescript",
        ["typescript-language-server", "--stdio"],
        [".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs", ".mts", ".cts"],
        "npm install -g typescript-language-server typescript",
    ),
    "deno": _builtin(
        "deno",
        ["deno", "lsp"],
        [".ts", ".tsx", ".js", ".jsx", ".mjs"],
        "https://deno.land/#installation",
    ),
    "vue": _builtin(
        "vue",
        ["vue-language-server", "--stdio"],
        [".vue"],
        "npm install -g @vue/language-server",
    ),
    "svelte": _builtin(
        "svelte",
        ["svelteserver", "--stdio"],
        [".svelte"],
        "npm install -g svelte-language-server",
    ),
    "rust-analyzer": _builtin(
        "rust-analyzer",
        ["rust-analyzer"],
        [".rs"],
        "rustup component add rust-analyzer",
    ),
    "gopls": _builtin(
        "gopls",
        ["gopls"],
        [".go"],
        "go install golang.org/x/tools/gopls@latest",
    ),
    "jdtls": _builtin("jdtls", ["jdtls"], [".java"], "brew install jdtls"),
    "clangd": _builtin(
        "clangd",
        ["clangd", "--background-index", "--clang-tidy"],
        [".c", ".h", ".cpp", ".hpp", ".cc", ".cxx", ".hh", ".hxx"],
        "brew install llvm",
    ),
    "ruby-lsp": _builtin("ruby-lsp", ["ruby-lsp"], [".rb", ".rake"], "gem install ruby-lsp"),
    "elixir-ls": _builtin(
        "elixir-ls",
        ["elixir-ls"],
        [".ex", ".exs"],
        "brew install elixir-ls",
    ),
    "zls": _builtin("zls", ["zls"], [".zig", ".zon"], "brew install zls"),
    "lua-language-server": _builtin(
        "lua-language-server",
        ["lua-language-server"],
        [".lua"],
        "brew install lua-language-server",
    ),
    "yaml-language-server": _builtin(
        "yaml-language-server",
        ["yaml-language-server", "--stdio"],
        [".yaml", ".yml"],
        "npm install -g yaml-language-server",
    ),
    "vscode-json": _builtin(
        "vscode-json",
        ["vscode-json-language-server", "--stdio"],
        [".json", ".jsonc"],
        "npm install -g vscode-langservers-extracted",
    ),
    "vscode-html": _builtin(
        "vscode-html",
        ["vscode-html-language-server", "--stdio"],
        [".html", ".htm"],
        "npm install -g vscode-langservers-extracted",
    ),
    "vscode-css": _builtin(
        "vscode-css",
        ["vscode-css-language-server", "--stdio"],
        [".css", ".scss", ".less"],
        "npm install -g vscode-langservers-extracted",
    ),
    "bash-language-server": _builtin(
        "bash-language-server",
        ["bash-language-server", "start"],
        [".sh", ".bash", ".zsh"],
        "npm install -g bash-language-server",
    ),
    "dockerfile": _builtin(
        "dockerfile",
        ["docker-langserver", "--stdio"],
        [".dockerfile", "Dockerfile"],
        "npm install -g dockerfile-language-server-nodejs",
    ),
    "marksman": _builtin(
        "marksman",
        ["marksman", "server"],
        [".md", ".markdown"],
        "brew install marksman",
    ),
    "taplo": _builtin(
        "taplo",
        ["taplo", "lsp", "stdio"],
        [".toml"],
        "cargo install taplo-cli",
    ),
}


# File extension (or bare file name) to LSP language identifier
EXTENSION_TO_LANGUAGE: Dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "typescriptreact",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascriptreact",
    ".vue": "vue",
    ".svelte": "svelte",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".hh": "cpp",
    ".hxx": "cpp",
    ".cs": "csharp",
    ".rb": "ruby",
    ".rake": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".scala": "scala",
    ".ex": "elixir",
    ".exs": "elixir",
    ".zig": "zig",
    ".zon": "zig",
    ".lua": "lua",
    ".sh": "shellscript",
    ".bash": "shellscript",
    ".zsh": "shellscript",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
    ".jsonc": "jsonc",
    ".toml": "toml",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".scss": "scss",
    ".less": "less",
    ".md": "markdown",
    ".markdown": "markdown",
    ".sql": "sql",
    ".dockerfile": "dockerfile",
    "Dockerfile": "dockerfile",
    "Makefile": "makefile",
}


def file_extension(file_path: str) -> str:
    """Return the lookup key for a file: its suffix, or its name if it has none."""
    path = Path(file_path)
    return path.suffix or path.name


def get_language_id(file_path: str) -> str:
    """Get the LSP language ID for a file, ``plaintext`` if unknown."""
    key = file_extension(file_path)
    return EXTENSION_TO_LANGUAGE.get(key) or EXTENSION_TO_LANGUAGE.get(key.lower(), "plaintext")


def find_executable(command: List[str]) -> Optional[str]:
    """Locate the first token of a command on PATH.

    Not cached: PATH and the filesystem are consulted on every call.
    """
    if not command:
        return None
    return shutil.which(command[0])


def is_server_installed(command: List[str]) -> bool:
    return find_executable(command) is not None


# Process-wide configuration cache, populated once by load_user_config()
_user_config: Optional[UserConfig] = None


def get_config_path() -> Path:
    """Location of the user configuration file."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def read_user_config(path: Path) -> UserConfig:
    """Read and validate a configuration file.

    Missing, unreadable or invalid files yield an empty configuration.
    """
    if not path.exists():
        return UserConfig()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load LSP config from {path}: {e}")
        return UserConfig()

    if data is None:
        return UserConfig()
    if not isinstance(data, dict):
        logger.warning(f"Ignoring LSP config {path}: expected a mapping")
        return UserConfig()

    try:
        return UserConfig.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Invalid LSP config {path}: {e}")
        return UserConfig()


def load_user_config() -> UserConfig:
    """Get the user configuration, reading it on first use only."""
    global _user_config
    if _user_config is None:
        _user_config = read_user_config(get_config_path())
    return _user_config


def reload_user_config() -> UserConfig:
    """Discard the cached configuration and read it again."""
    global _user_config
    _user_config = None
    reset_server_registry()
    return load_user_config()


class ServerRegistry:
    """Resolves which installed language server handles a file.

    User-defined servers are tried before built-ins. A built-in is skipped when
    the user disabled its id or defined a server with the same id.
    """

    def __init__(
        self,
        user_config: Optional[UserConfig] = None,
        builtins: Optional[Dict[str, ServerDescriptor]] = None,
    ):
        """Initialize the registry.

        Args:
            user_config: Parsed user configuration (loaded lazily if omitted)
            builtins: Built-in server table (defaults to LANGUAGE_SERVERS)
        """
        self._user_config = user_config
        self._builtins = builtins if builtins is not None else LANGUAGE_SERVERS

    @property
    def config(self) -> UserConfig:
        if self._user_config is None:
            self._user_config = load_user_config()
        return self._user_config

    @property
    def timings(self) -> LSPTimings:
        return self.config.timings

    def disabled_ids(self) -> List[str]:
        return [server_id for server_id, entry in self.config.lsp.items() if entry.disabled]

    def user_servers(self) -> Dict[str, ServerDescriptor]:
        """User-defined servers in configuration order.

        An entry naming a built-in may omit ``command`` or ``extensions`` and
        inherit them from the built-in.
        """
        servers: Dict[str, ServerDescriptor] = {}
        for server_id, entry in self.config.lsp.items():
            if entry.disabled:
                continue

            builtin = self._builtins.get(server_id)
            command = entry.command or (list(builtin.command) if builtin else None)
            extensions = entry.extensions or (list(builtin.extensions) if builtin else None)
            if not command or not extensions:
                if builtin is None:
                    logger.warning(
                        f"Skipping LSP server '{server_id}': command and extensions are required"
                    )
                continue

            servers[server_id] = ServerDescriptor(
                id=server_id,
                command=tuple(command),
                extensions=tuple(extensions),
                env=dict(entry.env or {}),
                initialization=dict(entry.initialization or {}),
                install_command=builtin.install_command if builtin else None,
            )
        return servers

    def _candidates(self) -> List[ServerDescriptor]:
        user = self.user_servers()
        disabled = set(self.disabled_ids())
        candidates = list(user.values())
        for server_id, descriptor in self._builtins.items():
            if server_id in disabled or server_id in user:
                continue
            candidates.append(descriptor)
        return candidates

    def resolve_for_extension(self, extension: str) -> Optional[ResolvedServer]:
        """Find the first installed server handling an extension.

        Args:
            extension: File extension including the dot (or a bare file name)

        Returns:
            ResolvedServer, or None if no installed server matches
        """
        for descriptor in self._candidates():
            if not descriptor.handles(extension):
                continue
            executable = find_executable(list(descriptor.command))
            if executable:
                return ResolvedServer(descriptor=descriptor, executable=executable)
            logger.debug(f"LSP server {descriptor.id} handles {extension} but is not installed")
        return None

    def resolve_for_file(self, file_path: str) -> Optional[ResolvedServer]:
        """Find the server for a file by extension, then lower-cased extension."""
        key = file_extension(file_path)
        server = self.resolve_for_extension(key)
        if server is None and key.lower() != key:
            server = self.resolve_for_extension(key.lower())
        return server

    def list_all(self) -> List[ServerStatus]:
        """List user servers, disabled ids, then the remaining built-ins."""
        result: List[ServerStatus] = []
        seen = set()

        for descriptor in self.user_servers().values():
            result.append(
                ServerStatus(
                    id=descriptor.id,
                    installed=is_server_installed(list(descriptor.command)),
                    extensions=list(descriptor.extensions),
                    disabled=False,
                )
            )
            seen.add(descriptor.id)

        for server_id in self.disabled_ids():
            if server_id in seen:
                continue
            builtin = self._builtins.get(server_id)
            result.append(
                ServerStatus(
                    id=server_id,
                    installed=is_server_installed(list(builtin.command)) if builtin else False,
                    extensions=list(builtin.extensions) if builtin else [],
                    disabled=True,
                )
            )
            seen.add(server_id)

        for server_id, descriptor in self._builtins.items():
            if server_id in seen:
                continue
            result.append(
                ServerStatus(
                    id=server_id,
                    installed=is_server_installed(list(descriptor.command)),
                    extensions=list(descriptor.extensions),
                    disabled=False,
                )
            )

        return result


# Global registry singleton
_server_registry: Optional[ServerRegistry] = None


def get_server_registry() -> ServerRegistry:
    """Get the process-wide server registry."""
    global _server_registry
    if _server_registry is None:
        _server_registry = ServerRegistry()
    return _server_registry


def set_server_registry(registry: ServerRegistry) -> None:
    """Replace the process-wide server registry."""
    global _server_registry
    _server_registry = registry


def reset_server_registry() -> None:
    """Reset the process-wide server registry (for testing)."""
    global _server_registry
    _server_registry = None
