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

"""Exceptions raised by the LSP client."""

from typing import Any, Optional


class LSPError(Exception):
    """Base exception for LSP errors."""


class ServerNotFoundError(LSPError):
    """No installed language server handles a file extension."""

    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(f"no server for extension {extension}")


class LSPTransportError(LSPError):
    """The server process could not be spawned or its pipes failed."""


class LSPTimeoutError(LSPError, TimeoutError):
    """A request received no response in time."""

    def __init__(self, method: str, timeout: float):
        self.method = method
        self.timeout = timeout
        super().__init__(f"LSP request {method} timed out after {timeout:g}s")


class LSPResponseError(LSPError):
    """The server answered a request with a JSON-RPC error object."""

    def __init__(self, code: Optional[int], message: str, data: Any = None):
        self.code = code
        self.data = data
        super().__init__(message)

    @classmethod
    def from_dict(cls, error: Any) -> "LSPResponseError":
        if not isinstance(error, dict):
            return cls(None, str(error))
        return cls(
            error.get("code"),
            error.get("message", "Unknown error"),
            error.get("data"),
        )


class LSPStateError(LSPError):
    """The client is not in a lifecycle state that allows the call."""
