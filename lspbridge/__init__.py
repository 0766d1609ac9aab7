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

"""lspbridge: one-shot language server queries for code tools."""

from lspbridge.tools import (
    lsp_diagnostics,
    lsp_document_symbols,
    lsp_find_references,
    lsp_goto_definition,
    lsp_hover,
    lsp_servers,
    lsp_workspace_symbols,
)

__version__ = "0.1.0"

__all__ = [
    "lsp_diagnostics",
    "lsp_document_symbols",
    "lsp_find_references",
    "lsp_goto_definition",
    "lsp_hover",
    "lsp_servers",
    "lsp_workspace_symbols",
]
