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

"""Workspace root detection and file URI helpers."""

import os
from pathlib import Path
from typing import Tuple
from urllib.parse import quote, unquote

# Files or directories marking a project root
WORKSPACE_MARKERS: Tuple[str, ...] = (
    ".git",
    "package.json",
    "pyproject.toml",
    "Cargo.toml",
    "go.mod",
    "pom.xml",
    "build.gradle",
)


def find_workspace_root(file_path: str) -> str:
    """Find the workspace root for a file.

    Walks up from the file's directory and returns the first directory that
    contains a project marker. Falls back to the file's parent directory.

    Args:
        file_path: Path to a file or directory

    Returns:
        Absolute path of the workspace root
    """
    resolved = Path(os.path.abspath(file_path))
    directory = resolved if resolved.is_dir() else resolved.parent

    while directory != directory.parent:
        for marker in WORKSPACE_MARKERS:
            if (directory / marker).exists():
                return str(directory)
        directory = directory.parent

    return str(resolved.parent)


def path_to_uri(path: str) -> str:
    """Convert a file path to a file:// URI."""
    abs_path = os.path.abspath(path)
    return f"file://{quote(abs_path)}"


def uri_to_path(uri: str) -> str:
    """Convert a file:// URI to a path; other strings are returned unchanged."""
    if uri.startswith("file://"):
        return unquote(uri[7:])
    return uri
