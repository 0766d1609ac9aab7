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

"""LSP protocol types.

Only the shapes returned by the operations this client issues are modelled:
hover, locations, symbols and diagnostics. Each type parses the camelCase
JSON the server sends through ``from_dict``.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, Union


class DiagnosticSeverity(IntEnum):
    """Diagnostic severity levels."""

    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


class SymbolKind(IntEnum):
    """Symbol kinds."""

    FILE = 1
    MODULE = 2
    NAMESPACE = 3
    PACKAGE = 4
    CLASS = 5
    METHOD = 6
    PROPERTY = 7
    FIELD = 8
    CONSTRUCTOR = 9
    ENUM = 10
    INTERFACE = 11
    FUNCTION = 12
    VARIABLE = 13
    CONSTANT = 14
    STRING = 15
    NUMBER = 16
    BOOLEAN = 17
    ARRAY = 18
    OBJECT = 19
    KEY = 20
    NULL = 21
    ENUM_MEMBER = 22
    STRUCT = 23
    EVENT = 24
    OPERATOR = 25
    TYPE_PARAMETER = 26


@dataclass
class Position:
    """Zero-based line and character offset."""

    line: int
    character: int

    def to_dict(self) -> Dict[str, int]:
        return {"line": self.line, "character": self.character}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(line=int(data.get("line", 0)), character=int(data.get("character", 0)))


@dataclass
class Range:
    """A start/end pair of positions."""

    start: Position
    end: Position

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start.to_dict(), "end": self.end.to_dict()}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Range":
        data = data or {}
        return cls(
            start=Position.from_dict(data.get("start") or {}),
            end=Position.from_dict(data.get("end") or {}),
        )


@dataclass
class Location:
    """A range inside a document."""

    uri: str
    range: Range

    def to_dict(self) -> Dict[str, Any]:
        return {"uri": self.uri, "range": self.range.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Location":
        return cls(uri=data.get("uri", ""), range=Range.from_dict(data.get("range")))


@dataclass
class LocationLink:
    """A definition link carrying target ranges instead of a flat range."""

    target_uri: str
    target_range: Range
    target_selection_range: Range
    origin_selection_range: Optional[Range] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "targetUri": self.target_uri,
            "targetRange": self.target_range.to_dict(),
            "targetSelectionRange": self.target_selection_range.to_dict(),
        }
        if self.origin_selection_range is not None:
            data["originSelectionRange"] = self.origin_selection_range.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocationLink":
        origin = data.get("originSelectionRange")
        target_range = Range.from_dict(data.get("targetRange"))
        selection = data.get("targetSelectionRange")
        return cls(
            target_uri=data.get("targetUri", ""),
            target_range=target_range,
            target_selection_range=Range.from_dict(selection) if selection else target_range,
            origin_selection_range=Range.from_dict(origin) if origin else None,
        )


AnyLocation = Union[Location, LocationLink]


@dataclass
class Diagnostic:
    """A diagnostic such as a compiler error or lint warning."""

    range: Range
    message: str
    severity: Optional[int] = None
    code: Optional[Union[str, int]] = None
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"range": self.range.to_dict(), "message": self.message}
        if self.severity is not None:
            data["severity"] = self.severity
        if self.code is not None:
            data["code"] = self.code
        if self.source is not None:
            data["source"] = self.source
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Diagnostic":
        return cls(
            range=Range.from_dict(data.get("range")),
            message=data.get("message", ""),
            severity=data.get("severity"),
            code=data.get("code"),
            source=data.get("source"),
        )


@dataclass
class DocumentSymbol:
    """A node in the hierarchical symbol tree of one document."""

    name: str
    kind: int
    range: Range
    selection_range: Range
    detail: Optional[str] = None
    children: List["DocumentSymbol"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentSymbol":
        symbol_range = Range.from_dict(data.get("range"))
        selection = data.get("selectionRange")
        return cls(
            name=data.get("name", ""),
            kind=int(data.get("kind", 0)),
            range=symbol_range,
            selection_range=Range.from_dict(selection) if selection else symbol_range,
            detail=data.get("detail"),
            children=[cls.from_dict(child) for child in data.get("children") or []],
        )


@dataclass
class SymbolInformation:
    """A flat symbol entry with its location and container."""

    name: str
    kind: int
    location: Location
    container_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SymbolInformation":
        location = data.get("location") or {}
        return cls(
            name=data.get("name", ""),
            kind=int(data.get("kind", 0)),
            # Workspace symbols may omit the range (WorkspaceSymbol with uri only)
            location=Location.from_dict(location),
            container_name=data.get("containerName"),
        )


@dataclass
class Hover:
    """Hover result; ``contents`` keeps the raw MarkupContent/MarkedString shape."""

    contents: Any
    range: Optional[Range] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Hover":
        hover_range = data.get("range")
        return cls(
            contents=data.get("contents"),
            range=Range.from_dict(hover_range) if hover_range else None,
        )
