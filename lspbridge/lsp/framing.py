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

"""Content-Length framing for JSON-RPC messages.

Outgoing frames always use ``\\r\\n\\r\\n`` after the header. Incoming frames
may end their header with either ``\\r\\n\\r\\n`` or a bare ``\\n\\n``, since
some servers do not follow the CRLF convention.
"""

import json
import logging
import re
from typing import Any, Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

CONTENT_LENGTH = b"Content-Length:"
CRLF_CRLF = b"\r\n\r\n"
LF_LF = b"\n\n"

_LENGTH_PATTERN = re.compile(rb"Content-Length:\s*(\d+)", re.IGNORECASE)


def encode_message(message: Dict[str, Any]) -> bytes:
    """Serialize a message into a framed byte string."""
    content = json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8")
    header = f"Content-Length: {len(content)}\r\n\r\n".encode("ascii")
    return header + content


class MessageBuffer:
    """Accumulates bytes from a server and yields complete messages.

    The buffer is only ever consumed from the front: once a frame is
    extracted, its bytes are discarded.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, data: bytes) -> None:
        self._buffer.extend(data)

    def drain(self) -> Iterator[Dict[str, Any]]:
        """Yield every complete message currently in the buffer."""
        while True:
            found, message = self._next_frame()
            if not found:
                return
            if message is not None:
                yield message

    def _next_frame(self) -> Tuple[bool, Optional[Dict[str, Any]]]:
        """Extract one frame.

        Returns:
            (False, None) when more bytes are needed, otherwise (True, message)
            where message is None if the frame was malformed and dropped.
        """
        header_start = self._buffer.find(CONTENT_LENGTH)
        if header_start == -1:
            return False, None
        if header_start > 0:
            del self._buffer[:header_start]

        header_end, separator_length = self._find_header_end()
        if header_end == -1:
            return False, None

        content_start = header_end + separator_length
        match = _LENGTH_PATTERN.match(bytes(self._buffer[:header_end]))
        if not match:
            logger.debug("Dropping LSP frame with unparsable Content-Length header")
            del self._buffer[:content_start]
            return True, None

        content_end = content_start + int(match.group(1))
        if len(self._buffer) < content_end:
            return False, None

        content = bytes(self._buffer[content_start:content_end])
        del self._buffer[:content_end]

        try:
            message = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.debug(f"Dropping malformed LSP message: {e}")
            return True, None

        if not isinstance(message, dict):
            logger.debug(f"Dropping non-object LSP message: {content[:100]!r}")
            return True, None
        return True, message

    def _find_header_end(self) -> Tuple[int, int]:
        """Locate the header terminator of the frame at the buffer front.

        CRLFCRLF is preferred; a bare LFLF is accepted when it comes first,
        so a later frame's CRLFCRLF is never mistaken for this one's.
        """
        crlf = self._buffer.find(CRLF_CRLF)
        # Only the header region can hold an earlier terminator
        lf = self._buffer.find(LF_LF, 0, crlf if crlf != -1 else len(self._buffer))
        if crlf != -1 and (lf == -1 or crlf < lf):
            return crlf, len(CRLF_CRLF)
        if lf != -1:
            return lf, len(LF_LF)
        return -1, 0
