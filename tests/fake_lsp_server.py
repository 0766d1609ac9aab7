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

"""Scripted language server used by the end-to-end tests.

Speaks LSP over stdio and answers with canned results. Frames alternate
between CRLFCRLF and bare LFLF header terminators, and some noise is written
before the first frame. Before answering ``initialize`` it asks the client
for configuration and a progress token.

Environment:
    FAKE_LSP_NO_PULL: answer textDocument/diagnostic with MethodNotFound
"""

import json
import os
import sys

stdin = sys.stdin.buffer
stdout = sys.stdout.buffer

state = {"written": 0, "opens": 0, "notifications": []}


def write(message):
    body = json.dumps(message).encode("utf-8")
    terminator = b"\r\n\r\n" if state["written"] % 2 == 0 else b"\n\n"
    state["written"] += 1
    stdout.write(b"Content-Length: " + str(len(body)).encode("ascii") + terminator + body)
    stdout.flush()


def read():
    length = None
    while True:
        line = stdin.readline()
        if not line:
            return None
        line = line.strip()
        if not line:
            break
        name, _, value = line.decode("ascii").partition(":")
        if name.lower() == "content-length":
            length = int(value.strip())
    if length is None:
        return None
    return json.loads(stdin.read(length).decode("utf-8"))


def respond(request_id, result):
    write({"jsonrpc": "2.0", "id": request_id, "result": result})


def respond_error(request_id, code, message):
    write({"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}})


def rng(line, start, end=None):
    return {
        "start": {"line": line, "character": start},
        "end": {"line": line, "character": start if end is None else end},
    }


def ask_client(request_id, method, params):
    """Send a server request and wait for the client's reply to it."""
    write({"jsonrpc": "2.0", "id": request_id, "method": method, "params": params})
    while True:
        message = read()
        if message is None:
            sys.exit(1)
        if message.get("id") == request_id and "method" not in message:
            return message.get("result")


def handle_initialize(request_id, params):
    # Unknown server requests get no answer; the client must carry on
    write({"jsonrpc": "2.0", "id": "unknown-1", "method": "custom/unknownRequest"})
    configuration = ask_client(
        "cfg-1",
        "workspace/configuration",
        {"items": [{"section": "python"}, {"section": "python.analysis"}]},
    )
    progress = ask_client("progress-1", "window/workDoneProgress/create", {"token": "t"})
    respond(
        request_id,
        {
            "capabilities": {
                "hoverProvider": True,
                "definitionProvider": True,
                "referencesProvider": True,
                "documentSymbolProvider": True,
                "workspaceSymbolProvider": True,
                "experimental": {
                    "configurationReply": configuration,
                    "progressReply": progress,
                    "rootUri": params.get("rootUri"),
                    "rootPath": params.get("rootPath"),
                    "initializationOptions": params.get("initializationOptions"),
                },
            },
            "serverInfo": {"name": "fake-lsp"},
        },
    )


def handle_request(request_id, method, params):
    uri = (params.get("textDocument") or {}).get("uri", "")
    position = params.get("position") or {}

    if method == "initialize":
        handle_initialize(request_id, params)
    elif method == "shutdown":
        respond(request_id, None)
    elif method == "textDocument/hover":
        if position == {"line": 9, "character": 4}:
            respond(request_id, {"contents": {"kind": "markdown", "value": "def foo(): ..."}})
        else:
            line, character = position.get("line"), position.get("character")
            respond(request_id, {"contents": f"position {line}:{character}"})
    elif method == "textDocument/definition":
        respond(
            request_id,
            [
                {
                    "targetUri": uri,
                    "targetRange": rng(1, 0, 20),
                    "targetSelectionRange": rng(1, 4, 7),
                }
            ],
        )
    elif method == "textDocument/references":
        locations = [
            {"uri": uri, "range": rng(1, 4, 7)},
            {"uri": uri, "range": rng(9, 4, 7)},
            {"uri": uri, "range": rng(12, 8, 11)},
        ]
        if not params.get("context", {}).get("includeDeclaration", True):
            locations = locations[1:]
        respond(request_id, locations)
    elif method == "textDocument/documentSymbol":
        respond(
            request_id,
            [
                {
                    "name": "Foo",
                    "kind": 5,
                    "range": rng(0, 0, 30),
                    "selectionRange": rng(0, 6, 9),
                    "children": [
                        {
                            "name": "bar",
                            "kind": 6,
                            "range": rng(1, 4, 20),
                            "selectionRange": rng(1, 8, 11),
                        }
                    ],
                },
                {"name": "foo", "kind": 12, "range": rng(9, 0, 20), "selectionRange": rng(9, 4, 7)},
            ],
        )
    elif method == "workspace/symbol":
        symbols = [
            {
                "name": "foo",
                "kind": 12,
                "location": {"uri": "file:///repo/main.py", "range": rng(9, 4, 7)},
            },
            {
                "name": "foo_helper",
                "kind": 12,
                "containerName": "utils",
                "location": {"uri": "file:///repo/utils.py", "range": rng(2, 4, 14)},
            },
            {
                "name": "Bar",
                "kind": 5,
                "location": {"uri": "file:///repo/bar.py", "range": rng(0, 6, 9)},
            },
        ]
        query = params.get("query", "").lower()
        respond(request_id, [s for s in symbols if query in s["name"].lower()])
    elif method == "textDocument/diagnostic":
        if os.environ.get("FAKE_LSP_NO_PULL"):
            respond_error(request_id, -32601, "Unhandled method textDocument/diagnostic")
        else:
            respond(
                request_id,
                {
                    "kind": "full",
                    "items": [
                        {
                            "range": rng(2, 4, 9),
                            "severity": 1,
                            "source": "fake",
                            "code": "E1",
                            "message": "undefined name 'x'",
                        },
                        {"range": rng(5, 0, 3), "severity": 2, "message": "unused import"},
                    ],
                },
            )
    elif method == "test/openCount":
        respond(request_id, state["opens"])
    elif method == "test/notifications":
        respond(request_id, state["notifications"])
    elif method == "test/environment":
        respond(
            request_id,
            {"cwd": os.getcwd(), "marker": os.environ.get("FAKE_LSP_MARKER")},
        )
    elif method == "test/error":
        respond_error(request_id, -32000, "something broke")
    elif method == "test/double":
        respond(request_id, "first")
        respond(request_id, "second")
    elif method == "test/malformed":
        stdout.write(b"Content-Length: 9\r\n\r\n{not json")
        stdout.flush()
        respond(request_id, "after-malformed")
    elif method == "test/badMessages":
        write(
            {
                "jsonrpc": "2.0",
                "method": "textDocument/publishDiagnostics",
                "params": {"uri": None, "diagnostics": []},
            }
        )
        reply = ask_client("cfg-bad", "workspace/configuration", {"items": 3})
        respond(request_id, {"configurationReply": reply})
    elif method == "test/silent":
        pass
    else:
        respond_error(request_id, -32601, f"Unhandled method {method}")


def handle_notification(method, params):
    state["notifications"].append(method)
    if method == "exit":
        sys.exit(0)
    if method == "textDocument/didOpen":
        state["opens"] += 1
        document = params["textDocument"]
        write(
            {
                "jsonrpc": "2.0",
                "method": "textDocument/publishDiagnostics",
                "params": {
                    "uri": document["uri"],
                    "diagnostics": [
                        {
                            "range": rng(0, 0, 1),
                            "severity": 3,
                            "message": f"opened as {document['languageId']}",
                        }
                    ],
                },
            }
        )
        write(
            {
                "jsonrpc": "2.0",
                "method": "window/logMessage",
                "params": {"type": 3, "message": "indexed"},
            }
        )


def main():
    stdout.write(b"fake-lsp starting\n")
    stdout.flush()
    sys.stderr.write("fake-lsp ready\n")
    sys.stderr.flush()

    while True:
        message = read()
        if message is None:
            return
        method = message.get("method")
        if method is None:
            continue
        if "id" in message:
            handle_request(message["id"], method, message.get("params") or {})
        else:
            handle_notification(method, message.get("params") or {})


if __name__ == "__main__":
    main()
