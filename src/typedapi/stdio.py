"""JSON-lines server over stdio.

One request object per line, one reply per line:

    -> {"id": 1, "endpoint": "echo", "payload": {"msg": "hi"}}
    <- {"id": 1, "result": {"reply": "hi"}}
    <- {"id": 2, "error": {"code": -32601, "kind": "unknown_endpoint", ...}}

Local-only; intended for a parent process that spawns the server.
"""

from __future__ import annotations

import asyncio
import json
import sys
from typing import IO, Any

from .dispatcher import Dispatcher
from .errors import MalformedRequestError
from .server import dispatch_envelope, error_body

_JSON = dict[str, Any]


def _write(stream: IO[str], obj: Any) -> None:
    stream.write(json.dumps(obj, ensure_ascii=False) + "\n")
    stream.flush()


async def serve_lines(dispatcher: Dispatcher, stdin: IO[str], stdout: IO[str]) -> None:
    """Serve requests from ``stdin`` until EOF."""
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, stdin.readline)
        if not line:
            return

        line = line.strip()
        if not line:
            continue

        try:
            req = json.loads(line)
        except json.JSONDecodeError:
            continue

        if not isinstance(req, dict):
            _write(stdout, {"id": None, **error_body(MalformedRequestError("request must be an object"))})
            continue

        req_id = req.get("id")
        status, body = await dispatch_envelope(dispatcher, req)
        reply: _JSON = {"id": req_id}
        if status == 200:
            reply["result"] = body
        else:
            reply.update(body)
        _write(stdout, reply)


def run_stdio_server(dispatcher: Dispatcher, stdin: IO[str] | None = None, stdout: IO[str] | None = None) -> None:
    """Run the JSON-lines server over stdio (blocking)."""
    asyncio.run(serve_lines(dispatcher, stdin or sys.stdin, stdout or sys.stdout))
