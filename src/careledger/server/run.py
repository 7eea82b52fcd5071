"""Console entry point serving the careledger API with uvicorn.

Environment:

* ``CARELEDGER_SERVER_HOST`` / ``CARELEDGER_SERVER_PORT``: bind address
  (default ``127.0.0.1:8000``).
* ``CARELEDGER_SERVER_RELOAD=1``: auto-reload on code changes.
* ``CARELEDGER_SERVER_DURATION``: stop after this many seconds (smoke runs).
"""

from __future__ import annotations

import asyncio
import os
from typing import Mapping, NamedTuple, Optional

import uvicorn

APP_FACTORY = "careledger.server.app:create_app"


class ServerOptions(NamedTuple):
    host: str
    port: int
    reload: bool
    duration: Optional[float]


def _positive_float(name: str, raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError as exc:
        raise SystemExit(f"{name} must be a number of seconds, got {raw!r}") from exc
    if value <= 0:
        raise SystemExit(f"{name} must be greater than 0.")
    return value


def read_options(environ: Mapping[str, str] = os.environ) -> ServerOptions:
    options = ServerOptions(
        host=environ.get("CARELEDGER_SERVER_HOST", "127.0.0.1"),
        port=int(environ.get("CARELEDGER_SERVER_PORT", "8000")),
        reload=environ.get("CARELEDGER_SERVER_RELOAD") == "1",
        duration=_positive_float(
            "CARELEDGER_SERVER_DURATION", environ.get("CARELEDGER_SERVER_DURATION")
        ),
    )
    if options.reload and options.duration is not None:
        raise SystemExit("CARELEDGER_SERVER_DURATION cannot be combined with reload.")
    return options


async def _serve_for(server: uvicorn.Server, seconds: float) -> None:
    async def _stop_later() -> None:
        await asyncio.sleep(seconds)
        server.should_exit = True

    stopper = asyncio.create_task(_stop_later())
    try:
        await server.serve()
    finally:
        stopper.cancel()


def main() -> None:
    options = read_options()
    if options.reload:
        uvicorn.run(APP_FACTORY, factory=True, host=options.host, port=options.port, reload=True)
        return

    server = uvicorn.Server(
        uvicorn.Config(APP_FACTORY, factory=True, host=options.host, port=options.port)
    )
    if options.duration is None:
        server.run()
    else:
        asyncio.run(_serve_for(server, options.duration))


if __name__ == "__main__":
    main()
