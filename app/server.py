"""Command-line entry point that serves the webhook app with uvicorn.

uvicorn installs the SIGTERM and SIGINT handlers: it stops accepting
connections, lets in-flight requests finish, runs the lifespan shutdown and
exits with status 0.
"""

from __future__ import annotations

import argparse

import uvicorn

from app.config import settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="GitHub push webhook deploy server")
    p.add_argument("--host", default=settings.host, help="Bind host")
    p.add_argument("--port", type=int, default=settings.webhook_port, help="Bind port")
    p.add_argument("--reload", action="store_true", help="Enable auto-reload (dev only)")
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
