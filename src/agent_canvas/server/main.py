from __future__ import annotations

import argparse

import uvicorn

from agent_canvas.utils.logging import setup_logging

from .app import create_app
from .config import get_settings


def main() -> None:
    settings = get_settings()

    ap = argparse.ArgumentParser(description="Run the agent-canvas command relay.")
    ap.add_argument("--host", default=settings.host, help="Bind address")
    ap.add_argument("--port", type=int, default=settings.port, help="Bind port")
    ap.add_argument("--demo-agent", action="store_true", help="Publish sample agent activity")
    ap.add_argument("--verbose", "-v", action="store_true", help="DEBUG logging")
    args = ap.parse_args()

    setup_logging(verbose=args.verbose, log_file=settings.log_file, level=settings.log_level)

    if args.demo_agent:
        settings = settings.model_copy(update={"demo_agent_enabled": True})

    uvicorn.run(create_app(settings), host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
