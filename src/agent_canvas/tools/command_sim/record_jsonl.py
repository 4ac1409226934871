from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from pathlib import Path

import websockets

from agent_canvas.protocol.messages import MalformedCommandError, parse_command
from agent_canvas.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def record_line(raw: str | bytes) -> str | None:
    """JSONL line for one relay message, or None if it is not a valid command."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        parse_command(raw)
    except MalformedCommandError as e:
        logger.warning("Skipping malformed message: %s", e)
        return None
    return json.dumps({"ts": _now_ms(), "msg": json.loads(raw)}, ensure_ascii=False)


async def record(ws_url: str, out_path: Path, *, echo: bool) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("a", encoding="utf-8") as f:
        async with websockets.connect(ws_url, max_size=2**22) as ws:
            async for raw in ws:
                line = record_line(raw)
                if line is None:
                    continue
                if echo:
                    msg = json.loads(line)["msg"]
                    print(f"[record] {msg.get('commandType')} {msg.get('elementId')}")
                f.write(line + "\n")
                f.flush()


def main() -> None:
    ap = argparse.ArgumentParser(description="Record relay commands to a JSONL file.")
    ap.add_argument("--ws", required=True, help="WebSocket URL, e.g. ws://127.0.0.1:8080/canvas")
    ap.add_argument("--out", required=True, help="Output JSONL path")
    ap.add_argument("--print", action="store_true", help="Print received commands to stdout")
    args = ap.parse_args()

    setup_logging()
    asyncio.run(record(args.ws, Path(args.out), echo=args.print))


if __name__ == "__main__":
    main()
