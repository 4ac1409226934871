from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path

import websockets

from agent_canvas.protocol.messages import MalformedCommandError, parse_command
from agent_canvas.utils.logging import setup_logging

logger = logging.getLogger(__name__)


def load_events(jsonl_path: Path) -> list[tuple[int | None, dict]]:
    """
    Read recorded commands.

    Accepted line formats:
      - record_jsonl.py output: {"ts": <ms>, "msg": {...}}
      - or raw commands per line: {...}
    Lines that are not valid commands are skipped.
    """
    events: list[tuple[int | None, dict]] = []
    for lineno, line in enumerate(jsonl_path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("%s:%d: skipping invalid JSON: %s", jsonl_path, lineno, e)
            continue
        ts = None
        if isinstance(obj, dict) and isinstance(obj.get("msg"), dict):
            raw_ts = obj.get("ts")
            ts = int(raw_ts) if isinstance(raw_ts, (int, float)) else None
            obj = obj["msg"]
        try:
            parse_command(obj)
        except MalformedCommandError as e:
            logger.warning("%s:%d: skipping malformed command: %s", jsonl_path, lineno, e)
            continue
        events.append((ts, obj))
    return events


async def replay(
    ws_url: str,
    jsonl_path: Path,
    *,
    speed: float = 1.0,
    default_dt_ms: int = 0,
    only_type: str | None = None,
) -> int:
    """Replay recorded commands into the relay; returns how many were sent."""
    events = load_events(jsonl_path)
    sent = 0

    async with websockets.connect(ws_url, max_size=2**22) as ws:
        prev_ts: int | None = None
        for ts, msg in events:
            if only_type and msg.get("commandType") != only_type:
                continue

            if ts is not None and prev_ts is not None:
                dt_ms = max(0, ts - prev_ts)
            else:
                dt_ms = default_dt_ms

            prev_ts = ts if ts is not None else prev_ts
            if dt_ms:
                await asyncio.sleep((dt_ms / 1000.0) / max(0.01, speed))

            await ws.send(json.dumps(msg, ensure_ascii=False, separators=(",", ":")))
            sent += 1
    return sent


def main() -> None:
    ap = argparse.ArgumentParser(description="Replay recorded canvas commands into the relay.")
    ap.add_argument("--ws", required=True, help="WebSocket URL, e.g. ws://127.0.0.1:8080/canvas")
    ap.add_argument("--in", dest="inp", required=True, help="Input JSONL path")
    ap.add_argument("--speed", type=float, default=1.0, help="Speed multiplier (2.0 = 2x faster)")
    ap.add_argument("--default-dt-ms", type=int, default=0, help="Delay between commands if no timestamps")
    ap.add_argument(
        "--only-type",
        default=None,
        help="If set, only replay commands with this commandType (e.g. 'addElement').",
    )
    args = ap.parse_args()

    setup_logging()
    sent = asyncio.run(
        replay(
            args.ws,
            Path(args.inp),
            speed=args.speed,
            default_dt_ms=args.default_dt_ms,
            only_type=args.only_type,
        )
    )
    logger.info("Replayed %d command(s)", sent)


if __name__ == "__main__":
    main()
