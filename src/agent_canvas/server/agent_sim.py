from __future__ import annotations

import asyncio
import logging
import random

from agent_canvas.protocol import factory
from agent_canvas.protocol.constants import E_3D_MODEL
from agent_canvas.protocol.messages import Command

from .config import Settings, get_settings
from .relay import Relay

logger = logging.getLogger(__name__)

DUCK_MODEL_URL = "https://threejs.org/examples/models/gltf/Duck/glTF/Duck.gltf"
SAMPLE_VIDEO_URL = "https://www.w3schools.com/html/mov_bbb.mp4"
STATUS_LINES = ("Processing Data", "Analyzing Results", "Task Complete", "Awaiting Input")

ORBIT_SCRIPT = """
const canvas = document.querySelector('canvas');
if (canvas) {
  const ctx = canvas.getContext('2d');
  ctx.save();
  for (let i = 0; i < 5; i++) {
    ctx.beginPath();
    ctx.arc(400, 300, 50 + i * 40, 0, 2 * Math.PI);
    ctx.strokeStyle = 'rgba(100, 100, 100, 0.3)';
    ctx.stroke();
  }
  ctx.beginPath();
  ctx.arc(400, 300, 25, 0, 2 * Math.PI);
  ctx.fillStyle = '#FDB813';
  ctx.fill();
  ctx.restore();
}
"""


def _circle_script(rng: random.Random) -> str:
    x = rng.random() * 400 + 100
    y = rng.random() * 300 + 100
    hue = rng.random() * 360
    return (
        "const canvas = document.querySelector('canvas');\n"
        "const ctx = canvas.getContext('2d');\n"
        "ctx.beginPath();\n"
        f"ctx.arc({x:.1f}, {y:.1f}, 30, 0, 2 * Math.PI);\n"
        f"ctx.fillStyle = 'hsl({hue:.0f}, 70%, 50%)';\n"
        "ctx.fill();\n"
        "ctx.stroke();\n"
    )


def random_activity(rng: random.Random) -> Command:
    """One random producer action: status text, image, video, 3D model or drawing."""
    kind = rng.randrange(5)
    if kind == 0:
        return factory.add_text(
            f"Agent Status: {rng.choice(STATUS_LINES)}",
            position={"x": rng.random() * 400 + 50, "y": rng.random() * 200 + 50},
            styles={"fontSize": "18px", "color": "#4a9eff", "fontWeight": "bold"},
        )
    if kind == 1:
        return factory.add_image(
            f"https://picsum.photos/300/200?random={rng.randrange(1000)}",
            position={"x": rng.random() * 300 + 100, "y": rng.random() * 200 + 150},
            size={"width": 300, "height": 200},
        )
    if kind == 2:
        return factory.add_video(
            SAMPLE_VIDEO_URL,
            position={"x": rng.random() * 200 + 100, "y": rng.random() * 100 + 250},
            size={"width": 320, "height": 240},
            autoplay=True,
            loop=True,
            controls=False,
        )
    if kind == 3:
        return factory.add_3d_model(
            DUCK_MODEL_URL,
            position={"x": rng.random() * 2 - 1, "y": 0, "z": rng.random() * 2 - 1},
            rotation={"x": 0, "y": rng.random() * 6.283, "z": 0},
            scale={"x": 0.5, "y": 0.5, "z": 0.5},
        )
    return factory.execute_script(_circle_script(rng))


def lesson_commands() -> list[Command]:
    """Clear the canvas, then build a small lesson (title, image, model, orbit drawing)."""
    return [
        factory.clear_canvas(),
        factory.add_text(
            "AI-Powered Learning: Solar System",
            position={"x": 50, "y": 30},
            styles={"fontSize": "36px", "color": "#2c3e50", "fontWeight": "bold", "width": "800px"},
        ),
        factory.add_image(
            "https://science.nasa.gov/wp-content/uploads/2023/04/solar-system-scaled.jpg",
            position={"x": 100, "y": 100},
            size={"width": 600, "height": 400},
        ),
        factory.add_3d_model(DUCK_MODEL_URL, position={"x": 0, "y": 0, "z": 0}, scale={"x": 2, "y": 2, "z": 2}),
        factory.execute_script(ORBIT_SCRIPT, element_type="animation", is_persistent=True),
    ]


def focus_command(relay: Relay) -> Command | None:
    """Point the camera at the first 3D model on the canvas, if there is one."""
    for el in relay.store.snapshot():
        if el.type == E_3D_MODEL:
            return factory.set_3d_focus(
                el.id,
                "cameraLookAt",
                targetPosition={"x": 5, "y": 2, "z": 3},
                animationDuration=2.0,
            )
    return None


async def agent_loop(relay: Relay, settings: Settings | None = None, rng: random.Random | None = None) -> None:
    """
    Built-in demo producer. Every tick publishes a random activity; every
    fourth tick runs the lesson sequence and every sixth tick moves the 3D
    focus.
    """
    settings = settings or get_settings()
    rng = rng or random.Random()
    tick = 0
    logger.info("Demo agent started (interval %.1fs)", settings.demo_interval_s)

    while True:
        await asyncio.sleep(settings.demo_interval_s)
        tick += 1

        batch: list[Command] = [random_activity(rng)]
        if tick % 4 == 0:
            batch = lesson_commands()
        if tick % 6 == 0:
            focus = focus_command(relay)
            if focus is not None:
                batch.append(focus)

        for command in batch:
            await relay.publish(command)
            if settings.debug_log_msgs:
                logger.info("[agent] %s %s", command.command_type, command.element_id)
            await asyncio.sleep(0)
