"""Tests for the built-in demo agent."""

from __future__ import annotations

import asyncio
import random

import pytest

from agent_canvas.protocol import factory
from agent_canvas.protocol.messages import parse_command
from agent_canvas.server.agent_sim import agent_loop, focus_command, lesson_commands, random_activity
from agent_canvas.server.config import Settings
from agent_canvas.server.relay import Relay


@pytest.fixture
def relay() -> Relay:
    return Relay(Settings(_env_file=None))


def test_random_activity_produces_valid_commands() -> None:
    rng = random.Random(7)
    for _ in range(50):
        command = random_activity(rng)
        assert parse_command(command.dumps()) == command


def test_lesson_starts_with_clear() -> None:
    commands = lesson_commands()

    assert commands[0].command_type == "clearCanvas"
    assert commands[-1].command_type == "executeScript"
    assert commands[-1].payload.is_persistent is True


def test_focus_command_targets_first_model(relay: Relay) -> None:
    assert focus_command(relay) is None

    relay.store.apply(factory.add_text("title"))
    relay.store.apply(factory.add_3d_model("duck.gltf", element_id="duck"))
    command = focus_command(relay)

    assert command.element_id == "duck"
    assert command.payload.animation_duration == 2.0


@pytest.mark.asyncio
async def test_agent_loop_publishes(relay: Relay) -> None:
    settings = Settings(_env_file=None, demo_interval_s=0.001)
    task = asyncio.create_task(agent_loop(relay, settings, random.Random(1)))
    try:
        for _ in range(200):
            await asyncio.sleep(0.005)
            if len(relay.store) > 0:
                break
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    assert len(relay.store) > 0
