"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from agent_canvas.canvas.store import ElementStore  # noqa: E402
from agent_canvas.server.config import Settings  # noqa: E402


@pytest.fixture
def store() -> ElementStore:
    return ElementStore()


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None)


def add_cmd(element_id: str, **payload) -> dict:
    return {
        "commandType": "addElement",
        "elementId": element_id,
        "timestamp": "2024-05-01T10:00:00.000Z",
        "payload": payload,
    }


def update_cmd(element_id: str, **payload) -> dict:
    return {
        "commandType": "updateElement",
        "elementId": element_id,
        "timestamp": "2024-05-01T10:00:01.000Z",
        "payload": payload,
    }


def remove_cmd(element_id: str) -> dict:
    return {"commandType": "removeElement", "elementId": element_id, "payload": {}}


def clear_cmd(element_id: str = "c1") -> dict:
    return {"commandType": "clearCanvas", "elementId": element_id, "payload": {}}
