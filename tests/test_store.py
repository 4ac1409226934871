"""Tests for the element store."""

from __future__ import annotations

from agent_canvas.canvas.elements import AGENT_COLORS, agent_color
from agent_canvas.canvas.store import ChangeKind, ElementStore
from agent_canvas.protocol.messages import bootstrap_size, parse_command
from conftest import add_cmd, clear_cmd, remove_cmd, update_cmd


def apply_all(store: ElementStore, *objs: dict) -> None:
    for obj in objs:
        store.apply(parse_command(obj))


def test_add_text_element(store: ElementStore) -> None:
    event = store.apply(parse_command(add_cmd("t1", elementType="text", content="hi")))

    assert event is not None
    assert event.kind is ChangeKind.ADD
    el = store.get("t1")
    assert el.type == "text"
    assert el.content["text"] == "hi"
    assert el.last_updated == "2024-05-01T10:00:00.000Z"


def test_add_defaults(store: ElementStore) -> None:
    apply_all(store, add_cmd("e1"))

    el = store.get("e1")
    assert el.type == "text"
    assert (el.position.x, el.position.y) == (0, 0)
    assert (el.size.width, el.size.height) == (100, 100)
    assert el.agent_id == "system"
    assert el.z_index == 1
    assert el.is_visible and el.is_interactive


def test_payload_fields_land_in_content(store: ElementStore) -> None:
    apply_all(
        store,
        add_cmd(
            "img",
            elementType="image",
            url="cat.png",
            opacity=0.8,
            styles={"border": "1px"},
            glow=True,
            position={"x": 10, "y": 20},
            agentId="illustrator",
        ),
    )

    el = store.get("img")
    assert el.content == {"url": "cat.png", "opacity": 0.8, "styles": {"border": "1px"}, "glow": True}
    assert (el.position.x, el.position.y) == (10, 20)
    assert el.agent_id == "illustrator"


def test_unreadable_known_fields_land_in_content(store: ElementStore) -> None:
    apply_all(
        store,
        add_cmd("e1", position={"x": 10}, animation="fadeIn", zIndex=1.5, scale=2),
    )

    el = store.get("e1")
    assert (el.position.x, el.position.y) == (10, 0)
    assert el.z_index == 1
    assert el.content == {"animation": "fadeIn", "zIndex": 1.5, "scale": 2}


def test_update_merges_content_shallowly(store: ElementStore) -> None:
    apply_all(
        store,
        add_cmd("e1", content={"a": 1, "b": 2}),
        update_cmd("e1", content={"b": 3}),
    )

    assert store.get("e1").content == {"a": 1, "b": 3}


def test_update_replaces_position_and_size(store: ElementStore) -> None:
    apply_all(
        store,
        add_cmd("e1", position={"x": 1, "y": 2, "z": 3}, size={"width": 5, "height": 6}),
        update_cmd("e1", position={"x": 9, "y": 9}),
    )

    el = store.get("e1")
    assert (el.position.x, el.position.y, el.position.z) == (9, 9, None)
    assert el.size.width == 5
    assert el.last_updated == "2024-05-01T10:00:01.000Z"


def test_update_merges_metadata(store: ElementStore) -> None:
    apply_all(
        store,
        add_cmd("e1", metadata={"lesson": 1, "step": 1}),
        update_cmd("e1", metadata={"step": 2}, isVisible=False, zIndex=5),
    )

    el = store.get("e1")
    assert el.metadata == {"lesson": 1, "step": 2}
    assert el.is_visible is False
    assert el.z_index == 5


def test_update_unknown_element_is_noop(store: ElementStore) -> None:
    assert store.apply(parse_command(update_cmd("ghost", content="x"))) is None
    assert len(store) == 0
    assert "ghost" not in store


def test_remove_unknown_element_is_noop(store: ElementStore) -> None:
    apply_all(store, add_cmd("e1"))
    assert store.apply(parse_command(remove_cmd("ghost"))) is None
    assert len(store) == 1


def test_add_then_remove_leaves_nothing(store: ElementStore) -> None:
    apply_all(store, add_cmd("e1", content="x"))
    event = store.apply(parse_command(remove_cmd("e1")))

    assert event.kind is ChangeKind.REMOVE
    assert event.element.content == {"text": "x"}
    assert store.snapshot() == []


def test_remove_then_add_leaves_exactly_the_element(store: ElementStore) -> None:
    apply_all(store, remove_cmd("e1"), add_cmd("e1", content="x"))

    snap = store.snapshot()
    assert [el.id for el in snap] == ["e1"]
    assert snap[0].content == {"text": "x"}


def test_duplicate_add_replaces_and_moves_to_end(store: ElementStore) -> None:
    apply_all(
        store,
        add_cmd("a", content={"v": 1, "w": 1}),
        add_cmd("b"),
        add_cmd("a", content={"v": 2}),
    )

    assert [el.id for el in store.snapshot()] == ["b", "a"]
    assert store.get("a").content == {"v": 2}


def test_clear_empties_then_later_adds_apply(store: ElementStore) -> None:
    apply_all(store, add_cmd("a"), add_cmd("b"))
    event = store.apply(parse_command(clear_cmd()))
    apply_all(store, add_cmd("c"))

    assert event.kind is ChangeKind.CLEAR
    assert [el.id for el in store.snapshot()] == ["c"]


def test_execute_script_is_not_recorded(store: ElementStore) -> None:
    cmd = parse_command(
        {"commandType": "executeScript", "elementId": "s1", "payload": {"scriptCode": "draw()"}}
    )
    assert store.apply(cmd) is None
    assert len(store) == 0


def test_snapshot_preserves_insertion_order(store: ElementStore) -> None:
    apply_all(store, add_cmd("z"), add_cmd("a"), add_cmd("m"), update_cmd("z", content="x"))

    assert [el.id for el in store.snapshot()] == ["z", "a", "m"]


def test_returned_elements_are_copies(store: ElementStore) -> None:
    apply_all(store, add_cmd("e1", content={"a": 1}))

    store.get("e1").content["a"] = 99
    store.snapshot()[0].content["b"] = 1

    assert store.get("e1").content == {"a": 1}


def test_same_commands_give_same_state() -> None:
    cmds = [
        add_cmd("a", content={"x": 1}),
        add_cmd("b", elementType="image", url="u.png"),
        update_cmd("a", content={"y": 2}, position={"x": 3, "y": 4}),
        remove_cmd("b"),
        add_cmd("c", content="hello"),
        update_cmd("ghost", content="ignored"),
    ]
    left, right = ElementStore(), ElementStore()
    apply_all(left, *cmds)
    apply_all(right, *cmds)

    assert left.snapshot() == right.snapshot()


class TestFocus:
    def test_focus_known_element(self, store: ElementStore) -> None:
        apply_all(store, add_cmd("m1", elementType="3dmodel"))
        event = store.apply(parse_command({"commandType": "set3DFocus", "elementId": "m1", "payload": {}}))

        assert event.kind is ChangeKind.FOCUS
        assert store.focused_element_id == "m1"

    def test_focus_unknown_element_is_noop(self, store: ElementStore) -> None:
        assert store.apply(parse_command({"commandType": "set3DFocus", "elementId": "m1"})) is None
        assert store.focused_element_id is None

    def test_removing_focused_element_clears_focus(self, store: ElementStore) -> None:
        apply_all(store, add_cmd("m1"), {"commandType": "set3DFocus", "elementId": "m1"}, remove_cmd("m1"))
        assert store.focused_element_id is None

    def test_clear_clears_focus(self, store: ElementStore) -> None:
        apply_all(store, add_cmd("m1"), {"commandType": "set3DFocus", "elementId": "m1"}, clear_cmd())
        assert store.focused_element_id is None


class TestBootstrap:
    def test_empty_store_bootstrap_is_announced_clear(self, store: ElementStore) -> None:
        cmds = store.bootstrap_commands()

        assert len(cmds) == 1
        assert cmds[0].command_type == "clearCanvas"
        assert bootstrap_size(cmds[0]) == 0

    def test_bootstrap_rebuilds_state_on_fresh_store(self, store: ElementStore) -> None:
        apply_all(
            store,
            add_cmd("a", content={"x": 1}, agentId="alice", metadata={"k": "v"}),
            add_cmd("b", elementType="3dmodel", modelUrl="duck.gltf", position={"x": 1, "y": 2, "z": 3}),
            update_cmd("a", content="caption", isInteractive=False),
            {"commandType": "set3DFocus", "elementId": "b", "payload": {"focusType": "orbit"}},
        )

        cmds = store.bootstrap_commands()
        assert bootstrap_size(cmds[0]) == len(cmds) - 1 == 3

        replica = ElementStore()
        apply_all(replica, add_cmd("stale"))
        for cmd in cmds:
            # every bootstrap command must survive the wire
            replica.apply(parse_command(cmd.dumps()))

        assert replica.snapshot() == store.snapshot()
        assert replica.focused_element_id == "b"


def test_agents_are_derived_from_elements(store: ElementStore) -> None:
    apply_all(
        store,
        add_cmd("a1", agentId="alice"),
        add_cmd("b1", agentId="bob"),
        add_cmd("a2", agentId="alice"),
        update_cmd("a1", content="later"),
    )

    agents = store.agents()
    assert [a.id for a in agents] == ["alice", "bob"]
    alice = agents[0]
    assert alice.elements == ["a1", "a2"]
    assert alice.last_seen == "2024-05-01T10:00:01.000Z"
    assert alice.color == agent_color("alice")
    assert alice.color in AGENT_COLORS
