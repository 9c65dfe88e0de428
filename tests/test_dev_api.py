from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from bcui.components.elements import Button, Image, Panel, Text
from bcui.core.hooks import use_state


def Counter(start: int = 0):
    count, set_count = use_state(start)
    return Panel(
        Text(f"Count {count}"),
        Button(Text("+1"), on_press=lambda: set_count(count + 1)),
    )


def BrokenImage():
    return Image("textures/" + "x" * 40)


def _shows(view: dict, text: str) -> bool:
    return any(f"s:{text};" in label for label in view["labels"])


@pytest.fixture()
def client(client_and_redis):
    c, r = client_and_redis
    runtime = c.app.state.runtime
    runtime.register_app("counter", Counter)
    runtime.register_app("broken", BrokenImage)
    return c, r


def _wait_until(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


def test_healthcheck_and_app_list(client) -> None:
    c, _ = client

    assert c.get("/healthcheck").json() == {"status": "ok"}
    assert c.get("/apps").json() == {"apps": ["broken", "counter"]}


def test_open_press_and_dismiss_roundtrip(client) -> None:
    c, r = client

    res = c.post("/players/p1/apps/counter")
    assert res.status_code == 201
    first = res.json()
    assert first["title"] == "bcuiv0001"
    assert len(first["buttons"]) == 1
    assert _shows(first, "Count 0")

    assert c.get("/players/p1/dialog").json()["sequence"] == first["sequence"]

    res = c.post("/players/p1/dialog", json={"selection": 0})
    assert res.status_code == 200
    body = res.json()
    assert body["closed"]["sequence"] == first["sequence"]
    assert body["closed"]["open"] is False
    assert _shows(body["next"], "Count 1")

    mailbox = c.get("/players/p1/mailbox?count=10").json()
    assert mailbox["stream"] == "bcui:mailbox:p1"
    assert [m["fields"]["type"] for m in mailbox["messages"]] == ["dialog_shown", "dialog_shown"]
    assert mailbox["messages"][1]["fields"]["sequence"] == str(body["next"]["sequence"])

    instances = c.get("/instances").json()["instances"]
    assert [(i["id"], i["phase"]) for i in instances] == [("p1:Counter", "awaiting_response")]

    res = c.post("/players/p1/dialog", json={"selection": None})
    assert res.status_code == 200
    assert res.json()["next"] is None
    assert c.get("/players/p1/dialog").status_code == 404
    assert _wait_until(lambda: c.get("/instances").json()["instances"] == [])


def test_open_passes_props_and_key(client) -> None:
    c, _ = client

    res = c.post("/players/p1/apps/counter", json={"key": "side", "props": {"start": 5}})
    assert res.status_code == 201
    assert _shows(res.json(), "Count 5")

    ids = [i["id"] for i in c.get("/instances").json()["instances"]]
    assert ids == ["p1:side"]


def test_unknown_app_is_404(client) -> None:
    c, _ = client
    assert c.post("/players/p1/apps/nope").status_code == 404


def test_double_open_is_409(client) -> None:
    c, _ = client

    assert c.post("/players/p1/apps/counter").status_code == 201
    res = c.post("/players/p1/apps/counter")
    assert res.status_code == 409
    assert "already open" in res.json()["detail"]


def test_serialization_error_is_422(client) -> None:
    c, _ = client

    res = c.post("/players/p1/apps/broken")
    assert res.status_code == 422
    assert "texture path" in res.json()["detail"]
    assert c.get("/instances").json()["instances"] == []


def test_selection_out_of_range_is_422(client) -> None:
    c, _ = client
    c.post("/players/p1/apps/counter")

    res = c.post("/players/p1/dialog", json={"selection": 5})
    assert res.status_code == 422
    assert c.get("/players/p1/dialog").status_code == 200


def test_responding_without_a_dialog_is_404(client) -> None:
    c, _ = client
    assert c.get("/players/p2/dialog").status_code == 404
    assert c.post("/players/p2/dialog", json={"selection": 0}).status_code == 404


def test_mailbox_count_is_bounded(client) -> None:
    c, _ = client
    assert c.get("/players/p1/mailbox?count=0").status_code == 422
    assert c.get("/players/p1/mailbox?count=201").status_code == 422


def test_ws_receives_shown_dialogs(client) -> None:
    c, _ = client

    with c.websocket_connect("/ws/players/p1") as ws:
        res = c.post("/players/p1/apps/counter")
        assert res.status_code == 201

        msg = ws.receive_json()
        assert msg["type"] == "dialog_shown"
        assert msg["player_id"] == "p1"
        assert msg["sequence"] == res.json()["sequence"]
        assert msg["labels"] == res.json()["labels"]


def test_routes_need_a_started_runtime() -> None:
    from bcui.main import app

    # Without the context manager startup never runs.
    c = TestClient(app)
    assert c.get("/apps").status_code == 503
