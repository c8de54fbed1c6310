from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from irusb_bridge.adapter import IrUsbAdapter
from irusb_bridge.client import IrUsbClientConfig
from irusb_bridge.rest_server import bridge_api


@pytest.fixture
def adapter() -> Iterator[IrUsbAdapter]:
    adapter = IrUsbAdapter(config=IrUsbClientConfig(command_timeout_secs=1.0))
    adapter.add_device("bridge-1", "192.0.2.1", 8080)
    bridge_api.state.adapter = adapter
    yield adapter
    del bridge_api.state.adapter


@pytest.fixture
def client(adapter: IrUsbAdapter) -> TestClient:
    # Not used as a context manager, so the lifespan (and discovery) does not run.
    return TestClient(bridge_api)


def test_list_devices(client: TestClient) -> None:
    response = client.get("/devices")
    assert response.status_code == 200
    assert response.json() == [
        {
            "id": "bridge-1",
            "host": "192.0.2.1",
            "port": 8080,
            "state": "uninitialized",
            "properties": {"power": False, "playing": False, "app": ""},
        }
    ]


def test_unknown_device_is_404(client: TestClient) -> None:
    assert client.get("/devices/bridge-2").status_code == 404
    assert client.post("/devices/bridge-2/actions/cancelKeys", json={}).status_code == 404


def test_action_on_disconnected_device_is_503(client: TestClient) -> None:
    response = client.post("/devices/bridge-1/actions/remoteShort", json={"input": "PLAY"})
    assert response.status_code == 503
    assert client.put("/devices/bridge-1/properties/power", json={"value": True}).status_code == 503
    assert client.post("/devices/bridge-1/command", json={"command": "GETPLAY"}).status_code == 503


def test_bad_key_and_read_only_property_are_400(client: TestClient) -> None:
    assert client.post("/devices/bridge-1/actions/remoteShort", json={"input": "STOP"}).status_code == 400
    assert client.post("/devices/bridge-1/actions/remoteLong", json={"input": "PLAY"}).status_code == 400
    assert client.post("/devices/bridge-1/actions/explode", json={}).status_code == 400
    assert client.put("/devices/bridge-1/properties/app", json={"value": True}).status_code == 400


def test_remove_device(client: TestClient, adapter: IrUsbAdapter) -> None:
    response = client.delete("/devices/bridge-1")
    assert response.status_code == 200
    assert response.json() == {"id": "bridge-1", "removed": True}
    assert adapter.devices == []
    assert client.get("/devices").json() == []


def test_property_value_must_be_a_bool(client: TestClient) -> None:
    assert client.put("/devices/bridge-1/properties/power", json={"value": "maybe"}).status_code == 422
    assert client.put("/devices/bridge-1/properties/playing", json={}).status_code == 422
    # "false" is parsed as a bool, so it reaches the (disconnected) device
    assert client.put("/devices/bridge-1/properties/power", json={"value": "false"}).status_code == 503
