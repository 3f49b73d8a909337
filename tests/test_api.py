"""Tests for the HTTP API used by the mobile shell."""

import json

from fastapi.testclient import TestClient

from prompt_studio.api.app import create_app
from prompt_studio.containers import AppContainer
from tests.conftest import (
    JPEG_BYTES,
    PNG_BYTES,
    FakeTransformClient,
    InMemoryDocumentStorage,
)


def test_health(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_prompt_history_endpoints(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    first = client.post(
        "/prompts", json={"image_path": "file:///a.jpg", "prompt": "make it night"}
    )
    second = client.post(
        "/prompts", json={"image_path": "file:///b.jpg", "prompt": "add rain"}
    )
    listing = client.get("/prompts")

    assert first.status_code == 201
    assert second.status_code == 201
    body = listing.json()
    assert body["version"] == "1.0"
    assert [item["image_path"] for item in body["items"]] == [
        "file:///a.jpg",
        "file:///b.jpg",
    ]

    deleted = client.delete(f"/prompts/{first.json()['id']}")
    assert deleted.status_code == 200
    assert len(client.get("/prompts").json()["items"]) == 1

    missing = client.delete(f"/prompts/{first.json()['id']}")
    assert missing.status_code == 404

    assert client.delete("/prompts").status_code == 200
    assert client.get("/prompts").json()["items"] == []


def test_blank_prompt_is_unprocessable(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post("/prompts", json={"image_path": "a.jpg", "prompt": "  "})

    assert response.status_code == 422
    assert client.get("/prompts").json()["items"] == []


def test_unknown_history_version_conflicts_on_write(
    container: AppContainer, storage: InMemoryDocumentStorage
) -> None:
    storage.documents["imagePrompts.json"] = b'{"version": "9.9", "items": []}'
    client = TestClient(create_app(container))

    listing = client.get("/prompts")
    response = client.post("/prompts", json={"prompt": "add rain"})

    assert listing.json()["items"] == []
    assert response.status_code == 409


def test_permission_flow_for_camera(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    client.put("/device/permissions/camera", json={"status": "authorized"})
    client.put("/device/permissions/photo_library", json={"status": 2})

    camera = client.post("/permissions/camera/evaluate").json()
    photos = client.post("/permissions/photo_library/evaluate").json()

    assert camera["action"] == "proceed"
    assert photos["action"] == "redirect_to_settings"
    assert photos["state"]["status"] == "denied"


def test_in_app_prompt_dismissal(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    client.put("/device/permissions/notifications", json={"status": "notDetermined"})

    first = client.post("/permissions/notifications/evaluate").json()
    client.post("/permissions/notifications/dismiss")
    second = client.post("/permissions/notifications/evaluate").json()
    snapshot = client.get("/permissions").json()

    assert first["action"] == "show_in_app_prompt"
    assert first["state"]["show_request_prompt"] is True
    assert second["action"] == "no_op"
    assert snapshot["notifications"]["show_request_prompt"] is False


def test_unreported_resource_is_restricted(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post("/permissions/camera/evaluate")

    assert response.json()["action"] == "no_op"
    assert response.json()["state"]["status"] == "restricted"


def test_unknown_resource_is_rejected(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post("/permissions/microphone/evaluate")

    assert response.status_code == 422


def test_settings_redirect_is_queued_for_shell(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    client.post("/permissions/settings")
    commands = client.get("/device/commands").json()["commands"]

    assert commands == [{"type": "open_settings"}]
    assert client.get("/device/commands").json()["commands"] == []


def test_authorize_when_already_authorized_does_not_queue(
    container: AppContainer,
) -> None:
    client = TestClient(create_app(container))
    client.put("/device/permissions/camera", json={"status": "authorized"})

    response = client.post("/permissions/camera/authorize")

    assert response.json()["action"] == "proceed"
    assert client.get("/device/commands").json()["commands"] == []


def test_resolution_without_request(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/device/permissions/camera/resolution", json={"status": "denied"}
    )

    assert response.json() == {
        "resource": "camera",
        "status": "denied",
        "resolved": False,
    }


def test_chat_endpoint(
    container: AppContainer, transform_client: FakeTransformClient
) -> None:
    client = TestClient(create_app(container))

    response = client.post(
        "/chat",
        json={"prompt": "make it night", "images": ["/9j/ZmFrZS1qcGVnLWJvZHk="]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["record"]["prompt"] == "make it night"
    assert body["text"] == "Here is your night scene."
    assert len(body["image_paths"]) == 1
    assert transform_client.calls[0]["images"] == ["/9j/ZmFrZS1qcGVnLWJvZHk="]


def test_chat_backend_failure_is_bad_gateway(
    container: AppContainer, transform_client: FakeTransformClient
) -> None:
    transform_client.payload = {"error": "quota exceeded"}
    client = TestClient(create_app(container))

    response = client.post("/chat", json={"prompt": "add rain"})

    assert response.status_code == 502
    assert "Sorry" in response.json()["detail"]
    assert len(client.get("/prompts").json()["items"]) == 1


def test_chat_rejects_invalid_base64(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post("/chat", json={"prompt": "p", "images": ["***"]})

    assert response.status_code == 422


def test_chat_unreadable_output_is_bad_gateway(
    container: AppContainer,
    transform_client: FakeTransformClient,
    storage: InMemoryDocumentStorage,
) -> None:
    transform_client.payload = {
        "images": ["iVBORw0KGgpmYWtlLXBuZy1ib2R5", "%%%not-base64%%%"]
    }
    client = TestClient(create_app(container))

    response = client.post("/chat", json={"prompt": "make it night"})

    assert response.status_code == 502
    assert [key for key in storage.documents if key.startswith("images/")] == []


def test_stored_images_are_served(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    body = client.post(
        "/chat",
        json={"prompt": "make it night", "images": ["/9j/ZmFrZS1qcGVnLWJvZHk="]},
    ).json()

    output = client.get(f"/{body['image_paths'][0]}")
    source = client.get(f"/{body['record']['image_path']}")

    assert output.status_code == 200
    assert output.content == PNG_BYTES
    assert output.headers["content-type"] == "image/png"
    assert source.content == JPEG_BYTES
    assert source.headers["content-type"] == "image/jpeg"
    assert client.get("/images/missing.png").status_code == 404


def test_gallery_lists_generated_images(container: AppContainer) -> None:
    client = TestClient(create_app(container))
    chat = client.post("/chat", json={"prompt": "make it night"}).json()

    items = client.get("/gallery").json()["items"]

    assert len(items) == 1
    assert items[0]["image_path"] == chat["image_paths"][0]
    assert items[0]["source_record_id"] == chat["record"]["id"]
    assert items[0]["is_ai_generated"] is True

    assert client.delete(f"/gallery/{items[0]['id']}").status_code == 200
    assert client.get("/gallery").json()["items"] == []
    assert client.delete(f"/gallery/{items[0]['id']}").status_code == 404


def test_chat_stream_emits_ndjson_events(
    container: AppContainer, transform_client: FakeTransformClient
) -> None:
    transform_client.chunks = [
        {"result": {"text": "Working on it"}},
        {"result": {"images": ["iVBORw0KGgpmYWtlLXBuZy1ib2R5"]}, "done": True},
    ]
    client = TestClient(create_app(container))

    response = client.post("/chat/stream", json={"prompt": "make it night"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/x-ndjson")
    events = [json.loads(line) for line in response.text.splitlines()]
    assert [event["type"] for event in events] == ["record", "chunk", "chunk"]
    assert events[0]["record"]["prompt"] == "make it night"
    assert events[1]["text"] == "Working on it"
    assert events[2]["done"] is True
    assert client.get(f"/{events[2]['image_paths'][0]}").content == PNG_BYTES


def test_chat_stream_reports_backend_error_in_body(
    container: AppContainer, transform_client: FakeTransformClient
) -> None:
    transform_client.chunks = [{"error": "quota exceeded"}]
    client = TestClient(create_app(container))

    response = client.post("/chat/stream", json={"prompt": "add rain"})

    events = [json.loads(line) for line in response.text.splitlines()]
    assert [event["type"] for event in events] == ["record", "error"]
    assert "Sorry" in events[1]["detail"]
    assert len(client.get("/prompts").json()["items"]) == 1


def test_chat_stream_rejects_blank_prompt(container: AppContainer) -> None:
    client = TestClient(create_app(container))

    response = client.post("/chat/stream", json={"prompt": " "})

    assert response.status_code == 422
