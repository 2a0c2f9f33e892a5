from fastapi.testclient import TestClient

from make_this_usable.api.app import app, service
from make_this_usable.api.schemas import NextAction, Section, TransformResponse
from make_this_usable.config import Settings, get_settings
from make_this_usable.errors import MalformedModelOutputError, UnexpectedSchemaError, UpstreamError
from make_this_usable.pipeline.request_validator import FilePayload, TextPayload
from make_this_usable.workflow.transform import TransformResult

client = TestClient(app)

DOCUMENT = TransformResponse(
    title="Launch Plan",
    summary="Launch on March 15 with a 250k budget.",
    sections=[Section(heading="Timeline", bullets=["Launch March 15"])],
    next_actions=[NextAction(action="Schedule design review", first_step="Send invite")],
)


def _fake_transform(captured: dict | None = None, restyled: bool = False):
    async def fake_transform(payload) -> TransformResult:
        if captured is not None:
            captured["payload"] = payload
        return TransformResult(document=DOCUMENT, restyled=restyled, restyle_status="no_notes")

    return fake_transform


def _raising_transform(exc: Exception):
    async def fake_transform(payload) -> TransformResult:
        raise exc

    return fake_transform


def test_healthz() -> None:
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_transform_json_request(monkeypatch) -> None:
    captured: dict = {}
    monkeypatch.setattr(service, "transform", _fake_transform(captured))

    resp = client.post("/api/transform", json={"text": "launch on march 15", "notes": "formal"})

    assert resp.status_code == 200
    assert resp.json() == DOCUMENT.model_dump()
    assert resp.headers["X-Transform-Restyled"] == "false"
    assert captured["payload"] == TextPayload(text="launch on march 15", notes="formal")


def test_transform_plain_text_format(monkeypatch) -> None:
    monkeypatch.setattr(service, "transform", _fake_transform(restyled=True))

    resp = client.post("/api/transform?format=text", json={"text": "launch"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/plain")
    assert resp.headers["X-Transform-Restyled"] == "true"
    assert resp.text.startswith("Launch Plan\n\n")
    assert "☐ Schedule design review" in resp.text


def test_unknown_output_format_is_400(monkeypatch) -> None:
    monkeypatch.setattr(service, "transform", _raising_transform(AssertionError("must not be called")))

    resp = client.post("/api/transform?format=xml", json={"text": "launch"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request format"}


def test_explicit_json_format(monkeypatch) -> None:
    monkeypatch.setattr(service, "transform", _fake_transform())

    resp = client.post("/api/transform?format=json", json={"text": "launch"})

    assert resp.status_code == 200
    assert resp.json() == DOCUMENT.model_dump()


def test_transform_multipart_request(monkeypatch) -> None:
    captured: dict = {}
    monkeypatch.setattr(service, "transform", _fake_transform(captured))

    resp = client.post(
        "/api/transform",
        files={"file": ("results.csv", b"HomeTeam,AwayTeam\nArsenal,Chelsea\n", "text/csv")},
        data={"notes": "table first"},
    )

    assert resp.status_code == 200
    payload = captured["payload"]
    assert isinstance(payload, FilePayload)
    assert payload.filename == "results.csv"
    assert payload.content_type == "text/csv"
    assert payload.notes == "table first"


def test_invalid_shape_is_400(monkeypatch) -> None:
    monkeypatch.setattr(service, "transform", _raising_transform(AssertionError("must not be called")))

    resp = client.post("/api/transform", json={"body": "no text"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request format"}


def test_invalid_json_is_400() -> None:
    resp = client.post("/api/transform", content=b"{oops", headers={"content-type": "application/json"})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid request body"}


def test_oversize_text_is_413() -> None:
    app.dependency_overrides[get_settings] = lambda: Settings().model_copy(update={"max_input_chars": 5})
    try:
        resp = client.post("/api/transform", json={"text": "123456"})
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 413
    assert "Maximum is 5 characters" in resp.json()["error"]


def test_oversize_file_is_413_with_sizes() -> None:
    app.dependency_overrides[get_settings] = lambda: Settings().model_copy(update={"max_file_bytes": 1024})
    try:
        resp = client.post("/api/transform", files={"file": ("big.pdf", b"x" * 2048, "application/pdf")})
    finally:
        app.dependency_overrides.clear()

    assert resp.status_code == 413
    assert resp.json() == {"error": "File is too large. Maximum size: 1.0 KB. Your file: 2.0 KB."}


def test_multipart_without_file_is_400() -> None:
    resp = client.post("/api/transform", files={"notes": (None, "only notes")})

    assert resp.status_code == 400
    assert "Missing file" in resp.json()["error"]


def test_upstream_error_keeps_provider_status(monkeypatch) -> None:
    monkeypatch.setattr(service, "transform", _raising_transform(UpstreamError("Rate limit reached", status_code=429)))

    resp = client.post("/api/transform", json={"text": "hello"})

    assert resp.status_code == 429
    assert resp.json() == {"error": "Rate limit reached"}


def test_model_output_errors_are_502(monkeypatch) -> None:
    for exc, message in (
        (MalformedModelOutputError(), "Model returned an invalid response format. Please try again."),
        (UnexpectedSchemaError(), "Model returned an unexpected response shape. Please try again."),
    ):
        monkeypatch.setattr(service, "transform", _raising_transform(exc))
        resp = client.post("/api/transform", json={"text": "hello"})
        assert resp.status_code == 502
        assert resp.json() == {"error": message}


def test_unexpected_error_is_500_without_internals(monkeypatch) -> None:
    monkeypatch.setattr(service, "transform", _raising_transform(RuntimeError("secret stack detail")))
    quiet_client = TestClient(app, raise_server_exceptions=False)

    resp = quiet_client.post("/api/transform", json={"text": "hello"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "An unexpected error occurred"}
