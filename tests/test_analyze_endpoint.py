try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio
import json

import httpx
import pytest

from strategic_analysis.clients.base import GenerationOptions
from strategic_analysis.clients.methodology_store import MethodologyStore
from strategic_analysis.core.config import AppSettings, SecuritySettings
from strategic_analysis.core.errors import ContentBlocked, UpstreamRateLimited
from strategic_analysis.main import app, create_app
from strategic_analysis.schemas import DOCX_MIME_TYPE
from strategic_analysis.services import JobQueue, QueueConfig, RequestThrottle

STRATEGIC_TEXT = (
    "Northwind Health runs twelve rural clinics and wants to introduce "
    "telemedicine without losing the personal relationships its patients value. "
    "Staff shortages and patchy broadband are the main constraints."
)


class StubGenerator:
    def __init__(self) -> None:
        self.outcomes: list = []
        self.prompts: list[str] = []
        self.options: list[GenerationOptions | None] = []

    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        self.prompts.append(prompt)
        self.options.append(options)
        if not self.outcomes:
            raise AssertionError("No generator outcome configured")
        outcome = self.outcomes[0] if len(self.outcomes) == 1 else self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def calls(self) -> int:
        return len(self.prompts)


pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture()
def settings():
    return AppSettings(security=SecuritySettings(frontend_api_key=None))


@pytest.fixture()
def overrides(tmp_path, settings):
    from strategic_analysis import dependencies

    generator = StubGenerator()
    store = MethodologyStore(tmp_path / "methodology")
    queue = JobQueue(QueueConfig(initial_backoff_seconds=0))
    throttle = RequestThrottle(limit=30)

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_app_settings: lambda: settings,
            dependencies.get_text_generator: lambda: generator,
            dependencies.get_methodology_store: lambda: store,
            dependencies.get_job_queue: lambda: queue,
            dependencies.get_request_throttle: lambda: throttle,
        }
    )

    yield generator, store

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(overrides):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client


def _body(analysis_type: str = "fundamentals", text: str = STRATEGIC_TEXT) -> dict:
    return {"analysisType": analysis_type, "inputData": {"strategicText": text}}


async def test_analyze_returns_parsed_json(overrides, client):
    generator, _ = overrides
    generator.outcomes.append('```json\n{"fundamentals": "ok"}\n```')

    response = await client.post("/api/analyze", json=_body())

    assert response.status_code == 200
    payload = response.json()
    assert payload["content"] == {"fundamentals": "ok"}
    assert payload["analysisId"].startswith("fundamentals-")
    assert "warning" not in payload
    assert generator.calls == 1
    assert STRATEGIC_TEXT in generator.prompts[0]
    assert generator.options[0].temperature == 0.5


async def test_unparseable_response_is_returned_with_warning(overrides, client):
    generator, _ = overrides
    generator.outcomes.append("The model answered in prose.")

    response = await client.post("/api/analyze", json=_body("insights"))

    assert response.status_code == 200
    payload = response.json()
    assert payload["content"] == "The model answered in prose."
    assert payload["warning"] == "Could not parse JSON from response, returning raw text."


@pytest.mark.parametrize(
    "body, message",
    [
        ({"inputData": {"strategicText": STRATEGIC_TEXT}}, "Analysis type is required"),
        ({"analysisType": "strategy"}, "Input data is required and must be an object"),
        (
            {"analysisType": "strategy", "inputData": "{not json"},
            "Invalid JSON format in inputData field",
        ),
        (
            {"analysisType": "strategy", "inputData": {"strategicText": "short"}},
            "Strategic text must be at least 150 characters if provided",
        ),
        (
            {"analysisType": "swot", "inputData": {"strategicText": STRATEGIC_TEXT}},
            "Invalid analysis type provided",
        ),
        (
            {"analysisType": "strategy", "inputData": {"missionStatement": "x"}},
            "Strategic text is required for strategy",
        ),
    ],
)
async def test_invalid_requests_never_reach_the_generator(overrides, client, body, message):
    generator, _ = overrides

    response = await client.post("/api/analyze", json=body)

    assert response.status_code == 400
    payload = response.json()
    assert payload["error"] == message
    assert payload["kind"] == "validation_error"
    assert "timestamp" in payload
    assert generator.calls == 0


async def test_input_data_may_be_a_json_string(overrides, client):
    generator, _ = overrides
    generator.outcomes.append('{"strategy": "ok"}')

    response = await client.post(
        "/api/analyze",
        json={
            "analysisType": "strategy",
            "inputData": json.dumps({"strategicText": STRATEGIC_TEXT}),
        },
    )

    assert response.status_code == 200
    assert response.json()["content"] == {"strategy": "ok"}


async def test_content_blocked_maps_to_400(overrides, client):
    generator, _ = overrides
    generator.outcomes.append(ContentBlocked("Content blocked by API: SAFETY"))

    response = await client.post("/api/analyze", json=_body())

    assert response.status_code == 400
    assert response.json()["kind"] == "content_blocked"
    assert generator.calls == 1


async def test_persistent_rate_limiting_maps_to_429(overrides, client):
    generator, _ = overrides
    generator.outcomes.append(UpstreamRateLimited("quota"))

    response = await client.post("/api/analyze", json=_body())

    assert response.status_code == 429
    assert response.json()["kind"] == "rate_limit_exhausted"
    assert generator.calls == 3


async def test_multipart_request_with_documents(overrides, client, make_docx):
    generator, store = overrides
    generator.outcomes.append('{"Opportunities": []}')

    response = await client.post(
        "/api/analyze",
        data={
            "analysisType": "challenge-analysis",
            "inputData": json.dumps({"strategicText": STRATEGIC_TEXT}),
        },
        files=[
            ("methodology", ("method.docx", make_docx("Use scenario planning."), DOCX_MIME_TYPE)),
            ("additionalDocuments", ("survey.docx", make_docx("Patients like visits."), DOCX_MIME_TYPE)),
        ],
    )

    assert response.status_code == 200, response.text
    prompt = generator.prompts[0]
    assert "Methodology Document Content:\nUse scenario planning." in prompt
    assert "--- Document: survey.docx ---\nPatients like visits." in prompt
    assert store.current() is not None

    current = await client.get("/api/methodology/current")
    methodology = current.json()["methodology"]
    assert methodology["name"] == "current-methodology.docx"
    assert methodology["custom"] is True
    assert "uploadDate" in methodology


async def test_non_docx_upload_is_rejected(overrides, client):
    generator, _ = overrides

    response = await client.post(
        "/api/analyze",
        data={
            "analysisType": "fundamentals",
            "inputData": json.dumps({"strategicText": STRATEGIC_TEXT}),
        },
        files=[("additionalDocuments", ("notes.txt", b"hello", "text/plain"))],
    )

    assert response.status_code == 400
    assert "Only .docx files are allowed" in response.json()["error"]
    assert generator.calls == 0


async def test_unreadable_docx_maps_to_500(overrides, client):
    generator, _ = overrides

    response = await client.post(
        "/api/analyze",
        data={
            "analysisType": "fundamentals",
            "inputData": json.dumps({"strategicText": STRATEGIC_TEXT}),
        },
        files=[("additionalDocuments", ("bad.docx", b"not a zip", DOCX_MIME_TYPE))],
    )

    assert response.status_code == 500
    assert response.json()["kind"] == "document_extraction_error"
    assert generator.calls == 0


async def test_corrupt_methodology_keeps_the_stored_one(overrides, client, make_docx):
    generator, store = overrides
    original = make_docx("Use scenario planning.")
    store.save(original)

    response = await client.post(
        "/api/analyze",
        data={
            "analysisType": "fundamentals",
            "inputData": json.dumps({"strategicText": STRATEGIC_TEXT}),
        },
        files=[("methodology", ("method.docx", b"not a zip", DOCX_MIME_TYPE))],
    )

    assert response.status_code == 500
    assert response.json()["kind"] == "document_extraction_error"
    assert store.path.read_bytes() == original
    assert generator.calls == 0


class HangingGenerator:
    async def generate(self, prompt: str, options: GenerationOptions | None = None) -> str:
        await asyncio.sleep(5)
        return "{}"


async def test_timed_out_job_maps_to_500(overrides, client):
    from strategic_analysis import dependencies

    queue = JobQueue(QueueConfig(job_timeout_seconds=0.05))
    app.dependency_overrides[dependencies.get_text_generator] = lambda: HangingGenerator()
    app.dependency_overrides[dependencies.get_job_queue] = lambda: queue

    response = await client.post("/api/analyze", json=_body())

    assert response.status_code == 500
    payload = response.json()
    assert payload["kind"] == "task_timeout"
    assert payload["details"]["timeout_seconds"] == 0.05
    assert queue.in_flight == 0


def _lenient_client(target) -> httpx.AsyncClient:
    # Starlette re-raises after rendering the 500, so keep the response instead.
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=target, raise_app_exceptions=False),
        base_url="http://testserver",
    )


async def test_unhandled_errors_hide_details_outside_development(overrides):
    generator, _ = overrides
    generator.outcomes.append(RuntimeError("boom"))

    async with _lenient_client(app) as client:
        response = await client.post("/api/analyze", json=_body())

    assert response.status_code == 500
    payload = response.json()
    assert payload["error"] == "Internal Server Error"
    assert payload["kind"] == "internal_error"
    assert "details" not in payload


async def test_development_mode_includes_unhandled_error_details(overrides):
    generator, _ = overrides
    generator.outcomes.append(RuntimeError("boom"))
    dev_settings = AppSettings(
        environment="development",
        security=SecuritySettings(frontend_api_key=None),
    )
    dev_app = create_app(dev_settings)
    dev_app.dependency_overrides.update(app.dependency_overrides)

    async with _lenient_client(dev_app) as client:
        response = await client.post("/api/analyze", json=_body())

    assert response.status_code == 500
    payload = response.json()
    assert payload["kind"] == "internal_error"
    assert payload["details"] == "boom"


async def test_methodology_current_is_null_without_upload(client):
    response = await client.get("/api/methodology/current")

    assert response.status_code == 200
    assert response.json() == {"methodology": None}


async def test_health_reports_ok(client):
    response = await client.get("/api/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["status"] == "OK"
    assert payload["python_version"]


async def test_throttle_rejects_excess_requests(overrides, client):
    from strategic_analysis import dependencies

    generator, _ = overrides
    generator.outcomes.append('{"fundamentals": "ok"}')
    throttle = RequestThrottle(limit=2)
    app.dependency_overrides[dependencies.get_request_throttle] = lambda: throttle

    statuses = [
        (await client.post("/api/analyze", json=_body())).status_code for _ in range(3)
    ]

    assert statuses == [200, 200, 429]
    rejected = await client.post("/api/analyze", json=_body())
    assert rejected.json()["kind"] == "rate_limit_exceeded"
    assert int(rejected.headers["Retry-After"]) >= 1


class TestSharedSecret:
    @pytest.fixture()
    def settings(self):
        return AppSettings(security=SecuritySettings(frontend_api_key="s3cret"))

    async def test_missing_key_is_rejected(self, overrides, client):
        generator, _ = overrides

        response = await client.post("/api/analyze", json=_body())

        assert response.status_code == 401
        assert response.json() == {
            "error": "Invalid API key",
            "kind": "auth_error",
            "timestamp": response.json()["timestamp"],
        }
        assert generator.calls == 0

    async def test_wrong_key_is_rejected_on_every_protected_route(self, client):
        headers = {"x-api-key": "nope"}

        assert (await client.get("/api/methodology/current", headers=headers)).status_code == 401
        assert (
            await client.post("/api/export", json={"analysisResults": {"a": "b"}}, headers=headers)
        ).status_code == 401

    async def test_correct_key_is_accepted(self, overrides, client):
        generator, _ = overrides
        generator.outcomes.append('{"fundamentals": "ok"}')

        response = await client.post(
            "/api/analyze", json=_body(), headers={"x-api-key": "s3cret"}
        )

        assert response.status_code == 200

    async def test_health_needs_no_key(self, client):
        assert (await client.get("/api/health")).status_code == 200
