import asyncio
import base64
from unittest.mock import MagicMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from onlycoins.config import Settings
from onlycoins.main import app
from onlycoins.services.errors import RetriesExhaustedError
from onlycoins.services.images import (
    ImageGeneratorService,
    ImageModel,
    ImageModelError,
    WorkersAIImageModel,
    get_image_generator_service,
)
from onlycoins.services.prompts import FixedPromptSelector, IMAGE_PROMPT_TEMPLATES

FAILURE_BODY = {"error": "Failed to generate an image after multiple attempts."}


class FakeImageModel(ImageModel):
    """Plays back one outcome per call; exceptions are raised, anything else returned."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.prompts = []

    @property
    def calls(self):
        return len(self.prompts)

    async def run(self, prompt):
        self.prompts.append(prompt)
        outcome = self.outcomes.pop(0) if self.outcomes else RuntimeError("no more outcomes")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def always_failing():
    return FakeImageModel([RuntimeError("upstream down")] * 10)


# =============================================================================
# SERVICE
# =============================================================================

def test_gives_up_after_three_attempts():
    model = always_failing()
    service = ImageGeneratorService(model)

    with pytest.raises(RetriesExhaustedError) as exc_info:
        asyncio.run(service.generate_image("mystical warrior"))

    assert model.calls == 3
    assert exc_info.value.attempts == 3
    assert str(exc_info.value) == FAILURE_BODY["error"]


def test_stops_at_first_image():
    model = FakeImageModel([RuntimeError("blocked"), {"image": "abc123"}, {"image": "unused"}])
    service = ImageGeneratorService(model)

    data_uri = asyncio.run(service.generate_image("pirate"))

    assert data_uri == "data:image/jpeg;charset=utf-8;base64,abc123"
    assert model.calls == 2


def test_missing_or_empty_image_counts_as_failure():
    model = FakeImageModel([None, {"image": ""}, {"image": "xyz"}])
    service = ImageGeneratorService(model)

    assert asyncio.run(service.generate_image("pirate")).endswith(",xyz")
    assert model.calls == 3


def test_results_without_image_exhaust_retries():
    model = FakeImageModel([{}, None, {"image": None}, {"image": "late"}])
    service = ImageGeneratorService(model)

    with pytest.raises(RetriesExhaustedError):
        asyncio.run(service.generate_image("pirate"))

    assert model.calls == 3


def test_result_that_is_not_a_mapping_is_retried():
    model = FakeImageModel(["oops", ["image"], {"image": "ok"}])
    service = ImageGeneratorService(model)

    assert asyncio.run(service.generate_image("pirate")).endswith(",ok")
    assert model.calls == 3


def test_raw_bytes_are_base64_encoded():
    model = FakeImageModel([{"image": b"\xff\xd8\xff"}])
    service = ImageGeneratorService(model)

    data_uri = asyncio.run(service.generate_image("pirate"))

    assert data_uri == "data:image/jpeg;charset=utf-8;base64," + base64.b64encode(b"\xff\xd8\xff").decode()


def test_attempt_limit_is_configurable():
    model = always_failing()
    service = ImageGeneratorService(model, max_attempts=5)

    with pytest.raises(RetriesExhaustedError):
        asyncio.run(service.generate_image("pirate"))

    assert model.calls == 5


def test_theme_is_substituted_into_selected_template():
    model = FakeImageModel([RuntimeError("blocked"), {"image": "ok"}])
    service = ImageGeneratorService(model, selector=FixedPromptSelector(3))

    asyncio.run(service.generate_image("cyberpunk"))

    expected = IMAGE_PROMPT_TEMPLATES[3].format(theme="cyberpunk")
    assert model.prompts == [expected, expected]


def test_invalid_construction_is_rejected():
    with pytest.raises(ValueError):
        ImageGeneratorService(always_failing(), templates=())
    with pytest.raises(ValueError):
        ImageGeneratorService(always_failing(), max_attempts=0)


# =============================================================================
# WORKERS AI CLIENT
# =============================================================================

def workers_settings(**overrides):
    values = {"CLOUDFLARE_ACCOUNT_ID": "acct", "CLOUDFLARE_API_TOKEN": "token"}
    values.update(overrides)
    return Settings(_env_file=None, **values)


def mock_response(status_code=200, data=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = data
    response.text = str(data)
    return response


def test_workers_ai_returns_result():
    model = WorkersAIImageModel(workers_settings())
    response = mock_response(data={"success": True, "result": {"image": "abc"}, "errors": []})

    with patch("httpx.AsyncClient.post", return_value=response) as mock_post:
        result = asyncio.run(model.run("a prompt"))

    assert result == {"image": "abc"}
    assert mock_post.call_args.args[0] == (
        "https://api.cloudflare.com/client/v4/accounts/acct/ai/run/"
        "@cf/black-forest-labs/flux-1-schnell"
    )
    assert mock_post.call_args.kwargs["json"] == {"prompt": "a prompt"}
    assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer token"


def test_workers_ai_unsuccessful_response_has_no_image():
    model = WorkersAIImageModel(workers_settings())
    response = mock_response(data={"success": False, "result": None, "errors": [{"message": "nsfw"}]})

    with patch("httpx.AsyncClient.post", return_value=response):
        assert asyncio.run(model.run("a prompt")) is None


def test_workers_ai_error_status_raises():
    model = WorkersAIImageModel(workers_settings())

    with patch("httpx.AsyncClient.post", return_value=mock_response(500, {"errors": []})):
        with pytest.raises(ImageModelError):
            asyncio.run(model.run("a prompt"))


def test_workers_ai_connection_error_raises():
    model = WorkersAIImageModel(workers_settings())
    error = httpx.ConnectError("refused")

    with patch("httpx.AsyncClient.post", side_effect=error):
        with pytest.raises(ImageModelError):
            asyncio.run(model.run("a prompt"))


def test_workers_ai_requires_credentials(monkeypatch):
    monkeypatch.delenv("CLOUDFLARE_ACCOUNT_ID", raising=False)
    monkeypatch.delenv("CLOUDFLARE_API_TOKEN", raising=False)
    model = WorkersAIImageModel(Settings(_env_file=None))

    with pytest.raises(ImageModelError):
        asyncio.run(model.run("a prompt"))


def test_http_failures_are_retried_by_the_service():
    service = ImageGeneratorService(WorkersAIImageModel(workers_settings()))

    with patch("httpx.AsyncClient.post", return_value=mock_response(503, {})) as mock_post:
        with pytest.raises(RetriesExhaustedError):
            asyncio.run(service.generate_image("pirate"))

    assert mock_post.await_count == 3


# =============================================================================
# ROUTE
# =============================================================================

@pytest.fixture
def api():
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


def use_model(model, **kwargs):
    service = ImageGeneratorService(model, selector=FixedPromptSelector(0), **kwargs)
    app.dependency_overrides[get_image_generator_service] = lambda: service


def assert_cors(response):
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type"


def test_route_fails_after_three_attempts(api):
    model = always_failing()
    use_model(model)

    response = api.get("/images", params={"name": "pirate"})

    assert response.status_code == 500
    assert response.json() == FAILURE_BODY
    assert model.calls == 3
    assert_cors(response)


def test_route_returns_data_uri_on_second_attempt(api):
    model = FakeImageModel([RuntimeError("blocked"), {"image": "abc123"}])
    use_model(model)

    response = api.get("/images", params={"name": "pirate"})

    assert response.status_code == 200
    assert response.json() == {"dataURI": "data:image/jpeg;charset=utf-8;base64,abc123"}
    assert model.calls == 2
    assert_cors(response)


@pytest.mark.parametrize("params", [{}, {"name": ""}])
def test_route_uses_default_theme(api, params):
    model = FakeImageModel([{"image": "abc"}])
    use_model(model)

    api.get("/images", params=params)

    assert "mystical warrior" in model.prompts[0]


def test_route_accepts_post(api):
    model = FakeImageModel([{"image": "abc"}])
    use_model(model)

    response = api.post("/images?name=samurai")

    assert response.status_code == 200
    assert "samurai" in model.prompts[0]


def test_route_answers_preflight(api):
    response = api.options("/images")

    assert response.status_code == 200
    assert response.content == b""
    assert_cors(response)


def test_route_retries_result_that_is_not_a_mapping(api):
    model = FakeImageModel(["oops", {"image": "ok"}])
    use_model(model)

    response = api.get("/images")

    assert response.status_code == 200
    assert response.json() == {"dataURI": "data:image/jpeg;charset=utf-8;base64,ok"}
    assert model.calls == 2


def test_route_answers_browser_preflight(api):
    response = api.options(
        "/images",
        headers={
            "Origin": "https://onlycoins.example",
            "Access-Control-Request-Method": "GET",
            "Access-Control-Request-Headers": "x-foo",
        },
    )

    assert response.status_code == 200
    assert response.content == b""
    assert_cors(response)


def test_route_sends_fixed_cors_headers_to_cross_origin_requests(api):
    use_model(FakeImageModel([{"image": "abc"}]))

    response = api.get("/images", headers={"Origin": "https://onlycoins.example"})

    assert response.status_code == 200
    assert_cors(response)


def test_posts_route_still_uses_cors_middleware(api):
    response = api.options(
        "/api/posts",
        headers={
            "Origin": "https://onlycoins.example",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
