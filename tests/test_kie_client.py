"""Tests for the Kie.ai client and provider payload parsing.

HTTP traffic is served by httpx.MockTransport; no network access.
"""

import json

import httpx
import pytest

from petsanta.services.exceptions import PermanentError, TransientError
from petsanta.services.image_generation.kie_client import (
    KieClient,
    ProviderFailure,
    ProviderPending,
    ProviderSuccess,
    extract_result_urls,
    parse_task_payload,
)


def make_client(handler) -> KieClient:
    return KieClient(
        api_key="kie_test_key",
        base_url="https://api.kie.test/api/v1",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


class TestParseTaskPayload:
    def test_success_with_result_urls(self):
        payload = {
            "code": 200,
            "msg": "success",
            "data": {
                "taskId": "kie_1",
                "state": "success",
                "resultJson": json.dumps({"resultUrls": ["https://cdn.kie.test/out.png"]}),
            },
        }

        update = parse_task_payload(payload)

        assert update.provider_task_id == "kie_1"
        assert update.result == ProviderSuccess(result_urls=["https://cdn.kie.test/out.png"])
        assert update.raw is payload

    def test_success_without_images(self):
        update = parse_task_payload({"data": {"taskId": "kie_1", "state": "success"}})

        assert update.result == ProviderSuccess(result_urls=[])

    def test_fail_with_reason(self):
        update = parse_task_payload(
            {"data": {"taskId": "kie_1", "state": "fail", "failMsg": "quota exceeded"}}
        )

        assert update.result == ProviderFailure(reason="quota exceeded")

    def test_fail_without_reason(self):
        update = parse_task_payload({"data": {"taskId": "kie_1", "state": "fail", "failMsg": ""}})

        assert update.result == ProviderFailure(reason=None)

    @pytest.mark.parametrize("state", ["waiting", "queuing", "generating", None])
    def test_other_states_are_pending(self, state):
        update = parse_task_payload({"taskId": "kie_1", "state": state})

        assert update.provider_task_id == "kie_1"
        assert update.result == ProviderPending(state=state)

    def test_missing_task_id(self):
        update = parse_task_payload({"data": {"state": "success"}})

        assert update.provider_task_id is None


class TestExtractResultUrls:
    def test_json_string(self):
        assert extract_result_urls('{"resultUrls": ["a", "b"]}') == ["a", "b"]

    def test_already_decoded(self):
        assert extract_result_urls({"resultUrls": ["a"]}) == ["a"]

    @pytest.mark.parametrize("value", [None, "", "not json", "[1, 2]", '{"other": 1}'])
    def test_malformed_values_yield_no_urls(self, value):
        assert extract_result_urls(value) == []


@pytest.mark.asyncio
class TestKieClientSubmit:
    async def test_submit_sends_job_and_returns_task_id(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"code": 200, "msg": "success", "data": {"taskId": "kie_42"}}
            )

        client = make_client(handler)
        task_id = await client.submit(
            prompt="A dog as a reindeer",
            image_urls=["https://uploads.test/dog.png"],
            aspect_ratio="1:1",
            resolution="1K",
            output_format="png",
            callback_url="https://petsanta.test/api/callback",
        )

        assert task_id == "kie_42"
        assert captured["method"] == "POST"
        assert captured["url"] == "https://api.kie.test/api/v1/jobs/createTask"
        assert captured["auth"] == "Bearer kie_test_key"
        assert captured["body"] == {
            "model": "nano-banana-pro",
            "input": {
                "prompt": "A dog as a reindeer",
                "image_input": ["https://uploads.test/dog.png"],
                "aspect_ratio": "1:1",
                "resolution": "1K",
                "output_format": "png",
            },
            "callBackUrl": "https://petsanta.test/api/callback",
        }

    async def test_api_error_envelope_is_permanent(self):
        def handler(request):
            return httpx.Response(200, json={"code": 402, "msg": "Insufficient balance"})

        with pytest.raises(PermanentError, match="Insufficient balance"):
            await make_client(handler).submit("p", ["u"], "1:1", "1K", "png")

    @pytest.mark.parametrize("body", [[], "text", 42])
    async def test_non_object_body_is_permanent(self, body):
        def handler(request):
            return httpx.Response(200, json=body)

        with pytest.raises(PermanentError, match="Unexpected Kie.ai response body"):
            await make_client(handler).submit("p", ["u"], "1:1", "1K", "png")

    async def test_non_object_data_has_no_task_id(self):
        def handler(request):
            return httpx.Response(200, json={"code": 200, "msg": "success", "data": "oops"})

        with pytest.raises(PermanentError, match="no taskId"):
            await make_client(handler).submit("p", ["u"], "1:1", "1K", "png")

    async def test_missing_task_id_is_permanent(self):
        def handler(request):
            return httpx.Response(200, json={"code": 200, "msg": "success", "data": {}})

        with pytest.raises(PermanentError, match="no taskId"):
            await make_client(handler).submit("p", ["u"], "1:1", "1K", "png")

    @pytest.mark.parametrize(
        "status_code,error_type",
        [
            (429, TransientError),
            (500, TransientError),
            (503, TransientError),
            (401, PermanentError),
            (403, PermanentError),
            (422, PermanentError),
        ],
    )
    async def test_http_errors_are_classified(self, status_code, error_type):
        def handler(request):
            return httpx.Response(status_code, text="error")

        with pytest.raises(error_type):
            await make_client(handler).submit("p", ["u"], "1:1", "1K", "png")

    async def test_timeout_is_transient(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransientError, match="timeout"):
            await make_client(handler).submit("p", ["u"], "1:1", "1K", "png")

    async def test_network_error_is_transient(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TransientError, match="Network error"):
            await make_client(handler).submit("p", ["u"], "1:1", "1K", "png")


@pytest.mark.asyncio
class TestKieClientPoll:
    async def test_poll_parses_record(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["task_id"] = request.url.params["taskId"]
            return httpx.Response(
                200,
                json={
                    "code": 200,
                    "msg": "success",
                    "data": {
                        "taskId": "kie_42",
                        "state": "success",
                        "resultJson": '{"resultUrls": ["https://cdn.kie.test/42.png"]}',
                    },
                },
            )

        update = await make_client(handler).poll("kie_42")

        assert captured == {"path": "/api/v1/jobs/recordInfo", "task_id": "kie_42"}
        assert update.provider_task_id == "kie_42"
        assert update.result == ProviderSuccess(result_urls=["https://cdn.kie.test/42.png"])
        assert update.raw["state"] == "success"

    async def test_poll_pending(self):
        def handler(request):
            return httpx.Response(
                200, json={"code": 200, "data": {"taskId": "kie_42", "state": "generating"}}
            )

        update = await make_client(handler).poll("kie_42")

        assert update.result == ProviderPending(state="generating")

    async def test_non_object_data_is_permanent(self):
        def handler(request):
            return httpx.Response(200, json={"code": 200, "msg": "success", "data": "oops"})

        with pytest.raises(PermanentError, match="malformed data"):
            await make_client(handler).poll("kie_42")

    async def test_poll_error_propagates(self):
        def handler(request):
            return httpx.Response(502, text="bad gateway")

        with pytest.raises(TransientError):
            await make_client(handler).poll("kie_42")
