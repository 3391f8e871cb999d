"""Tests for JiraClient against a mocked Jira REST API."""

import base64
import json
from typing import Callable

import httpx
import pytest

from infrastructure.adapters import JiraApiError, JiraClient, to_adf


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> JiraClient:
    client = JiraClient(domain="https://example.atlassian.net/", email="bot@example.com", api_token="secret")
    client._client = httpx.AsyncClient(base_url=client.base_url, headers=client._headers, transport=httpx.MockTransport(handler))
    return client


class Recorder:
    """Records requests and answers each with the same response."""

    def __init__(self, status_code: int = 200, payload=None) -> None:
        self.requests: list[httpx.Request] = []
        self._status_code = status_code
        self._payload = payload

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self._payload is None:
            return httpx.Response(self._status_code)
        return httpx.Response(self._status_code, json=self._payload)

    @property
    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)


class TestToAdf:
    def test_single_paragraph_document(self):
        assert to_adf("hello") == {
            "type": "doc",
            "version": 1,
            "content": [{"type": "paragraph", "content": [{"type": "text", "text": "hello"}]}],
        }


class TestJiraClient:
    """Test request construction."""

    def test_empty_domain_rejected(self):
        with pytest.raises(ValueError):
            JiraClient(domain="", email="bot@example.com", api_token="secret")

    def test_base_url(self):
        client = JiraClient(domain="https://example.atlassian.net/", email="bot@example.com", api_token="secret")

        assert client.base_url == "https://example.atlassian.net/rest/api/3"

    @pytest.mark.asyncio
    async def test_get_issue_uses_basic_auth(self):
        recorder = Recorder(payload={"key": "PROJ-1"})
        client = make_client(recorder)

        issue = await client.get_issue("PROJ-1")

        request = recorder.requests[0]
        expected = base64.b64encode(b"bot@example.com:secret").decode()
        assert issue == {"key": "PROJ-1"}
        assert request.method == "GET"
        assert request.url == "https://example.atlassian.net/rest/api/3/issue/PROJ-1"
        assert request.headers["Authorization"] == f"Basic {expected}"
        assert request.headers["Accept"] == "application/json"

    @pytest.mark.asyncio
    async def test_create_issue_body(self):
        recorder = Recorder(status_code=201, payload={"id": "10001", "key": "PROJ-42"})
        client = make_client(recorder)

        created = await client.create_issue("PROJ", "Bug", "Crash on login", description="Stack trace attached", priority="High")

        assert created["key"] == "PROJ-42"
        assert recorder.last_body == {
            "fields": {
                "project": {"key": "PROJ"},
                "issuetype": {"name": "Bug"},
                "summary": "Crash on login",
                "description": to_adf("Stack trace attached"),
                "priority": {"name": "High"},
            }
        }

    @pytest.mark.asyncio
    async def test_create_issue_omits_optional_fields(self):
        recorder = Recorder(status_code=201, payload={"key": "PROJ-43"})
        client = make_client(recorder)

        await client.create_issue("PROJ", "Task", "Write docs")

        assert set(recorder.last_body["fields"]) == {"project", "issuetype", "summary"}

    @pytest.mark.asyncio
    async def test_update_issue_with_empty_response(self):
        """Test that a 204 No Content response is accepted."""
        recorder = Recorder(status_code=204)
        client = make_client(recorder)

        await client.update_issue("PROJ-1", {"summary": "New title"})

        assert recorder.requests[0].method == "PUT"
        assert recorder.last_body == {"fields": {"summary": "New title"}}

    @pytest.mark.asyncio
    async def test_transitions(self):
        recorder = Recorder(payload={"transitions": [{"id": "31", "name": "Done"}]})
        client = make_client(recorder)

        transitions = await client.get_transitions("PROJ-1")
        await client.transition_issue("PROJ-1", "31")

        assert transitions == [{"id": "31", "name": "Done"}]
        assert recorder.requests[1].url.path == "/rest/api/3/issue/PROJ-1/transitions"
        assert recorder.last_body == {"transition": {"id": "31"}}

    @pytest.mark.asyncio
    async def test_search_issues(self):
        recorder = Recorder(payload={"total": 0, "issues": []})
        client = make_client(recorder)

        await client.search_issues("project = PROJ", 10)

        assert recorder.requests[0].method == "POST"
        assert recorder.requests[0].url.path == "/rest/api/3/search"
        assert recorder.last_body == {"jql": "project = PROJ", "maxResults": 10}

    @pytest.mark.asyncio
    async def test_add_comment(self):
        recorder = Recorder(status_code=201, payload={"id": "100"})
        client = make_client(recorder)

        await client.add_comment("PROJ-1", "Looking into it")

        assert recorder.requests[0].url.path == "/rest/api/3/issue/PROJ-1/comment"
        assert recorder.last_body == {"body": to_adf("Looking into it")}


class TestJiraClientErrors:
    """Test mapping of failures to JiraApiError."""

    @pytest.mark.asyncio
    async def test_status_error_with_jira_messages(self):
        client = make_client(Recorder(status_code=400, payload={"errorMessages": ["Bad JQL"], "errors": {"summary": "Field is required"}}))

        with pytest.raises(JiraApiError) as exc_info:
            await client.search_issues("project = ")

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Request failed with status code 400: Bad JQL; summary: Field is required"

    @pytest.mark.asyncio
    async def test_status_error_without_body(self):
        client = make_client(Recorder(status_code=404))

        with pytest.raises(JiraApiError) as exc_info:
            await client.get_issue("NOPE-1")

        assert exc_info.value.message == "Request failed with status code 404"

    @pytest.mark.asyncio
    async def test_request_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Name or service not known", request=request)

        with pytest.raises(JiraApiError) as exc_info:
            await make_client(handler).get_issue("PROJ-1")

        assert exc_info.value.status_code is None
        assert exc_info.value.message == "Request failed: Name or service not known"

    @pytest.mark.asyncio
    async def test_close(self):
        client = make_client(Recorder(payload={}))

        await client.close()
        await client.close()

        assert client._client is None
