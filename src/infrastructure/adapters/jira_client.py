"""Jira Cloud REST client used by the Jira MCP tool server."""

import base64
import logging
from typing import Any, Optional

import httpx
from opentelemetry import trace

from observability import jira_request_count, jira_request_errors

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def to_adf(text: str) -> dict[str, Any]:
    """Wrap plain text as a single-paragraph Atlassian Document Format document."""
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {
                "type": "paragraph",
                "content": [{"type": "text", "text": text}],
            }
        ],
    }


class JiraApiError(Exception):
    """A Jira REST request failed.

    Attributes:
        message: Human-readable error message
        status_code: HTTP status, None when the request never got a response
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class JiraClient:
    """
    HTTP client for the Jira Cloud REST API v3.

    Handles:
    - Reading, creating and updating issues
    - Workflow transitions
    - JQL search and comments
    """

    def __init__(
        self,
        domain: str,
        email: str,
        api_token: str,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize the Jira client.

        Args:
            domain: Jira site URL (e.g., https://example.atlassian.net)
            email: Account email used for basic authentication
            api_token: Jira API token
            timeout: HTTP timeout in seconds
        """
        if not domain:
            raise ValueError("Jira domain cannot be empty")

        self._base_url = f"{domain.rstrip('/')}/rest/api/3"
        self._timeout = timeout
        credentials = base64.b64encode(f"{email}:{api_token}".encode("utf-8")).decode("ascii")
        self._headers = {
            "Authorization": f"Basic {credentials}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=self._headers,
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, json: Optional[dict[str, Any]] = None) -> Any:
        """Send one request and decode the JSON body (None for empty bodies)."""
        client = await self._get_client()

        with tracer.start_as_current_span("jira.request") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("jira.path", path)
            jira_request_count.add(1, {"method": method})

            try:
                response = await client.request(method, path, json=json)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                span.set_attribute("error", True)
                span.set_attribute("http.status_code", e.response.status_code)
                jira_request_errors.add(1, {"method": method, "status_code": str(e.response.status_code)})
                logger.error(f"Jira HTTP error on {method} {path}: {e.response.status_code} - {e.response.text[:200]}")
                raise JiraApiError(self._describe_error(e.response), e.response.status_code) from e
            except httpx.RequestError as e:
                span.set_attribute("error", True)
                span.set_attribute("error.message", str(e))
                jira_request_errors.add(1, {"method": method, "status_code": "none"})
                logger.error(f"Jira request error on {method} {path}: {e}")
                raise JiraApiError(f"Request failed: {e}") from e

            if not response.content:
                return None
            return response.json()

    @staticmethod
    def _describe_error(response: httpx.Response) -> str:
        """Build an error message from Jira's error body, if it has one."""
        message = f"Request failed with status code {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            return message
        if not isinstance(body, dict):
            return message

        details = list(body.get("errorMessages") or [])
        details.extend(f"{field}: {error}" for field, error in (body.get("errors") or {}).items())
        if details:
            message = f"{message}: {'; '.join(details)}"
        return message

    async def get_issue(self, issue_key: str) -> dict[str, Any]:
        """Fetch an issue with all its fields."""
        return await self._request("GET", f"/issue/{issue_key}")

    async def create_issue(
        self,
        project_key: str,
        issue_type: str,
        summary: str,
        description: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> dict[str, Any]:
        """Create an issue and return Jira's response (id, key, self)."""
        fields: dict[str, Any] = {
            "project": {"key": project_key},
            "issuetype": {"name": issue_type},
            "summary": summary,
        }
        if description:
            fields["description"] = to_adf(description)
        if priority:
            fields["priority"] = {"name": priority}

        return await self._request("POST", "/issue", json={"fields": fields})

    async def update_issue(self, issue_key: str, fields: dict[str, Any]) -> None:
        """Update issue fields. Values are sent as given."""
        await self._request("PUT", f"/issue/{issue_key}", json={"fields": fields})

    async def get_transitions(self, issue_key: str) -> list[dict[str, Any]]:
        """List the workflow transitions currently available for an issue."""
        data = await self._request("GET", f"/issue/{issue_key}/transitions")
        return (data or {}).get("transitions", [])

    async def transition_issue(self, issue_key: str, transition_id: str) -> None:
        """Move an issue through a workflow transition."""
        await self._request("POST", f"/issue/{issue_key}/transitions", json={"transition": {"id": transition_id}})

    async def search_issues(self, jql: str, max_results: int = 50) -> dict[str, Any]:
        """Run a JQL search."""
        return await self._request("POST", "/search", json={"jql": jql, "maxResults": max_results})

    async def add_comment(self, issue_key: str, comment: str) -> dict[str, Any]:
        """Add a plain-text comment to an issue."""
        return await self._request("POST", f"/issue/{issue_key}/comment", json={"body": to_adf(comment)})
