"""Jira tools served over MCP.

Five tools backed by the Jira REST client. Each handler returns an
McpToolResult; Jira API failures come back as error results whose text names
the failed action, so the calling model can narrate them.
"""

import json
import logging
from typing import Any

from infrastructure.adapters.jira_client import JiraApiError, JiraClient, to_adf
from infrastructure.mcp import McpStdioServer, McpToolDefinition, McpToolResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 50

ISSUE_KEY_DESCRIPTION = "The key of the issue to {action} (e.g., PROJ-123)"

GET_ISSUE = McpToolDefinition(
    name="get_issue",
    description="Get details of a Jira issue by its key",
    input_schema={
        "type": "object",
        "properties": {
            "issueKey": {"type": "string", "description": ISSUE_KEY_DESCRIPTION.format(action="retrieve")},
        },
        "required": ["issueKey"],
    },
)

CREATE_ISSUE = McpToolDefinition(
    name="create_issue",
    description="Create a new Jira issue",
    input_schema={
        "type": "object",
        "properties": {
            "projectKey": {"type": "string", "description": "The project key (e.g., PROJ)"},
            "issueType": {"type": "string", "description": "The issue type (e.g., Bug, Task, Story)"},
            "summary": {"type": "string", "description": "The issue summary"},
            "description": {"type": "string", "description": "The issue description"},
            "priority": {"type": "string", "description": "The priority of the issue"},
        },
        "required": ["projectKey", "issueType", "summary"],
    },
)

UPDATE_ISSUE = McpToolDefinition(
    name="update_issue",
    description="Update the summary, description, status or priority of a Jira issue",
    input_schema={
        "type": "object",
        "properties": {
            "issueKey": {"type": "string", "description": ISSUE_KEY_DESCRIPTION.format(action="update")},
            "summary": {"type": "string", "description": "The updated summary"},
            "description": {"type": "string", "description": "The updated description"},
            "status": {"type": "string", "description": "The new status"},
            "priority": {"type": "string", "description": "The new priority"},
        },
        "required": ["issueKey"],
    },
)

SEARCH_ISSUES = McpToolDefinition(
    name="search_issues",
    description="Search Jira issues with a JQL query",
    input_schema={
        "type": "object",
        "properties": {
            "jql": {"type": "string", "description": "The JQL query string"},
            "maxResults": {
                "type": "number",
                "minimum": 1,
                "maximum": 100,
                "default": DEFAULT_MAX_RESULTS,
                "description": "Maximum number of results to return",
            },
        },
        "required": ["jql"],
    },
)

ADD_COMMENT = McpToolDefinition(
    name="add_comment",
    description="Add a comment to a Jira issue",
    input_schema={
        "type": "object",
        "properties": {
            "issueKey": {"type": "string", "description": ISSUE_KEY_DESCRIPTION.format(action="comment on")},
            "comment": {"type": "string", "description": "The comment text"},
        },
        "required": ["issueKey", "comment"],
    },
)


class JiraToolset:
    """The Jira tool handlers, bound to one JiraClient."""

    def __init__(self, client: JiraClient) -> None:
        self._client = client

    def register(self, server: McpStdioServer) -> None:
        """Register every Jira tool on the MCP server."""
        server.add_tool(GET_ISSUE, self.get_issue)
        server.add_tool(CREATE_ISSUE, self.create_issue)
        server.add_tool(UPDATE_ISSUE, self.update_issue)
        server.add_tool(SEARCH_ISSUES, self.search_issues)
        server.add_tool(ADD_COMMENT, self.add_comment)

    async def get_issue(self, arguments: dict[str, Any]) -> McpToolResult:
        try:
            issue = await self._client.get_issue(arguments["issueKey"])
        except JiraApiError as e:
            return McpToolResult.text(f"Error fetching issue: {e.message}", is_error=True)
        return McpToolResult.text(json.dumps(issue, indent=2))

    async def create_issue(self, arguments: dict[str, Any]) -> McpToolResult:
        try:
            created = await self._client.create_issue(
                project_key=arguments["projectKey"],
                issue_type=arguments["issueType"],
                summary=arguments["summary"],
                description=arguments.get("description"),
                priority=arguments.get("priority"),
            )
        except JiraApiError as e:
            return McpToolResult.text(f"Error creating issue: {e.message}", is_error=True)
        logger.info(f"Created Jira issue {created.get('key')}")
        return McpToolResult.text(f"Issue created successfully. Key: {created.get('key')}")

    async def update_issue(self, arguments: dict[str, Any]) -> McpToolResult:
        """Update fields and/or move the issue to a new status.

        A status change goes through the transition whose name matches
        (case-insensitive). Fields are only sent when at least one is given.
        """
        issue_key = arguments["issueKey"]

        fields: dict[str, Any] = {}
        if arguments.get("summary"):
            fields["summary"] = arguments["summary"]
        if arguments.get("description"):
            fields["description"] = to_adf(arguments["description"])
        if arguments.get("priority"):
            fields["priority"] = {"name": arguments["priority"]}

        try:
            status = arguments.get("status")
            if status:
                transitions = await self._client.get_transitions(issue_key)
                transition = next((t for t in transitions if t.get("name", "").lower() == status.lower()), None)
                if transition is None:
                    return McpToolResult.text(f'Status "{status}" not found in available transitions', is_error=True)
                await self._client.transition_issue(issue_key, transition["id"])

            if fields:
                await self._client.update_issue(issue_key, fields)
        except JiraApiError as e:
            return McpToolResult.text(f"Error updating issue: {e.message}", is_error=True)

        return McpToolResult.text(f"Issue {issue_key} updated successfully")

    async def search_issues(self, arguments: dict[str, Any]) -> McpToolResult:
        max_results = int(arguments.get("maxResults", DEFAULT_MAX_RESULTS))
        try:
            data = await self._client.search_issues(arguments["jql"], max_results)
        except JiraApiError as e:
            return McpToolResult.text(f"Error searching issues: {e.message}", is_error=True)

        issues = data.get("issues", [])
        formatted = []
        for issue in issues:
            issue_fields = issue.get("fields", {})
            formatted.append(
                {
                    "key": issue.get("key"),
                    "summary": issue_fields.get("summary"),
                    "status": (issue_fields.get("status") or {}).get("name"),
                    "priority": (issue_fields.get("priority") or {}).get("name"),
                    "created": issue_fields.get("created"),
                    "updated": issue_fields.get("updated"),
                }
            )

        total = data.get("total", len(issues))
        return McpToolResult.text(f"Found {total} issues. Showing {len(formatted)}:\n\n{json.dumps(formatted, indent=2)}")

    async def add_comment(self, arguments: dict[str, Any]) -> McpToolResult:
        issue_key = arguments["issueKey"]
        try:
            await self._client.add_comment(issue_key, arguments["comment"])
        except JiraApiError as e:
            return McpToolResult.text(f"Error adding comment: {e.message}", is_error=True)
        return McpToolResult.text(f"Comment added to issue {issue_key} successfully")
