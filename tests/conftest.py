"""Pytest configuration and shared fixtures for all tests.

This module provides:
- Test configuration and markers
- Fake MCP transport and LLM providers
- A chat session wired to the fakes
"""

import pytest
from _pytest.config import Config

from application.services import ChatSession
from fakes import ADD_COMMENT_TOOL, GET_ISSUE_TOOL, FakeLlmProvider, FakeTransport

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config: Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (may spawn processes)")
    config.addinivalue_line("markers", "asyncio: Async tests")


# ============================================================================
# FAKE COLLABORATORS
# ============================================================================


@pytest.fixture
def transport() -> FakeTransport:
    """Provide a fake MCP transport advertising get_issue and add_comment."""
    return FakeTransport(tools=[GET_ISSUE_TOOL, ADD_COMMENT_TOOL])


@pytest.fixture
def make_session(transport: FakeTransport):
    """Build a chat session over the fake transport with scripted providers."""

    def _make(primary: FakeLlmProvider, summary: FakeLlmProvider | None = None, **kwargs) -> ChatSession:
        return ChatSession(
            transport=transport,
            primary_llm=primary,
            summary_llm=summary or FakeLlmProvider(model="fake-summary"),
            **kwargs,
        )

    return _make
