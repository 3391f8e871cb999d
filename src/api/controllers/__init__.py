"""API controllers for the Jira agent host.

Controllers are auto-discovered by WebApplicationBuilder from this package.
"""

from api.controllers.chat_controller import ChatController

__all__ = [
    "ChatController",
]
