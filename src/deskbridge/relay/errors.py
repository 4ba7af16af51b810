"""
errors.py — Failures raised by the relay core.

Every error is terminal for the event that triggered it. The router's
event handlers catch these and turn ``notice`` into a message for
whichever party caused or is affected by the failure.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class; ``notice`` is the human-readable text to report."""

    def __init__(self, notice: str):
        super().__init__(notice)
        self.notice = notice


class SelectionError(RelayError):
    """A visitor selected an agent that is not in the directory."""

    def __init__(self, agent_id: str | None):
        super().__init__("The selected agent is not available.")
        self.agent_id = agent_id


class PreconditionError(RelayError):
    """A visitor sent a message before selecting an agent."""

    def __init__(self):
        super().__init__("Please select an agent first.")


class RoutingError(RelayError):
    """An agent message could not be delivered to a visitor."""


class UnroutableMessage(RoutingError):
    """No identity marker or explicit tag was found."""

    def __init__(self):
        super().__init__(
            "Not delivered. Reply directly to a visitor's message, or start your "
            "message with a tag such as 'user:<id>: your text' or "
            "'session_<id>: your text'."
        )


class VisitorOffline(RoutingError):
    """The decoded visitor has no live connection and no durable queue."""

    def __init__(self, tag: str | None = None):
        if tag:
            notice = f"The visitor is offline or away ({tag}); message not delivered."
        else:
            notice = "The visitor has disconnected; message not delivered."
        super().__init__(notice)
        self.tag = tag
