"""
Exceptions raised by the display core and the session wrapping it.
"""


class AgentDisplayError(Exception):
    """Base exception for agent-display failures."""

    pass


class AlreadyPendingError(AgentDisplayError):
    """Raised when an input request is issued while another one is pending."""

    def __init__(self, request_id: str) -> None:
        self.request_id = request_id
        super().__init__(
            f"Input request {request_id} is still pending; "
            "wait for it to be answered or cancel it first"
        )


class InvalidRequestError(AgentDisplayError):
    """Raised when an input request definition is malformed."""

    pass


class ActionNotAvailableError(AgentDisplayError):
    """Raised when an action is not in the current catalog."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.name = name
        self.available = available
        super().__init__(
            f"Action '{name}' is not available now. "
            f"Available actions: {', '.join(available)}"
        )


class InvalidArgumentsError(AgentDisplayError):
    """Raised when an action is called with arguments that do not fit its schema."""

    pass
