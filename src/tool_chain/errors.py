# errors.py
# Exception taxonomy for the tool-chain engine.
#
# Every failure the controller knows how to recover from derives from
# ToolChainError. Anything else reaching the controller is a bug.


class ToolChainError(Exception):
    """Base class for all recoverable chain failures."""


class LanguageModelError(ToolChainError):
    """Raised when the chat-completion endpoint fails or returns nothing usable."""


class PlanParseError(ToolChainError):
    """Raised when the planning response holds no extractable plan JSON."""


class InvalidPlanError(ToolChainError):
    """Raised when a parsed plan contains a forbidden reference concatenation."""


class UnknownToolError(ToolChainError):
    """Raised when a plan step names a tool absent from the registry."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"Tool '{tool}' is not in the registry.")
        self.tool = tool


class ToolExecutionError(ToolChainError):
    """Raised when a tool rejects its input or its own I/O fails."""

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(f"{tool}: {message}")
        self.tool = tool
        self.reason = message


class SynthesisError(ToolChainError):
    """Raised inside the synthesizer when the fallback model call fails. Never escapes it."""
