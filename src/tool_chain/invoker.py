# invoker.py
# Looks a tool up by name, coerces the resolved input, runs it, and turns
# whatever goes wrong inside a tool into ToolExecutionError.

from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ValidationError

from tool_chain.errors import ToolChainError, ToolExecutionError
from tool_chain.models import ExecutedStep, InputValue, OutputValue
from tool_chain.tools import Tool, ToolRegistry


class ToolInvoker:
    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def prepare(self, tool_name: str, value: InputValue) -> tuple[Tool, BaseModel]:
        """
        Resolve `tool_name` and coerce `value` into the tool's parameters.

        Raises UnknownToolError for unregistered names and
        ToolExecutionError when the input cannot be coerced at all.
        """
        tool = self._registry.get(tool_name)
        try:
            params = tool.coerce(value)
        except ToolExecutionError:
            raise
        except (TypeError, ValueError, ValidationError) as exc:
            raise ToolExecutionError(tool.name, f"Invalid input: {exc}") from exc
        return tool, params

    def call(self, tool: Tool, params: Any, trace: Sequence[ExecutedStep]) -> OutputValue:
        try:
            return tool.execute(params, trace)
        except ToolExecutionError:
            raise
        except ToolChainError as exc:
            # Model-backed tools surface LanguageModelError here.
            raise ToolExecutionError(tool.name, str(exc)) from exc
        except Exception as exc:
            raise ToolExecutionError(tool.name, f"{type(exc).__name__}: {exc}") from exc

    def invoke(self, tool_name: str, value: InputValue, trace: Sequence[ExecutedStep] = ()) -> OutputValue:
        tool, params = self.prepare(tool_name, value)
        return self.call(tool, params, trace)
