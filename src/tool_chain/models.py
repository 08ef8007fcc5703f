# models.py
# Data contracts for the tool-chain engine.
# No business logic lives here: pure schema and validation.

import json
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

# A step input is either free text or a structured record.
InputValue = Union[str, dict[str, Any]]

# A step output is text, a structured record, or None when a tool produced nothing.
OutputValue = Union[str, dict[str, Any], None]


class ChainState(str, Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


class Step(BaseModel):
    """A single planned tool call."""

    model_config = ConfigDict(frozen=True)

    tool: str = Field(..., description="Tool name, resolved against the registry at execution time.")
    input: InputValue = Field(default="", description="Free text or record; may hold reference markers.")
    description: str = Field(default="", description="Why the planner included this step.")

    @field_validator("input", mode="before")
    @classmethod
    def _scalar_input_to_text(cls, value: Any) -> Any:
        # Models occasionally emit bare numbers or lists; keep them as text.
        if value is None:
            return ""
        if isinstance(value, (str, dict)):
            return value
        if isinstance(value, list):
            return json.dumps(value, ensure_ascii=False)
        return str(value)


class Plan(BaseModel):
    """The ordered steps a planning call proposed for one query."""

    model_config = ConfigDict(frozen=True)

    steps: list[Step] = Field(..., min_length=1)
    explanation: str = Field(default="")


class ExecutedStep(BaseModel):
    """Immutable trace entry recorded after each attempted step."""

    model_config = ConfigDict(frozen=True)

    tool: str
    input: InputValue = Field(..., description="Input after reference resolution.")
    output: OutputValue = None
    description: str = ""
    error: bool = Field(default=False, description="True when output is an error marker.")
    defaults_applied: list[str] = Field(
        default_factory=list,
        description="Parameters filled from fallback defaults during input coercion.",
    )


class ChainResult(BaseModel):
    """The only value the controller hands back to its caller."""

    result: str
    steps: list[ExecutedStep] = Field(default_factory=list)
    explanation: str = ""


def error_marker(message: str) -> dict[str, Any]:
    return {"error": message}
