import json

from tool_chain.tools import TextParams


def plan_reply(*steps: dict, explanation: str = "Test chain.") -> str:
    """Serialize a plan the way the planning model would return it."""
    return json.dumps({"steps": list(steps), "explanation": explanation})


def step(tool: str, input, description: str = "") -> dict:
    return {"tool": tool, "input": input, "description": description or f"run {tool}"}


class SpyTool:
    """Registry-compatible tool that records calls and returns a fixed output."""

    def __init__(self, name: str, output="spy output") -> None:
        self.name = name
        self.purpose = f"spy {name}"
        self.output = output
        self.calls = []

    def coerce(self, value):
        return TextParams(text=value if isinstance(value, str) else json.dumps(value))

    def execute(self, params, trace):
        self.calls.append(params.text)
        return self.output
