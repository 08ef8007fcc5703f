# planner.py
# Turns a free-text query into a validated Plan with a single model call.
#
# Parsing: the whole reply as JSON, else the first fenced code block.
# Validation: any step input that glues a literal to a reference
# ("... + output from step 1") rejects the plan outright. There is no
# retry; the controller decides what a failure means.

from pydantic import ValidationError

from tool_chain.errors import InvalidPlanError, PlanParseError
from tool_chain.llm import LanguageModel, parse_json_reply
from tool_chain.models import Plan
from tool_chain.resolver import find_concatenation
from tool_chain.tools import ToolRegistry

PLANNER_SYSTEM_PROMPT = """\
You are an expert tool chain planner. Break the user's query into the
smallest sequence of tool calls that together answer it.

Available tools:
{catalog}

Respond with ONLY valid JSON matching this exact schema:
{{
  "steps": [
    {{
      "tool": "toolName",
      "input": "text for the tool, or an object such as {{\\"text1\\": \\"...\\", \\"text2\\": \\"...\\"}}",
      "description": "why this step is needed"
    }}
  ],
  "explanation": "why this chain of tools was chosen"
}}

RULES:
- Use a single step when one tool is enough.
- Put search before any step that needs its findings.
- To use an earlier result, set the input (or one field of it) to exactly
  "output from step N" (1-based) or "output from previous step".
- NEVER combine text and a reference with "+" (e.g. "Rome + output from step 1");
  such plans are rejected. Use an object with separate fields instead.
- Always give concrete inputs, never placeholders.\
"""


def parse_plan(response: str) -> Plan:
    """Extract and schema-validate a plan. Raises PlanParseError."""
    try:
        data = parse_json_reply(response)
    except ValueError as exc:
        raise PlanParseError(f"Failed to parse tool chain plan: {exc}") from exc

    if not isinstance(data, dict):
        raise PlanParseError("Plan must be a JSON object.")
    try:
        return Plan.model_validate(data)
    except ValidationError as exc:
        raise PlanParseError(f"Plan content is invalid: {exc}") from exc


def validate_plan(plan: Plan) -> Plan:
    """Reject plans that express runtime concatenation. Raises InvalidPlanError."""
    for number, step in enumerate(plan.steps, start=1):
        offending = find_concatenation(step.input)
        if offending is not None:
            raise InvalidPlanError(
                f"Step {number} ({step.tool}) concatenates text with a step reference: "
                f"{offending!r}. References must stand alone."
            )
    return plan


class Planner:
    def __init__(self, llm: LanguageModel, registry: ToolRegistry) -> None:
        self._llm = llm
        self._registry = registry

    def system_prompt(self) -> str:
        return PLANNER_SYSTEM_PROMPT.format(catalog=self._registry.catalog())

    def plan(self, query: str) -> Plan:
        response = self._llm.complete(
            [
                {"role": "system", "content": self.system_prompt()},
                {"role": "user", "content": f'Plan a tool chain for this query: "{query}"'},
            ]
        )
        return validate_plan(parse_plan(response))
