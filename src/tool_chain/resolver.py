# resolver.py
# Reference-marker substitution for step inputs.
#
# A planned input may say "output from step 2" or "output from previous
# step" instead of carrying a literal value. Markers are replaced with the
# materialized output of the referenced entry before the tool is invoked.
# Pure: the trace is only read, never touched.

import re
from collections.abc import Sequence
from typing import Any

from tool_chain.models import ExecutedStep, InputValue

STEP_REFERENCE = re.compile(r"output\s+from\s+step\s+(\d+)", re.IGNORECASE)
PREVIOUS_REFERENCE = re.compile(r"output\s+from\s+(?:the\s+)?previous\s+step", re.IGNORECASE)

# Concatenation of a literal with a reference, e.g. "Rome + output from step 1".
# Plans carrying this are rejected rather than repaired.
CONCATENATED_REFERENCE = re.compile(
    r"\+\s*(?:the\s+)?output\s+from\s+(?:step\s+\d+|(?:the\s+)?previous\s+step)",
    re.IGNORECASE,
)


def _resolve_text(text: str, trace: Sequence[ExecutedStep]) -> Any:
    match = STEP_REFERENCE.search(text)
    if match:
        number = int(match.group(1))
        if 1 <= number <= len(trace) and trace[number - 1].output is not None:
            return trace[number - 1].output

    if PREVIOUS_REFERENCE.search(text) and len(trace) > 0:
        output = trace[-1].output
        if output is not None:
            return output

    return text


def resolve(raw: InputValue, trace: Sequence[ExecutedStep]) -> InputValue:
    """
    Return `raw` with reference markers replaced by prior outputs.

    Text inputs are replaced wholesale by the referenced output. Records
    have each text-valued field resolved independently. A marker pointing
    at a step that has not produced output is left as literal text.
    """
    if isinstance(raw, str):
        return _resolve_text(raw, trace)
    if isinstance(raw, dict):
        return {
            key: _resolve_text(value, trace) if isinstance(value, str) else value
            for key, value in raw.items()
        }
    return raw


def find_concatenation(raw: InputValue) -> str | None:
    """Return the first text value containing a forbidden concatenated reference."""
    texts = [raw] if isinstance(raw, str) else [v for v in raw.values() if isinstance(v, str)]
    for text in texts:
        if CONCATENATED_REFERENCE.search(text):
            return text
    return None
