# trace.py
# Append-only execution log for a single chain run.
#
# The controller is the only writer. Everything else (reference resolution,
# tools that look back at earlier results, synthesis) only reads.

import json
from collections.abc import Iterator, Sequence

from tool_chain.models import ExecutedStep, OutputValue


def render_output(output: OutputValue) -> str:
    """Flatten a step output to text for prompts, digests and final results."""
    if output is None:
        return ""
    if isinstance(output, str):
        return output
    return json.dumps(output, ensure_ascii=False, indent=2)


def truncate(text: str, limit: int) -> str:
    if len(text) > limit:
        return text[:limit] + "..."
    return text


class ExecutionTrace(Sequence[ExecutedStep]):
    """Ordered record of every attempted step. Entries are never replaced."""

    def __init__(self) -> None:
        self._entries: list[ExecutedStep] = []

    def append(self, entry: ExecutedStep) -> None:
        self._entries.append(entry)

    def __len__(self) -> int:
        return len(self._entries)

    def __getitem__(self, index):
        return self._entries[index]

    def __iter__(self) -> Iterator[ExecutedStep]:
        return iter(self._entries)

    def last_output(self) -> OutputValue:
        if not self._entries:
            return None
        return self._entries[-1].output

    def snapshot(self) -> list[ExecutedStep]:
        """Shallow copy in step order."""
        return list(self._entries)


def digest(entries: Sequence[ExecutedStep], limit: int = 200) -> str:
    """One line per entry: step number, tool and truncated output."""
    return "\n".join(
        f"Step {number} ({entry.tool}): {truncate(render_output(entry.output), limit)}"
        for number, entry in enumerate(entries, start=1)
    )
