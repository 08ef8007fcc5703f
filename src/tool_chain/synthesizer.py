# synthesizer.py
# Fallback answer composition when the last step's output is not usable on
# its own. Never raises: a failed model call becomes a fixed apology.

from collections.abc import Sequence

from tool_chain.display import ChainObserver, NullObserver
from tool_chain.errors import LanguageModelError, SynthesisError
from tool_chain.llm import LanguageModel
from tool_chain.models import ExecutedStep, OutputValue
from tool_chain.trace import digest, render_output

SYNTHESIS_APOLOGY = (
    "I'm sorry, I could not put together an answer from the steps that were run. "
    "Please try rephrasing your question."
)

# Lower-case fragments that mark an output as a failure message.
FAILURE_MARKERS = ("could not", "no results found")

SYNTHESIS_SYSTEM_PROMPT = """\
You are a helpful assistant. Answer the user's original question using ONLY
the tool results listed below. If the results do not contain the answer, say
what is missing instead of guessing.\
"""


def unusable_reason(output: OutputValue) -> str | None:
    """Why `output` cannot stand as a final answer, or None if it can."""
    text = render_output(output).strip()
    if not text or output == {}:
        return "empty output"
    lowered = text.lower()
    for marker in FAILURE_MARKERS:
        if marker in lowered:
            return f"output says '{marker}'"
    return None


class Synthesizer:
    def __init__(
        self,
        llm: LanguageModel,
        digest_chars: int = 200,
        observer: ChainObserver | None = None,
    ) -> None:
        self._llm = llm
        self._digest_chars = digest_chars
        self._observer = observer or NullObserver()

    def _request(self, query: str, trace: Sequence[ExecutedStep], explanation: str) -> str:
        messages = [
            {"role": "system", "content": SYNTHESIS_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Original question: {query}\n\n"
                    f"Plan rationale: {explanation or 'n/a'}\n\n"
                    f"Tool results:\n{digest(trace, self._digest_chars)}"
                ),
            },
        ]
        try:
            answer = self._llm.complete(messages)
        except LanguageModelError as exc:
            raise SynthesisError(str(exc)) from exc
        except Exception as exc:
            raise SynthesisError(f"{type(exc).__name__}: {exc}") from exc
        if not answer.strip():
            raise SynthesisError("Model returned an empty answer.")
        return answer

    def synthesize(self, query: str, trace: Sequence[ExecutedStep], explanation: str) -> str:
        try:
            return self._request(query, trace, explanation)
        except SynthesisError as exc:
            self._observer.synthesis_failed(str(exc))
            return SYNTHESIS_APOLOGY
