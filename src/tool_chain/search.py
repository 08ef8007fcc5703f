# search.py
# Web search through DuckDuckGo (ddgs) with bounded retry.
#
# Only refusals (rate limiting or HTTP 403) are retried, with
# exponential backoff and a little jitter. Every other failure, and
# running out of attempts, surfaces as ToolExecutionError.

import random
import time
from collections.abc import Callable

from ddgs.exceptions import RatelimitException

from tool_chain.display import ChainObserver, NullObserver
from tool_chain.errors import ToolExecutionError


def _is_refusal(exc: Exception) -> bool:
    if isinstance(exc, RatelimitException):
        return True
    message = str(exc).lower()
    return "403" in message or "forbidden" in message or "ratelimit" in message


class SearchClient:
    """DuckDuckGo text search. `sleep` is injectable so tests do not wait."""

    def __init__(
        self,
        max_results: int = 4,
        attempts: int = 3,
        backoff_base: float = 0.5,
        backoff_max: float = 8.0,
        observer: ChainObserver | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.max_results = max_results
        self.attempts = max(1, attempts)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self._observer = observer or NullObserver()
        self._sleep = sleep

    def _fetch(self, query: str) -> list[dict]:
        from ddgs import DDGS

        # Coerce the generator to a list to ensure actual execution
        return list(DDGS().text(query, max_results=self.max_results))

    def search(self, query: str) -> list[dict]:
        attempt = 0
        while True:
            attempt += 1
            try:
                return self._fetch(query)
            except Exception as exc:
                if not _is_refusal(exc):
                    raise ToolExecutionError("search", f"Search failed: {exc}") from exc
                if attempt >= self.attempts:
                    raise ToolExecutionError(
                        "search", f"Search refused after {attempt} attempts: {exc}"
                    ) from exc
                delay = min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)
                delay *= random.uniform(0.8, 1.2)
                self._observer.search_retry(attempt, delay, str(exc))
                self._sleep(delay)


def format_results(results: list[dict]) -> str:
    lines = []
    for r in results:
        lines.append(f"[{r.get('title', 'No Title')}]\n{r.get('body', '')}\nSource: {r.get('href', '')}")
    return "\n\n".join(lines)
