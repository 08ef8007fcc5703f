# tools.py
# Tool registry and the built-in tools.
#
# Every tool owns two steps: `coerce` turns a resolved step input (text or
# record) into typed parameters, `execute` does the work. The invoker calls
# them in that order; the controller never touches a tool directly.

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Protocol

from pydantic import BaseModel, Field

from tool_chain.config import Settings
from tool_chain.display import ChainObserver
from tool_chain.errors import ToolExecutionError, UnknownToolError
from tool_chain.extraction import (
    BodyMetrics,
    SavingsParams,
    body_metrics_from_record,
    extract_body_metrics,
    extract_savings_params,
    extract_step_indices,
    extract_two_texts,
    extract_word_limit,
    savings_from_record,
    to_number,
)
from tool_chain.llm import LanguageModel, parse_json_reply
from tool_chain.models import ExecutedStep, InputValue, OutputValue
from tool_chain.search import SearchClient, format_results
from tool_chain.trace import digest, render_output

CALCULATION_FAILED = "The calculation could not be performed automatically."


class Tool(Protocol):
    name: str
    purpose: str

    def coerce(self, value: InputValue) -> BaseModel: ...

    def execute(self, params: Any, trace: Sequence[ExecutedStep]) -> OutputValue: ...


class ToolRegistry:
    """Name → tool mapping. Adding a tool never touches the controller."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}
        self._aliases: dict[str, str] = {}

    def register(self, tool: Tool, aliases: Sequence[str] = ()) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool
        for alias in aliases:
            self._aliases[alias] = tool.name

    def get(self, name: str) -> Tool:
        key = self._aliases.get(name, name)
        try:
            return self._tools[key]
        except KeyError:
            raise UnknownToolError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self._tools or name in self._aliases

    def names(self) -> list[str]:
        return list(self._tools)

    def catalog(self) -> str:
        """One line per tool for the planning prompt."""
        return "\n".join(f"- {tool.name}: {tool.purpose}" for tool in self._tools.values())


# ---------------------------------------------------------------------------
# Pure calculations
# ---------------------------------------------------------------------------


def _money(value: float) -> str:
    return str(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _plain(value: float) -> int | float:
    return int(value) if float(value).is_integer() else value


def compute_savings(monthly_amount: float, years: float, annual_rate: float = 0.0) -> dict[str, Any]:
    """
    Savings from a fixed monthly deposit.

    Without interest the total is monthly × 12 × years. With interest each
    month adds the deposit and then grows the running total by
    annual_rate / 100 / 12. Amounts are formatted to two decimals.
    """
    if monthly_amount <= 0 or years <= 0:
        raise ToolExecutionError(
            "computeSavings", "Please provide a positive monthly amount and duration."
        )
    if annual_rate < 0:
        raise ToolExecutionError("computeSavings", "Interest rate cannot be negative.")

    if annual_rate > 0:
        months = int(round(years * 12))
        contribution = monthly_amount * months
        monthly_rate = annual_rate / 100 / 12
        amount = 0.0
        for _ in range(months):
            amount = (amount + monthly_amount) * (1 + monthly_rate)
        interest = amount - contribution
        details = f"Total investment: {_money(contribution)}, Interest earned: {_money(interest)}"
    else:
        contribution = monthly_amount * 12 * years
        amount = contribution
        interest = 0.0
        details = f"Total investment over {_plain(years)} years"

    return {
        "amount": _money(amount),
        "totalContribution": _money(contribution),
        "interestEarned": _money(interest),
        "years": _plain(years),
        "monthlyAmount": _money(monthly_amount),
        "annualInterestRate": _money(annual_rate),
        "details": details,
    }


def bmi_category(bmi: float) -> str:
    if bmi < 18.5:
        return "underweight"
    if bmi < 25:
        return "normal weight"
    if bmi < 30:
        return "overweight"
    return "obese"


def compute_bmi(height_cm: float, weight_kg: float) -> dict[str, Any]:
    if height_cm <= 0 or weight_kg <= 0:
        raise ToolExecutionError("computeBMI", "Invalid height or weight values.")
    height_m = height_cm / 100
    bmi = weight_kg / (height_m * height_m)
    return {
        "bmi": _money(bmi),
        "category": bmi_category(bmi),
        "heightCm": _plain(height_cm),
        "weightKg": _plain(weight_kg),
    }


# ---------------------------------------------------------------------------
# Parameter models
# ---------------------------------------------------------------------------


class TextParams(BaseModel):
    text: str
    defaults_applied: list[str] = Field(default_factory=list)


class SummarizeParams(BaseModel):
    text: str
    max_words: int
    defaults_applied: list[str] = Field(default_factory=list)


class CompareParams(BaseModel):
    text1: str
    text2: str
    defaults_applied: list[str] = Field(default_factory=list)


class AnswerParams(BaseModel):
    query: str
    context: str = ""
    defaults_applied: list[str] = Field(default_factory=list)


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return render_output(value)


def _record_text(record: dict[str, Any], *keys: str) -> str | None:
    for key in keys:
        if key in record and record[key] not in (None, ""):
            return _as_text(record[key])
    return None


def _free_text(value: InputValue, *keys: str) -> str:
    """Text of a text input, or of the first matching record field, or the whole record."""
    if isinstance(value, dict):
        text = _record_text(value, *keys)
        return text if text is not None else render_output(value)
    return value


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


class SearchTool:
    name = "search"
    purpose = "Searches the web for current information; input is a search query."

    def __init__(self, client: SearchClient) -> None:
        self._client = client

    def coerce(self, value: InputValue) -> TextParams:
        return TextParams(text=_free_text(value, "query", "searchQuery", "text").strip())

    def execute(self, params: TextParams, trace: Sequence[ExecutedStep]) -> str:
        if not params.text:
            raise ToolExecutionError(self.name, "no query provided.")
        results = self._client.search(params.text)
        if not results:
            return "No results found."
        return format_results(results)


class SummarizeTool:
    name = "summarize"
    purpose = "Condenses long text into a short summary; input is the text (optionally 'in N words')."

    def __init__(self, llm: LanguageModel, default_words: int = 200) -> None:
        self._llm = llm
        self._default_words = default_words

    def coerce(self, value: InputValue) -> SummarizeParams:
        if isinstance(value, dict):
            text = _free_text(value, "text", "content", "input")
            words = to_number(value.get("maxWords", value.get("max_words")))
            if words is not None and words > 0:
                return SummarizeParams(text=text, max_words=int(words))
            return SummarizeParams(
                text=text, max_words=self._default_words, defaults_applied=["max_words"]
            )
        limit = extract_word_limit(value, default=0)
        if limit:
            return SummarizeParams(text=value, max_words=limit)
        return SummarizeParams(text=value, max_words=self._default_words, defaults_applied=["max_words"])

    def execute(self, params: SummarizeParams, trace: Sequence[ExecutedStep]) -> str:
        if not params.text.strip():
            raise ToolExecutionError(self.name, "no text provided.")
        return self._llm.complete(
            [
                {
                    "role": "system",
                    "content": (
                        "You are an expert at summarizing texts. Summarize the given text in at most "
                        f"{params.max_words} words. Keep the most important information."
                    ),
                },
                {"role": "user", "content": params.text},
            ]
        )


class GeneralCalculatorTool:
    name = "computeGeneral"
    purpose = (
        "Solves arithmetic and word problems (costs, percentages, interest without monthly saving); "
        "may refer to earlier results as 'step N'. Returns {result, explanation}."
    )

    SYSTEM_PROMPT = """\
You are a careful mathematician. Solve the problem exactly, double-check the
result, and round money to two decimals. Respond with ONLY this JSON:
{"answer": "<the result in one or two sentences>", "explanation": "<how you got there>"}\
"""

    def __init__(self, llm: LanguageModel) -> None:
        self._llm = llm

    def coerce(self, value: InputValue) -> TextParams:
        return TextParams(text=_free_text(value, "query", "problem", "text"))

    def execute(self, params: TextParams, trace: Sequence[ExecutedStep]) -> dict[str, Any]:
        if not params.text.strip():
            raise ToolExecutionError(self.name, "no calculation task provided.")

        # Earlier results referenced by number, e.g. "compare step 1 and step 2".
        known = []
        for number in extract_step_indices(params.text):
            if 1 <= number <= len(trace) and not trace[number - 1].error:
                known.append(f"Step {number} result: {render_output(trace[number - 1].output)}")
        prompt = f"Calculate precisely: {params.text}"
        if known:
            prompt = "Known values:\n" + "\n".join(known) + "\n\n" + prompt

        reply = self._llm.complete(
            [
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ]
        )
        try:
            data = parse_json_reply(reply)
        except ValueError:
            return {"result": CALCULATION_FAILED, "explanation": reply}
        if not isinstance(data, dict) or "answer" not in data:
            return {"result": CALCULATION_FAILED, "explanation": reply}
        return {"result": str(data["answer"]), "explanation": str(data.get("explanation", ""))}


class SavingsCalculatorTool:
    name = "computeSavings"
    purpose = (
        "Regular saving only: monthly amount, years and annual interest %. "
        "Returns the final amount, contributions and interest earned."
    )

    def coerce(self, value: InputValue) -> SavingsParams:
        if isinstance(value, dict):
            params = savings_from_record(value)
            text = _record_text(value, "text", "query")
            if text and len(params.defaults_applied) == 3:
                return extract_savings_params(text)
            return params
        return extract_savings_params(value)

    def execute(self, params: SavingsParams, trace: Sequence[ExecutedStep]) -> dict[str, Any]:
        return compute_savings(params.monthly_amount, params.years, params.annual_rate)


class TextComparerTool:
    name = "compareTexts"
    purpose = "Finds similarities between two texts; input {text1, text2} or two quoted texts."

    def __init__(self, llm: LanguageModel) -> None:
        self._llm = llm

    def coerce(self, value: InputValue) -> CompareParams:
        if isinstance(value, dict):
            text1 = _record_text(value, "text1", "first")
            text2 = _record_text(value, "text2", "second")
            if text1 is not None and text2 is not None:
                return CompareParams(text1=text1, text2=text2)
            value = _free_text(value, "text", "input")
        text1, text2 = extract_two_texts(value)
        return CompareParams(text1=text1, text2=text2)

    def execute(self, params: CompareParams, trace: Sequence[ExecutedStep]) -> dict[str, Any]:
        if not params.text1 or not params.text2:
            raise ToolExecutionError(self.name, "two non-empty texts are required.")
        similarities = self._llm.complete(
            [
                {"role": "system", "content": "Identify semantic and content similarities between two texts."},
                {
                    "role": "user",
                    "content": (
                        "Compare the following two texts and describe their similarities:\n\n"
                        f"Text 1: {params.text1}\n\nText 2: {params.text2}"
                    ),
                },
            ]
        )
        return {"text1": params.text1, "text2": params.text2, "similarities": similarities}


class BMICalculatorTool:
    name = "computeBMI"
    purpose = "Body mass index from height in cm and weight in kg. Returns {bmi, category}."

    def coerce(self, value: InputValue) -> BodyMetrics:
        if isinstance(value, dict):
            params = body_metrics_from_record(value)
            text = _record_text(value, "text", "query")
            if text and len(params.defaults_applied) == 2:
                return extract_body_metrics(text)
            return params
        return extract_body_metrics(value)

    def execute(self, params: BodyMetrics, trace: Sequence[ExecutedStep]) -> dict[str, Any]:
        return compute_bmi(params.height_cm, params.weight_kg)


class MetricsInterpreterTool:
    name = "interpretMetrics"
    purpose = "Explains health metrics (e.g. a BMI result) in plain language; input is text or a record."

    SYSTEM_PROMPT = """\
You are a health metrics interpreter that provides clear, factual interpretations
of common health measurements. For each metric explain what it means, give the
normal range, interpret the provided value and offer brief practical suggestions.
Always add that this is informational and not medical advice.\
"""

    def __init__(self, llm: LanguageModel) -> None:
        self._llm = llm

    def coerce(self, value: InputValue) -> TextParams:
        if isinstance(value, dict):
            return TextParams(text="\n".join(f"{key}: {_as_text(item)}" for key, item in value.items()))
        return TextParams(text=value)

    def execute(self, params: TextParams, trace: Sequence[ExecutedStep]) -> str:
        if not params.text.strip():
            raise ToolExecutionError(self.name, "no metrics provided.")
        return self._llm.complete(
            [
                {"role": "system", "content": self.SYSTEM_PROMPT},
                {"role": "user", "content": f"Interpret the following health metrics:\n{params.text}"},
            ]
        )


class DirectAnswerTool:
    name = "directAnswer"
    purpose = "Answers general questions directly, using earlier step results as context."

    def __init__(self, llm: LanguageModel, digest_chars: int = 200) -> None:
        self._llm = llm
        self._digest_chars = digest_chars

    def coerce(self, value: InputValue) -> AnswerParams:
        if isinstance(value, dict):
            query = _free_text(value, "query", "question", "text")
            return AnswerParams(query=query, context=_record_text(value, "context") or "")
        return AnswerParams(query=value)

    def execute(self, params: AnswerParams, trace: Sequence[ExecutedStep]) -> str:
        if not params.query.strip():
            raise ToolExecutionError(self.name, "no question provided.")
        context = ""
        if len(trace) > 0:
            context = "Using information from previous steps:\n" + digest(trace, self._digest_chars) + "\n\n"
        if params.context:
            context += f"Additional context:\n{params.context}\n\n"
        return self._llm.complete(
            [
                {
                    "role": "system",
                    "content": "You are a helpful assistant that provides clear, accurate answers based on available information.",
                },
                {"role": "user", "content": f"{context}Based on this context, please answer: {params.query}"},
            ]
        )


def build_registry(
    llm: LanguageModel,
    settings: Settings | None = None,
    observer: ChainObserver | None = None,
    search_client: SearchClient | None = None,
) -> ToolRegistry:
    """Registry with the eight built-in tools. Older tool names stay usable as aliases."""
    settings = settings or Settings()
    search_client = search_client or SearchClient(
        max_results=settings.search_max_results,
        attempts=settings.search_attempts,
        backoff_base=settings.search_backoff_base,
        backoff_max=settings.search_backoff_max,
        observer=observer,
    )

    registry = ToolRegistry()
    registry.register(SearchTool(search_client), aliases=["webSearch"])
    registry.register(SummarizeTool(llm, settings.summary_words), aliases=["textSummarizer"])
    registry.register(GeneralCalculatorTool(llm), aliases=["calculateGeneral"])
    registry.register(SavingsCalculatorTool(), aliases=["calculateSavings"])
    registry.register(TextComparerTool(llm), aliases=["textComparer"])
    registry.register(BMICalculatorTool(), aliases=["calculateBMI"])
    registry.register(MetricsInterpreterTool(llm), aliases=["interpretHealthMetrics"])
    registry.register(DirectAnswerTool(llm, settings.digest_chars), aliases=["GPTIntern"])
    return registry
