# extraction.py
# Heuristic parameter extraction from free-text tool inputs.
#
# Planned steps often describe numeric inputs in prose ("save 50€ a month
# for 8 years at 3%"). Each function here pulls typed parameters out of
# such text with fixed patterns and falls back to a documented default
# when nothing matches. No orchestration, no I/O.
#
# Fallback defaults:
#
#   parameter          default   used by
#   -----------------  --------  --------------
#   monthly_amount     100       computeSavings
#   years              10        computeSavings
#   annual_rate        0 (%)     computeSavings
#   height_cm          170       computeBMI
#   weight_kg          70        computeBMI
#   max_words          200       summarize

import re
from typing import Any

from pydantic import BaseModel, Field

SAVINGS_DEFAULTS = {"monthly_amount": 100.0, "years": 10.0, "annual_rate": 0.0}
BODY_DEFAULTS = {"height_cm": 170.0, "weight_kg": 70.0}
DEFAULT_MAX_WORDS = 200

# "1,000" and "1,000.50" are grouped thousands; a lone comma otherwise marks
# decimals ("2,5").
_NUMBER = r"\d{1,3}(?:,\d{3})+(?:\.\d+)?(?!\d)|\d+(?:[.,]\d+)?"
_NUM = "(" + _NUMBER + ")"

_MONEY_AFTER = re.compile(
    _NUM + r"\s*(?:€|\$|eur\b|euros?\b|usd\b|dollars?\b|per\s+month\b|a\s+month\b|/\s*month\b|monthly\b)",
    re.IGNORECASE,
)
_MONEY_BEFORE = re.compile(r"(?:€|\$)\s*" + _NUM)
_YEARS = re.compile(_NUM + r"\s*(?:years?|yrs?)\b", re.IGNORECASE)
_PERCENT = re.compile(_NUM + r"\s*(?:%|percent\b|per\s+cent\b|interest\b)", re.IGNORECASE)
_HEIGHT_CM = re.compile(_NUM + r"\s*(?:cm|centimet(?:er|re)s?)\b", re.IGNORECASE)
_HEIGHT_M = re.compile(r"(?<![\d.])(\d(?:\.\d+)?)\s*(?:m|met(?:er|re)s?)\b", re.IGNORECASE)
_WEIGHT = re.compile(_NUM + r"\s*(?:kg|kgs|kilos?|kilograms?)\b", re.IGNORECASE)
_WORD_LIMIT = re.compile(
    r"(?:in|max(?:imum)?|under|at\s+most|within)\s+(\d+)\s+words", re.IGNORECASE
)
_STEP_INDEX = re.compile(r"\bstep\s+(\d+)\b", re.IGNORECASE)
_ANY_NUMBER = re.compile("-?(?:" + _NUMBER + ")")
_GROUPED = re.compile(r"-?\d{1,3}(?:,\d{3})+(?:\.\d+)?")
_QUOTED = re.compile(r'"([^"]*)"|\'([^\']*)\'|`([^`]*)`')

# Tried in order; the first one present splits the text.
_SEPARATORS = [
    re.compile(r"\s+vs\.?\s+", re.IGNORECASE),
    re.compile(r"\s+versus\s+", re.IGNORECASE),
    re.compile(r"\s+and\s+", re.IGNORECASE),
    re.compile(r"\s+with\s+", re.IGNORECASE),
    re.compile(r"\s*;\s*"),
    re.compile(r"\s*,\s*"),
]


class SavingsParams(BaseModel):
    monthly_amount: float
    years: float
    annual_rate: float
    defaults_applied: list[str] = Field(default_factory=list)


class BodyMetrics(BaseModel):
    height_cm: float
    weight_kg: float
    defaults_applied: list[str] = Field(default_factory=list)


def to_number(value: Any) -> float | None:
    """
    Lenient numeric coercion for record fields.

    Accepts ints, floats and strings such as "180cm", "75 kg" or "5%".
    Returns None when no number can be found.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        match = _ANY_NUMBER.search(value)
        if match:
            return _parse_number(match.group(0))
    return None


def _parse_number(text: str) -> float:
    if _GROUPED.fullmatch(text):
        return float(text.replace(",", ""))
    return float(text.replace(",", "."))


def _first(pattern: re.Pattern, text: str) -> float | None:
    match = pattern.search(text)
    return _parse_number(match.group(1)) if match else None


def extract_savings_params(text: str) -> SavingsParams:
    monthly = _first(_MONEY_AFTER, text)
    if monthly is None:
        monthly = _first(_MONEY_BEFORE, text)
    found = {
        "monthly_amount": monthly,
        "years": _first(_YEARS, text),
        "annual_rate": _first(_PERCENT, text),
    }
    return _with_defaults(SavingsParams, found, SAVINGS_DEFAULTS)


def extract_body_metrics(text: str) -> BodyMetrics:
    height = _first(_HEIGHT_CM, text)
    if height is None:
        metres = _first(_HEIGHT_M, text)
        if metres is not None:
            height = metres * 100
    found = {"height_cm": height, "weight_kg": _first(_WEIGHT, text)}
    return _with_defaults(BodyMetrics, found, BODY_DEFAULTS)


def _with_defaults(model: type[BaseModel], found: dict[str, float | None], defaults: dict[str, float]):
    values: dict[str, Any] = {}
    missing: list[str] = []
    for key, default in defaults.items():
        if found.get(key) is None:
            values[key] = default
            missing.append(key)
        else:
            values[key] = found[key]
    return model(**values, defaults_applied=missing)


def savings_from_record(record: dict[str, Any]) -> SavingsParams:
    found = {
        "monthly_amount": _pick(record, "monthlyAmount", "monthly_amount", "monthly", "rate", "amount"),
        "years": _pick(record, "years", "duration"),
        "annual_rate": _pick(record, "annualInterestRate", "interestRate", "interest_rate", "interest"),
    }
    return _with_defaults(SavingsParams, found, SAVINGS_DEFAULTS)


def body_metrics_from_record(record: dict[str, Any]) -> BodyMetrics:
    found = {
        "height_cm": _pick(record, "heightCm", "height_cm", "height"),
        "weight_kg": _pick(record, "weightKg", "weight_kg", "weight"),
    }
    return _with_defaults(BodyMetrics, found, BODY_DEFAULTS)


def _pick(record: dict[str, Any], *keys: str) -> float | None:
    for key in keys:
        if key in record:
            number = to_number(record[key])
            if number is not None:
                return number
    return None


def extract_two_texts(text: str) -> tuple[str, str]:
    """
    Split one string into the two texts a comparison needs.

    Order of attempts: the first two quoted segments, then the first
    separator from `_SEPARATORS` that occurs, then a split at the middle.
    """
    quoted = [next(g for g in m.groups() if g is not None) for m in _QUOTED.finditer(text)]
    if len(quoted) >= 2:
        return quoted[0], quoted[1]

    for separator in _SEPARATORS:
        parts = separator.split(text, maxsplit=1)
        if len(parts) == 2 and parts[0].strip() and parts[1].strip():
            return parts[0].strip(), parts[1].strip()

    middle = len(text) // 2
    return text[:middle].strip(), text[middle:].strip()


def extract_word_limit(text: str, default: int = DEFAULT_MAX_WORDS) -> int:
    match = _WORD_LIMIT.search(text)
    if match and int(match.group(1)) > 0:
        return int(match.group(1))
    return default


def extract_step_indices(text: str) -> list[int]:
    """1-based step numbers mentioned in `text`, first mention order, no repeats."""
    seen: list[int] = []
    for match in _STEP_INDEX.finditer(text):
        number = int(match.group(1))
        if number not in seen:
            seen.append(number)
    return seen
