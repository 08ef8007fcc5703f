from tool_chain.models import ExecutedStep
from tool_chain.resolver import find_concatenation, resolve
from tool_chain.trace import ExecutionTrace


def _trace(*outputs) -> ExecutionTrace:
    trace = ExecutionTrace()
    for number, output in enumerate(outputs, start=1):
        trace.append(ExecutedStep(tool=f"tool{number}", input="x", output=output))
    return trace


# ---------------------------------------------------------------------------
# Text inputs
# ---------------------------------------------------------------------------


def test_absolute_reference_substitutes_output_verbatim():
    trace = _trace({"bmi": "23.15", "category": "normal weight"}, "second")
    assert resolve("output from step 1", trace) == {"bmi": "23.15", "category": "normal weight"}


def test_absolute_reference_is_case_insensitive():
    trace = _trace("first", "second")
    assert resolve("Use the Output From Step 2 here", trace) == "second"


def test_previous_reference_uses_most_recent_output():
    trace = _trace("first", "second")
    assert resolve("output from previous step", trace) == "second"


def test_reference_to_missing_step_passes_through():
    trace = _trace("first")
    assert resolve("output from step 3", trace) == "output from step 3"


def test_previous_reference_on_empty_trace_passes_through():
    assert resolve("output from previous step", ExecutionTrace()) == "output from previous step"


def test_reference_to_null_output_passes_through():
    trace = _trace(None)
    assert resolve("output from step 1", trace) == "output from step 1"


def test_text_without_marker_is_unchanged():
    trace = _trace("first")
    assert resolve("plain query", trace) == "plain query"


# ---------------------------------------------------------------------------
# Record inputs
# ---------------------------------------------------------------------------


def test_record_fields_resolve_independently():
    trace = _trace("alpha", "beta")
    raw = {"text1": "output from step 1", "text2": "output from previous step", "limit": 3}
    assert resolve(raw, trace) == {"text1": "alpha", "text2": "beta", "limit": 3}


def test_record_is_not_mutated():
    trace = _trace("alpha")
    raw = {"text1": "output from step 1", "text2": "literal"}
    resolve(raw, trace)
    assert raw == {"text1": "output from step 1", "text2": "literal"}


# ---------------------------------------------------------------------------
# Purity
# ---------------------------------------------------------------------------


def test_resolution_is_idempotent_and_leaves_trace_alone():
    trace = _trace("alpha", {"amount": "12000.00"})
    before = trace.snapshot()
    first = resolve({"a": "output from step 2", "b": "output from step 1"}, trace)
    second = resolve({"a": "output from step 2", "b": "output from step 1"}, trace)
    assert first == second
    assert trace.snapshot() == before


# ---------------------------------------------------------------------------
# Concatenation detection
# ---------------------------------------------------------------------------


def test_concatenation_detected_in_text():
    assert find_concatenation("Rome + output from step 1") == "Rome + output from step 1"
    assert find_concatenation("weather +output from previous step") is not None


def test_concatenation_detected_in_record_field():
    assert find_concatenation({"text1": "a", "text2": "b + output from step 2"}) == "b + output from step 2"


def test_plain_reference_is_not_concatenation():
    assert find_concatenation("output from step 1") is None
    assert find_concatenation({"text1": "1 + 1", "text2": "output from step 1"}) is None
