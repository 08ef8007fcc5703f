from unittest.mock import MagicMock

from fakes import SpyTool, plan_reply, step

from tool_chain.chain import CHAIN_HALTED, PLAN_REJECTED, ChainController
from tool_chain.config import Settings
from tool_chain.errors import LanguageModelError
from tool_chain.invoker import ToolInvoker
from tool_chain.models import ChainResult, ChainState
from tool_chain.planner import Planner
from tool_chain.synthesizer import SYNTHESIS_APOLOGY, Synthesizer
from tool_chain.tools import SavingsCalculatorTool, ToolRegistry

# ---------------------------------------------------------------------------
# Successful chains
# ---------------------------------------------------------------------------


def test_all_steps_recorded_in_plan_order(controller, llm):
    llm.complete.side_effect = [
        plan_reply(
            step("computeSavings", "100€ per month for 10 years"),
            step("computeBMI", {"heightCm": 180, "weightKg": 75}),
        )
    ]

    result = controller.run("Two unrelated calculations")

    assert isinstance(result, ChainResult)
    assert [s.tool for s in result.steps] == ["computeSavings", "computeBMI"]
    assert not any(s.error for s in result.steps)
    assert result.steps[0].output["amount"] == "12000.00"
    assert result.steps[1].output["bmi"] == "23.15"
    assert '"category": "normal weight"' in result.result
    assert result.explanation == "Test chain."
    # Planning only; both tools are deterministic and no synthesis was needed.
    assert llm.complete.call_count == 1


def test_text_output_is_returned_as_result(controller, llm):
    llm.complete.side_effect = [plan_reply(step("directAnswer", "What is 2 + 2?")), "It is 4."]
    result = controller.run("What is 2 + 2?")
    assert result.result == "It is 4."
    assert len(result.steps) == 1


def test_empty_step_input_falls_back_to_query(controller, llm):
    llm.complete.side_effect = [plan_reply(step("computeSavings", ""))]
    result = controller.run("I save 20€ per month for 5 years")
    assert result.steps[0].input == "I save 20€ per month for 5 years"
    assert result.steps[0].output["amount"] == "1200.00"


def test_blank_step_input_falls_back_to_query(controller, llm):
    llm.complete.side_effect = [plan_reply(step("computeSavings", "   "))]
    result = controller.run("I save 20€ per month for 5 years")
    assert result.steps[0].input == "I save 20€ per month for 5 years"
    assert result.steps[0].output["amount"] == "1200.00"


def test_defaults_are_recorded_on_the_step(controller, llm):
    llm.complete.side_effect = [plan_reply(step("computeBMI", "my bmi please"))]
    result = controller.run("What is my BMI?")
    assert result.steps[0].defaults_applied == ["height_cm", "weight_kg"]
    assert result.steps[0].output["bmi"] == "24.22"


# ---------------------------------------------------------------------------
# Reference resolution
# ---------------------------------------------------------------------------


def test_step_reference_resolves_to_materialized_output(controller, llm):
    llm.complete.side_effect = [
        plan_reply(
            step("computeBMI", "180 cm and 75 kg"),
            step("interpretMetrics", "output from step 1"),
        ),
        "A BMI of 23.15 is in the normal range.",
    ]

    result = controller.run("I'm 180 cm, 75 kg. What's my BMI and what does it mean?")

    first, second = result.steps
    assert second.input == first.output
    assert second.input != "output from step 1"
    interpret_prompt = llm.complete.call_args_list[1].args[0][1]["content"]
    assert "bmi: 23.15" in interpret_prompt
    assert result.result == "A BMI of 23.15 is in the normal range."


def test_previous_step_reference_in_record_field(controller, llm, search_client):
    llm.complete.side_effect = [
        plan_reply(
            step("search", "pizza calories"),
            step("compareTexts", {"text1": "output from previous step", "text2": "A pizza has 800 kcal."}),
        ),
        "Both mention calories.",
    ]

    result = controller.run("Does the web agree a pizza has 800 kcal?")

    compared = result.steps[1]
    assert compared.input["text1"] == result.steps[0].output
    assert compared.output["similarities"] == "Both mention calories."
    search_client.search.assert_called_once_with("pizza calories")


# ---------------------------------------------------------------------------
# Plan-level failures
# ---------------------------------------------------------------------------


def test_concatenated_reference_rejects_plan_before_any_tool(llm, observer):
    spy = SpyTool("search")
    registry = ToolRegistry()
    registry.register(spy)
    controller = ChainController(Planner(llm, registry), ToolInvoker(registry), Synthesizer(llm), observer)
    llm.complete.side_effect = [
        plan_reply(step("search", "rome"), step("search", "weather in + output from step 1")),
    ]

    result = controller.run("Weather in the capital of Italy?")

    assert result.steps == []
    assert result.result.startswith(PLAN_REJECTED)
    assert spy.calls == []
    observer.plan_rejected.assert_called_once()


def test_unparseable_plan_returns_safe_result(controller, llm):
    llm.complete.side_effect = ["Sure, I will search for that!"]
    result = controller.run("anything")
    assert result.steps == []
    assert result.result.startswith(PLAN_REJECTED)


def test_planning_model_failure_returns_safe_result(controller, llm):
    llm.complete.side_effect = LanguageModelError("connection refused")
    result = controller.run("anything")
    assert result.steps == []
    assert "connection refused" in result.result


# ---------------------------------------------------------------------------
# Step-level failures
# ---------------------------------------------------------------------------


def test_failing_step_stops_chain_and_keeps_partial_trace(llm, observer):
    first, third = SpyTool("first"), SpyTool("third")
    registry = ToolRegistry()
    registry.register(first)
    registry.register(third)
    registry.register(SavingsCalculatorTool())
    controller = ChainController(Planner(llm, registry), ToolInvoker(registry), Synthesizer(llm), observer)
    llm.complete.side_effect = [
        plan_reply(
            step("first", "go"),
            step("computeSavings", {"monthlyAmount": -5, "years": 2}),
            step("third", "output from previous step"),
        )
    ]

    result = controller.run("three steps")

    assert len(result.steps) == 2
    assert not result.steps[0].error
    assert result.steps[1].error
    assert "error" in result.steps[1].output
    assert third.calls == []
    assert result.result.startswith(CHAIN_HALTED)
    assert "step 2" in result.result
    observer.step_failed.assert_called_once()
    observer.state_changed.assert_any_call(ChainState.FAILED)


def test_first_step_failure_leaves_single_error_entry(controller, llm):
    llm.complete.side_effect = [plan_reply(step("computeBMI", {"heightCm": 0, "weightKg": 70}))]
    result = controller.run("bmi")
    assert len(result.steps) == 1
    assert result.steps[0].error


def test_unknown_tool_is_recorded_and_halts(controller, llm):
    llm.complete.side_effect = [
        plan_reply(step("computeBMI", "180 cm 75 kg"), step("teleport", "Mars"), step("computeBMI", "x"))
    ]

    result = controller.run("bmi then teleport")

    assert isinstance(result, ChainResult)
    assert [s.tool for s in result.steps] == ["computeBMI", "teleport"]
    assert result.steps[1].error
    assert "not in the registry" in result.result


def test_model_failure_inside_tool_becomes_step_error(controller, llm):
    llm.complete.side_effect = [
        plan_reply(step("summarize", "some long text")),
        LanguageModelError("rate limited"),
    ]
    result = controller.run("summarize")
    assert len(result.steps) == 1
    assert result.steps[0].error
    assert "rate limited" in result.steps[0].output["error"]


def test_unexpected_collaborator_bug_never_escapes(llm, registry):
    planner = MagicMock()
    planner.plan.side_effect = RuntimeError("boom")
    controller = ChainController(planner, ToolInvoker(registry), Synthesizer(llm))

    result = controller.run("anything")

    assert isinstance(result, ChainResult)
    assert "RuntimeError" in result.result


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------


def test_unusable_last_output_triggers_synthesis(controller, llm, observer):
    llm.complete.side_effect = [
        plan_reply(step("computeGeneral", "2 + 2")),
        "I believe it is four, roughly.",
        "2 + 2 equals 4.",
    ]

    result = controller.run("What is 2 + 2?")

    assert result.result == "2 + 2 equals 4."
    assert len(result.steps) == 1
    synthesis_prompt = llm.complete.call_args_list[2].args[0][1]["content"]
    assert "Original question: What is 2 + 2?" in synthesis_prompt
    assert "Step 1 (computeGeneral)" in synthesis_prompt
    observer.synthesis_start.assert_called_once()


def test_synthesis_failure_returns_apology(controller, llm, observer):
    llm.complete.side_effect = [
        plan_reply(step("computeGeneral", "2 + 2")),
        "not json",
        LanguageModelError("down"),
    ]

    result = controller.run("What is 2 + 2?")

    assert result.result == SYNTHESIS_APOLOGY
    assert len(result.steps) == 1
    assert not result.steps[0].error
    observer.synthesis_failed.assert_called_once()


def test_concurrent_runs_do_not_share_traces(controller, llm):
    llm.complete.side_effect = [
        plan_reply(step("computeBMI", "180 cm 75 kg")),
        plan_reply(step("computeBMI", "150 cm 90 kg"), step("computeBMI", "170 cm 80 kg")),
    ]
    first = controller.run("one")
    second = controller.run("two")
    assert len(first.steps) == 1
    assert len(second.steps) == 2


def test_from_settings_wires_a_working_controller():
    llm = MagicMock()
    llm.complete.side_effect = [plan_reply(step("calculateSavings", "100€ per month for 10 years"))]
    controller = ChainController.from_settings(Settings(api_key="test-key"), llm=llm)

    result = controller.run("savings")

    assert result.steps[0].tool == "calculateSavings"
    assert result.steps[0].output["amount"] == "12000.00"
