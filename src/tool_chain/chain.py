# chain.py
# Chain controller, the engine's only public entry point.
#
# The controller owns control flow and state for one query:
#
#   PLANNING → EXECUTING(0) → … → EXECUTING(n-1) → SYNTHESIZING? → DONE
#
# with an edge to FAILED from anywhere. Steps run strictly in order; each
# input is resolved against the trace before its tool is invoked. FAILED is
# handled in exactly one place (run) and always yields a ChainResult.
#
# All output is delegated to the injected observer. No printing here.

from tool_chain.config import Settings
from tool_chain.display import ChainObserver, NullObserver
from tool_chain.errors import (
    InvalidPlanError,
    LanguageModelError,
    PlanParseError,
    ToolExecutionError,
    UnknownToolError,
)
from tool_chain.invoker import ToolInvoker
from tool_chain.llm import LanguageModel
from tool_chain.models import ChainResult, ChainState, ExecutedStep, Plan, error_marker
from tool_chain.planner import Planner
from tool_chain.resolver import resolve
from tool_chain.synthesizer import Synthesizer, unusable_reason
from tool_chain.tools import build_registry
from tool_chain.trace import ExecutionTrace, render_output

PLAN_REJECTED = "I could not make a usable plan for this request"
CHAIN_HALTED = "The tool chain stopped before finishing"


class ChainController:
    """
    Plans, executes and (if needed) synthesizes an answer for one query.

    Example:
        controller = ChainController.from_settings(Settings.from_env())
        result = controller.run("Save 50€ a month for 8 years at 3%. What do I end up with?")
    """

    def __init__(
        self,
        planner: Planner,
        invoker: ToolInvoker,
        synthesizer: Synthesizer,
        observer: ChainObserver | None = None,
    ) -> None:
        self._planner = planner
        self._invoker = invoker
        self._synthesizer = synthesizer
        self._observer = observer or NullObserver()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        observer: ChainObserver | None = None,
        llm: LanguageModel | None = None,
    ) -> "ChainController":
        llm = llm or LanguageModel.from_settings(settings)
        registry = build_registry(llm, settings, observer)
        return cls(
            planner=Planner(llm, registry),
            invoker=ToolInvoker(registry),
            synthesizer=Synthesizer(llm, settings.digest_chars, observer),
            observer=observer,
        )

    # ------------------------------------------------------------------
    # States
    # ------------------------------------------------------------------

    def _plan(self, query: str) -> Plan:
        self._observer.state_changed(ChainState.PLANNING)
        plan = self._planner.plan(query)
        self._observer.plan_parsed(plan)
        return plan

    def _execute(self, plan: Plan, query: str, trace: ExecutionTrace) -> None:
        total = len(plan.steps)
        for index, step in enumerate(plan.steps):
            self._observer.state_changed(ChainState.EXECUTING, index)
            self._observer.step_start(index, total, step.tool, step.description)

            blank = isinstance(step.input, str) and not step.input.strip()
            raw = query if blank else step.input
            resolved = resolve(raw, trace)
            self._observer.step_resolved(index, raw, resolved)

            try:
                tool, params = self._invoker.prepare(step.tool, resolved)
                output = self._invoker.call(tool, params, trace)
            except (UnknownToolError, ToolExecutionError) as exc:
                entry = ExecutedStep(
                    tool=step.tool,
                    input=resolved,
                    output=error_marker(str(exc)),
                    description=step.description,
                    error=True,
                )
                trace.append(entry)
                self._observer.step_failed(index, entry)
                raise

            entry = ExecutedStep(
                tool=step.tool,
                input=resolved,
                output=output,
                description=step.description,
                defaults_applied=list(getattr(params, "defaults_applied", [])),
            )
            trace.append(entry)
            self._observer.step_output(index, entry)

    def _finish(self, query: str, plan: Plan, trace: ExecutionTrace) -> str:
        final = trace.last_output()
        reason = unusable_reason(final)
        if reason is None:
            return render_output(final)
        self._observer.state_changed(ChainState.SYNTHESIZING)
        self._observer.synthesis_start(reason)
        return self._synthesizer.synthesize(query, trace.snapshot(), plan.explanation)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, query: str) -> ChainResult:
        """
        Full pipeline entry point.

        Never raises. Plan-level failures return no steps; a failing step
        returns the trace up to and including that step.
        """
        self._observer.prompt_received(query)
        trace = ExecutionTrace()

        try:
            plan = self._plan(query)
            self._execute(plan, query, trace)
            result = self._finish(query, plan, trace)
        except Exception as exc:
            return self._failed(exc, trace)

        self._observer.state_changed(ChainState.DONE)
        self._observer.final_result(result)
        return ChainResult(result=result, steps=trace.snapshot(), explanation=plan.explanation)

    def _failed(self, exc: Exception, trace: ExecutionTrace) -> ChainResult:
        self._observer.state_changed(ChainState.FAILED)

        if isinstance(exc, (PlanParseError, InvalidPlanError)):
            self._observer.plan_rejected(str(exc))
            return ChainResult(
                result=f"{PLAN_REJECTED}: {exc}",
                steps=[],
                explanation="The planning response was rejected, so no tools were run.",
            )
        if isinstance(exc, LanguageModelError):
            message = f"{PLAN_REJECTED}: the planning model could not be reached ({exc})."
            self._observer.halt(message)
            return ChainResult(result=message, steps=[], explanation="Planning failed before any tool ran.")
        if isinstance(exc, (UnknownToolError, ToolExecutionError)):
            number = len(trace)
            message = f"{CHAIN_HALTED}: step {number} failed. {exc}"
            self._observer.halt(message)
            return ChainResult(
                result=message,
                steps=trace.snapshot(),
                explanation=f"Execution stopped at step {number}; later steps were skipped.",
            )

        message = f"{CHAIN_HALTED}: unexpected error ({type(exc).__name__}: {exc})."
        self._observer.halt(message)
        return ChainResult(result=message, steps=trace.snapshot(), explanation="Unexpected internal error.")
