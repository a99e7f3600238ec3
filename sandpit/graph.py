"""LangGraph orchestration loop for the coding agent."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from langgraph.graph import END, StateGraph

from sandpit.config import Config
from sandpit.constants import FALLBACK_RESPONSE, FALLBACK_TITLE, SUMMARY_TAG
from sandpit.errors import GenerationError, ModelError
from sandpit.llm import LLM
from sandpit.prompts import CONTINUE_PROMPT, RESPONSE_PROMPT, TITLE_PROMPT
from sandpit.sandbox.base import SandboxHandle
from sandpit.state import AgentState, RunResult, RunState
from sandpit.tools.toolset import ToolSet
from sandpit.utils.logging import RunLogger

logger = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_EXHAUSTED = "exhausted"
STATUS_CANCELLED = "cancelled"

RETRY_DELAY = 1.0  # seconds, multiplied by the attempt number


@dataclass
class RunContext:
    """Everything one run needs, built at run start and torn down at run end.

    Attributes:
        config: Configuration object
        llm: Model client
        state: Shared summary and file map
        sandbox: Live sandbox, if any
        cancel_event: Set to abort the run at the next routing step
        run_logger: Optional transcript writer
    """

    config: Config
    llm: LLM
    state: AgentState = field(default_factory=AgentState)
    sandbox: Optional[SandboxHandle] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    run_logger: Optional[RunLogger] = None


class AgentNetwork:
    """Routes between the coding agent and termination.

    The graph has two nodes. ``router`` decides whether the run is over
    (cancelled, summary present, or iteration bound reached) and otherwise
    hands the turn to ``agent``, which talks to the model and runs the tools
    it asks for until the model stops requesting tools.
    """

    def __init__(self, context: RunContext, sleep: Callable[[float], None] = time.sleep):
        """Initialize the network.

        Args:
            context: Per-run context
            sleep: Used for retry backoff (overridable in tests)
        """
        self.context = context
        self.config = context.config
        self.llm = context.llm
        self.agent_state = context.state
        self._sleep = sleep

        self.toolset = ToolSet(
            context.state,
            sandbox=context.sandbox,
            max_workers=self.config.tool_workers,
        )

    def build_graph(self):
        """Build the LangGraph workflow.

        Returns:
            Compiled StateGraph
        """
        workflow = StateGraph(RunState)

        workflow.add_node("router", self.router_node)
        workflow.add_node("agent", self.agent_node)

        workflow.set_entry_point("router")
        workflow.add_conditional_edges("router", self.route, {"agent": "agent", END: END})
        workflow.add_edge("agent", "router")

        return workflow.compile()

    def router_node(self, state: RunState) -> dict:
        """Decide whether the run goes on for another turn.

        Args:
            state: Current graph state

        Returns:
            State update with the new status (and iteration, when continuing)
        """
        if self.context.cancel_event.is_set():
            logger.info("Run cancelled after %d iteration(s)", state["iteration"])
            return {"status": STATUS_CANCELLED}

        if self.agent_state.summary:
            return {"status": STATUS_COMPLETED}

        if state["iteration"] >= self.config.max_iterations:
            logger.warning("Iteration bound of %d reached without a summary", self.config.max_iterations)
            return {"status": STATUS_EXHAUSTED}

        iteration = state["iteration"] + 1
        logger.debug("Iteration %d/%d", iteration, self.config.max_iterations)
        return {"iteration": iteration, "status": STATUS_RUNNING}

    def route(self, state: RunState) -> str:
        return "agent" if state["status"] == STATUS_RUNNING else END

    def agent_node(self, state: RunState) -> dict:
        """Run one agent turn.

        Args:
            state: Current graph state

        Returns:
            State update with the messages produced during the turn
        """
        history = list(state["messages"])
        new_messages: list[dict] = []

        for _ in range(self.config.max_tool_rounds):
            try:
                response = self._complete(history + new_messages)
            except ModelError as e:
                # Fed back as text so the next turn can pick up from here
                self._append(new_messages, {
                    "role": "user",
                    "content": f"The previous model call failed after {e.attempts} attempt(s): {e}. Continue the task.",
                })
                break

            content = response.get("content") or ""
            tool_calls = response.get("tool_calls") or []

            if not tool_calls:
                if content.strip():
                    self._append(new_messages, {"role": "assistant", "content": content})
                if SUMMARY_TAG in content:
                    self.agent_state.set_summary(content)
                    logger.info("Agent reported completion")
                break

            self._append(new_messages, {"role": "assistant", "content": content, "tool_calls": tool_calls})

            outcomes = self.toolset.execute_all(tool_calls)
            for call, outcome in zip(tool_calls, outcomes):
                if outcome.files:
                    self.agent_state.merge_files(outcome.files)
                if self.context.run_logger:
                    self.context.run_logger.save_tool_result(call["name"], call.get("arguments"), outcome.result)
                self._append(new_messages, {
                    "role": "tool",
                    "tool_call_id": call["id"],
                    "content": outcome.result,
                })
        else:
            logger.warning("Turn stopped after %d tool rounds", self.config.max_tool_rounds)

        if new_messages and new_messages[-1]["role"] == "assistant" and not self.agent_state.summary:
            # The next request must not end on an assistant turn
            self._append(new_messages, {"role": "user", "content": CONTINUE_PROMPT})

        return {"messages": new_messages}

    def run(self, messages: list[dict]) -> RunState:
        """Run the graph to termination.

        Args:
            messages: Opening conversation (system prompt first)

        Returns:
            Final graph state
        """
        graph = self.build_graph()
        initial: RunState = {"messages": messages, "iteration": 0, "status": STATUS_RUNNING}
        # router + agent per iteration, plus the final routing step
        limit = self.config.max_iterations * 2 + 5
        return graph.invoke(initial, {"recursion_limit": limit})

    def execute(self, messages: list[dict]) -> RunResult:
        """Run the loop and classify the outcome.

        Never raises: failures become an error result.

        Args:
            messages: Opening conversation (system prompt first)

        Returns:
            RunResult (files and summary taken from the agent state)
        """
        result = RunResult()
        try:
            final = self.run(messages)
            result.iterations = final["iteration"]
            result.cancelled = final["status"] == STATUS_CANCELLED
            result.summary = self.agent_state.summary
            result.files = self.agent_state.files

            if result.cancelled:
                raise GenerationError("Run was cancelled")
            if final["status"] == STATUS_EXHAUSTED:
                raise GenerationError(f"No summary after {result.iterations} iteration(s)")
            if not result.summary:
                raise GenerationError("Agent finished without a summary")
            if not result.files:
                raise GenerationError("Agent finished without writing any files")

            result.title = self.generate_title(result.summary)
            result.response = self.generate_response(result.summary)
        except GenerationError as e:
            logger.warning("Generation failed: %s", e)
            result.is_error = True
            result.error = str(e)
        except Exception as e:
            logger.exception("Run aborted")
            result.is_error = True
            result.error = f"{type(e).__name__}: {e}"
            result.summary = self.agent_state.summary
            result.files = self.agent_state.files

        return result

    def generate_title(self, summary: str) -> str:
        """Derive a short title from the summary, falling back to a generic one."""
        text = self._single_shot(TITLE_PROMPT, summary)
        if not text:
            return FALLBACK_TITLE

        line = next((l for l in text.splitlines() if l.strip()), "")
        words = line.strip().strip("\"'`*#").split()
        if not words:
            return FALLBACK_TITLE
        return " ".join(words[:3])

    def generate_response(self, summary: str) -> str:
        """Derive the user-facing message, falling back to a generic one."""
        text = self._single_shot(RESPONSE_PROMPT, summary)
        if not text:
            return FALLBACK_RESPONSE
        text = text.replace(SUMMARY_TAG, "").replace("</task_summary>", "").strip()
        return text or FALLBACK_RESPONSE

    def _single_shot(self, prompt: str, summary: str) -> Optional[str]:
        messages = [
            {"role": "system", "content": prompt},
            {"role": "user", "content": summary},
        ]
        try:
            response = self.llm.complete(messages, temperature=0.3, max_tokens=256)
        except Exception as e:
            logger.warning("Helper model call failed: %s", e)
            return None

        content = response.get("content") if isinstance(response, dict) else None
        if not isinstance(content, str):
            return None
        return content.strip() or None

    def _complete(self, messages: list[dict]) -> dict[str, Any]:
        attempts = self.config.model_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                return self.llm.complete(messages, tools=self.toolset.definitions())
            except Exception as e:
                last_error = e
                logger.warning("Model call failed (attempt %d/%d): %s", attempt, attempts, e)
                if attempt < attempts:
                    self._sleep(RETRY_DELAY * attempt)

        raise ModelError(str(last_error), attempts)

    def _append(self, messages: list[dict], message: dict) -> None:
        messages.append(message)
        if self.context.run_logger:
            self.context.run_logger.log_message(
                message["role"], message["content"], message.get("tool_calls")
            )
