"""Generation service: runs the agent loop per project on worker threads."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Optional

from sandpit.config import Config
from sandpit.constants import ROLE_USER, TYPE_ERROR, TYPE_PROMPT
from sandpit.conversation import Conversation
from sandpit.graph import AgentNetwork, RunContext
from sandpit.llm import LLM
from sandpit.materializer.pipeline import Materializer
from sandpit.prompts import SystemPromptBuilder
from sandpit.sandbox.base import SandboxHandle, make_sandbox
from sandpit.state import AgentState, RunResult
from sandpit.store import RecordStore, persist_run_result
from sandpit.utils.logging import RunLogger

logger = logging.getLogger(__name__)

STATUS_GENERATING = "generating"
STATUS_COMPLETED = "completed"
STATUS_ERROR = "error"
STATUS_IDLE = "idle"


class GenerationService:
    """Starts runs, tracks their status and cancels them.

    Each project runs at most one generation at a time. A run owns its
    sandbox, state and model client through a RunContext that is torn down
    when the run ends.
    """

    def __init__(
        self,
        config: Config,
        store: RecordStore,
        llm_factory: Optional[Callable[[Config], LLM]] = None,
        sandbox_factory: Callable[[Config], SandboxHandle] = make_sandbox,
        log_dir: Optional[Path] = None,
        max_workers: int = 2,
    ):
        """Initialize the service.

        Args:
            config: Configuration object
            store: Record store for messages and artifacts
            llm_factory: Builds the model client for a run
            sandbox_factory: Builds the sandbox for a run
            log_dir: Base directory for run transcripts (None disables them)
            max_workers: Number of runs executing at once
        """
        self.config = config
        self.store = store
        self.llm_factory = llm_factory or _default_llm
        self.sandbox_factory = sandbox_factory
        self.log_dir = log_dir
        self.materializer = Materializer(config.extra_packages)

        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="sandpit-run")
        self._lock = threading.Lock()
        self._futures: dict[str, Future] = {}
        self._cancel_events: dict[str, threading.Event] = {}

    def start_generation(self, prompt: str, project_id: str) -> Future:
        """Record the prompt and start a run in the background.

        Args:
            prompt: User request
            project_id: Project to generate into

        Returns:
            Future resolving to the RunResult

        Raises:
            RuntimeError: If the project already has a run in progress
        """
        with self._lock:
            running = self._futures.get(project_id)
            if running is not None and not running.done():
                raise RuntimeError(f"Project {project_id} already has a generation in progress")

            self.store.create_message(project_id, prompt, ROLE_USER, TYPE_PROMPT)
            cancel_event = threading.Event()
            self._cancel_events[project_id] = cancel_event
            future = self._pool.submit(self.run_generation, prompt, project_id, cancel_event)
            self._futures[project_id] = future

        logger.info("Started generation for project %s", project_id)
        return future

    def get_status(self, project_id: str) -> dict:
        """Report where a project's latest generation stands.

        Returns:
            Dict with ``status`` (generating, completed, error or idle) and,
            once finished, ``message`` and ``artifact``
        """
        with self._lock:
            future = self._futures.get(project_id)
        if future is not None and not future.done():
            return {"status": STATUS_GENERATING}

        messages = self.store.find_messages(project_id, limit=1)
        if not messages or messages[-1].role == ROLE_USER:
            return {"status": STATUS_GENERATING if future is not None else STATUS_IDLE}

        latest = messages[-1]
        if latest.type == TYPE_ERROR:
            return {"status": STATUS_ERROR, "message": latest.model_dump()}

        artifact = self.store.find_latest_artifact(project_id)
        return {
            "status": STATUS_COMPLETED,
            "message": latest.model_dump(),
            "artifact": artifact.model_dump() if artifact else None,
        }

    def cancel(self, project_id: str) -> bool:
        """Ask a running generation to stop at its next routing step.

        Returns:
            True if a running generation was signalled
        """
        with self._lock:
            future = self._futures.get(project_id)
            event = self._cancel_events.get(project_id)
        if future is None or future.done() or event is None:
            return False
        event.set()
        logger.info("Cancellation requested for project %s", project_id)
        return True

    def run_generation(
        self, prompt: str, project_id: str, cancel_event: Optional[threading.Event] = None
    ) -> RunResult:
        """Execute one run end to end and persist its outcome.

        Args:
            prompt: User request
            project_id: Project to generate into
            cancel_event: Optional cancellation signal

        Returns:
            RunResult (``files`` are the materialized project on success)
        """
        sandbox: Optional[SandboxHandle] = None
        result: Optional[RunResult] = None
        try:
            llm = self.llm_factory(self.config)
            sandbox = self.sandbox_factory(self.config)
            self._bootstrap(sandbox)

            latest = self.store.find_latest_artifact(project_id)
            state = AgentState(latest.files if latest else None)

            run_logger = RunLogger(self.log_dir) if self.log_dir else None
            context = RunContext(
                config=self.config,
                llm=llm,
                state=state,
                sandbox=sandbox,
                cancel_event=cancel_event or threading.Event(),
                run_logger=run_logger,
            )

            system_prompt = SystemPromptBuilder(sorted(state.files)).build()
            conversation = Conversation(system_prompt)
            # The prompt was stored before the run started; it is the last record
            history = self.store.find_messages(project_id, limit=conversation.max_history)
            conversation.add_history(history)

            result = AgentNetwork(context).execute(conversation.to_messages(prompt))

            if not result.is_error:
                result.preview_handle = sandbox.get_host(self.config.preview_port)
                project = self.materializer.materialize(result.files)
                result.files = project.files
                if run_logger:
                    run_logger.save_project(project.files)

        except Exception as e:
            logger.exception("Generation for project %s failed", project_id)
            result = RunResult(is_error=True, error=f"{type(e).__name__}: {e}")
        finally:
            if sandbox is not None and sandbox.expires and result is not None and not result.is_error:
                logger.info("Leaving sandbox %s up for preview at %s", sandbox.sandbox_id, result.preview_handle)
            elif sandbox is not None:
                try:
                    sandbox.close()
                except Exception as e:
                    logger.warning("Failed to close sandbox: %s", e)

        persist_run_result(self.store, project_id, result)
        return result

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            events = list(self._cancel_events.values())
        if not wait:
            for event in events:
                event.set()
        self._pool.shutdown(wait=wait)

    def _bootstrap(self, sandbox: SandboxHandle) -> None:
        for command in self.config.setup_commands:
            result = sandbox.run(command)
            if not result.success:
                logger.warning(
                    "Setup command failed (exit %s): %s\n%s", result.exit_code, command, result.stderr
                )


def _default_llm(config: Config) -> LLM:
    if not config.anthropic_api_key:
        raise ValueError("No Anthropic API key found. Set ANTHROPIC_API_KEY in .env")
    return LLM(LLM.parse_model_string(config.default_model), config.anthropic_api_key)
