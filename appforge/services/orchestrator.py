"""
Generation Orchestrator - the pipeline state machine.

    idle -> determining-mode -> planning -> validating -> transition
         -> generating -> reviewing -> complete | error

Every stage announces itself with a ``planning`` event before doing any
work. Every session ends with exactly one ``complete`` event, including
failed ones, so a consumer never waits on a dead stream.
"""
import time
from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Sequence

from appforge.config import Settings, settings as default_settings
from appforge.core.exceptions import CodeGenError
from appforge.llm.retry import describe_failure
from appforge.models.schemas.app_schema import is_schema_complete, section
from appforge.models.schemas.events import (
    ActionsEvent,
    CodeGenCompleteEvent,
    CompleteEvent,
    ContentEvent,
    ErrorEvent,
    FileAction,
    FileEvent,
    GeneratingEvent,
    GenerationEvent,
    PlanCompleteEvent,
    PlanningEvent,
    SchemaEvent,
)
from appforge.models.schemas.generation import CodeGenOutput, GeneratedFile, PlanResult, ReviewResult
from appforge.models.schemas.input_output import GenerationRequest, GenerationResult
from appforge.services.generation.codegen import INCOMPLETE_SCHEMA_MESSAGE, CodeGen, manifest_data
from appforge.services.generation.controller import Controller
from appforge.services.generation.incremental import diff_schemas, generate_incremental
from appforge.services.generation.reviewer import CodeReviewer
from appforge.services.generation.schema_validator import repair_schema, validate_schema
from appforge.services.persistence import BestEffortPersistence
from appforge.utils.logging import get_logger, log_context

logger = get_logger(__name__)

Mode = Literal["controller", "codegen"]

PLANNING_KEYWORDS = (
    "plan",
    "design",
    "structure",
    "architecture",
    "layout",
    "features",
    "pages",
    "navigation",
    "database",
    "auth",
    "schema",
    "add page",
    "add feature",
    "change design",
    "update colors",
    "modify theme",
)

CODE_KEYWORDS = (
    "generate",
    "code",
    "build",
    "create",
    "implement",
    "write",
    "make it work",
    "fix",
    "update code",
    "refactor",
)

NEED_MORE_INFO_MESSAGE = (
    "I need more information to create a complete application plan. "
    "Could you provide more details about your requirements?"
)


def determine_mode(message: str, existing_schema: Optional[Dict[str, Any]] = None) -> Mode:
    """
    Planning unless a complete schema exists and the message asks for code
    without asking for planning changes.
    """
    prompt = (message or "").lower()
    has_planning_intent = any(keyword in prompt for keyword in PLANNING_KEYWORDS)
    has_code_intent = any(keyword in prompt for keyword in CODE_KEYWORDS)

    if is_schema_complete(existing_schema) and has_code_intent and not has_planning_intent:
        return "codegen"
    return "controller"


class _Session:
    """Mutable state of one orchestration run."""

    def __init__(self, request: GenerationRequest, mode: str):
        self.request = request
        self.mode = mode
        self.started = time.perf_counter()
        self.platform = request.platform
        self.schema: Optional[Dict[str, Any]] = request.existing_schema
        self.plan: Optional[PlanResult] = None
        self.files: List[GeneratedFile] = []
        self.actions: List[FileAction] = []
        self.output: Optional[CodeGenOutput] = None
        self.review: Optional[ReviewResult] = None

    @property
    def duration(self) -> float:
        return round(time.perf_counter() - self.started, 3)


class GenerationOrchestrator:
    """
    Drives Controller -> Validator -> CodeGen -> Reviewer for one request.

    Flow:
    1. 🧭 Determine mode (controller | codegen)
    2. 🧠 Plan or update the schema (controller mode)
    3. ✅ Validate, repairing cosmetic problems first
    4. 🏗️ Generate files, incrementally when previous files are supplied
    5. 🔍 Advisory review (optional)
    6. 💾 Best-effort persistence
    """

    def __init__(
        self,
        controller: Controller,
        codegen: CodeGen,
        reviewer: Optional[CodeReviewer] = None,
        persistence: Optional[BestEffortPersistence] = None,
        settings: Optional[Settings] = None,
    ):
        self.controller = controller
        self.codegen = codegen
        self.reviewer = reviewer
        self.persistence = persistence or BestEffortPersistence(None)
        self.settings = settings or default_settings

        self.stats = {
            "total_sessions": 0,
            "controller_sessions": 0,
            "codegen_sessions": 0,
            "completed": 0,
            "incomplete": 0,
            "failed": 0,
            "files_generated": 0,
            "incremental_runs": 0,
            "reviews": 0,
            "repairs": 0,
        }

        logger.info(
            "orchestrator.initialized",
            extra={"review_available": reviewer is not None, "persistence": self.persistence.enabled},
        )

    # ------------------------------------------------------------------
    # Streaming API
    # ------------------------------------------------------------------

    async def stream(self, request: GenerationRequest) -> AsyncIterator[GenerationEvent]:
        """Run one session and yield its events in pipeline order."""
        self.stats["total_sessions"] += 1
        yield PlanningEvent(phase="determining-mode", message="Analyzing your request")

        mode = request.mode if request.mode != "auto" else determine_mode(request.prompt, request.existing_schema)
        session = _Session(request, mode)
        self.stats[f"{mode}_sessions"] += 1
        logger.info(
            "🧭 orchestrator.session.started",
            extra={
                "request_id": request.request_id,
                "project_id": request.project_id,
                "mode": mode,
                "platform": request.platform,
            },
        )
        yield PlanningEvent(phase="start", message=f"Starting in {mode} mode...")

        try:
            if mode == "controller":
                async for event in self._plan(session):
                    yield event
                schema = session.schema
            else:
                schema = request.existing_schema
                if not is_schema_complete(schema):
                    raise CodeGenError(INCOMPLETE_SCHEMA_MESSAGE, code="incomplete_schema")
                # an existing plan is rendered for the platform it was made for
                session.platform = section(schema, "meta", "platform") or request.platform

            yield PlanningEvent(phase="validating", message="Validating schema")
            schema, problems = self._validate(session, schema)
            if problems is not None:
                async for event in self._finish_incomplete(session, problems):
                    yield event
                return

            yield PlanningEvent(phase="transition", message="Schema ready. Generating code...")
            async for event in self._generate(session, schema):
                yield event

            if self._review_enabled(request):
                yield PlanningEvent(phase="reviewing", message="Reviewing generated code")
                session.review = await self.reviewer.review(session.files, session.platform)
                self.stats["reviews"] += 1

        except Exception as e:
            self.stats["failed"] += 1
            message, retryable = self._describe(e)
            logger.error(
                "❌ orchestrator.session.failed",
                extra={"request_id": request.request_id, "mode": mode, "retryable": retryable},
                exc_info=e,
            )
            yield ErrorEvent(error=message, retryable=retryable)
            yield CompleteEvent(
                app_schema=session.schema,
                error=True,
                mode=mode,
                duration=session.duration,
            )
            return

        summary = self._summary(session)
        yield ContentEvent(content=summary)
        await self._persist(session, summary)

        self.stats["completed"] += 1
        self.stats["files_generated"] += len(session.files)
        logger.info(
            "✅ orchestrator.session.completed",
            extra={
                "request_id": request.request_id,
                "mode": mode,
                "files": len(session.files),
                "duration_s": session.duration,
            },
        )
        plan = session.plan
        yield CompleteEvent(
            app_schema=session.schema,
            files=session.files,
            dependencies=session.output.dependencies if session.output else {},
            scripts=session.output.scripts if session.output else {},
            reasoning=plan.reasoning if plan else None,
            suggestions=plan.suggestions if plan else None,
            review=session.review.model_dump() if session.review else None,
            mode=mode,
            duration=session.duration,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _plan(self, session: _Session) -> AsyncIterator[GenerationEvent]:
        request = session.request
        yield PlanningEvent(phase="planning", message="Planning application structure...")
        history = [turn.model_dump() for turn in request.conversation_history]
        async for event in self.controller.stream_plan(
            request.prompt,
            request.platform,
            request.existing_schema,
            history,
        ):
            if isinstance(event, PlanCompleteEvent):
                session.plan = event.result
                session.schema = event.result.schema
            else:
                if isinstance(event, SchemaEvent):
                    session.schema = event.app_schema
                yield event

    def _validate(self, session: _Session, schema: Optional[Dict[str, Any]]):
        """(schema to generate from, None) or (schema, problem lines) when generation must stop."""
        if not is_schema_complete(schema):
            return schema, []

        result = validate_schema(schema)
        if not result.valid:
            repaired, fixes = repair_schema(schema)
            if fixes:
                self.stats["repairs"] += 1
                logger.info("🔧 orchestrator.schema.repaired", extra={"fixes": fixes})
                schema = repaired
                session.schema = repaired
                result = validate_schema(repaired)

        if not result.valid:
            logger.warning(
                "⚠️ orchestrator.schema.invalid",
                extra={"errors": [str(issue) for issue in result.errors]},
            )
            return schema, [f"{issue.field}: {issue.message}" for issue in result.errors]
        return schema, None

    async def _finish_incomplete(self, session: _Session, problems: Sequence[str]) -> AsyncIterator[GenerationEvent]:
        self.stats["incomplete"] += 1
        plan = session.plan
        if problems:
            content = "The application plan needs a few fixes before I can generate code:\n" + "\n".join(
                f"- {problem}" for problem in problems
            )
        else:
            content = (plan.reasoning if plan and plan.reasoning else None) or NEED_MORE_INFO_MESSAGE
        logger.info(
            "⏸️ orchestrator.session.incomplete",
            extra={"request_id": session.request.request_id, "problems": len(problems)},
        )
        yield ContentEvent(content=content)
        yield CompleteEvent(
            app_schema=session.schema,
            reasoning=plan.reasoning if plan else None,
            suggestions=plan.suggestions if plan else None,
            incomplete=True,
            mode=session.mode,
            duration=session.duration,
        )

    async def _generate(self, session: _Session, schema: Dict[str, Any]) -> AsyncIterator[GenerationEvent]:
        request = session.request
        use_templates = self.settings.use_templates if request.use_templates is None else request.use_templates
        yield PlanningEvent(phase="generating", message="Generating code...")

        previous_schema = request.existing_schema
        if use_templates and request.existing_files and previous_schema:
            async for event in self._generate_incremental(session, previous_schema, schema):
                yield event
            return

        async for event in self.codegen.stream_generate(
            schema,
            session.platform,
            existing_files=request.existing_files or None,
            use_templates=use_templates,
        ):
            if isinstance(event, CodeGenCompleteEvent):
                session.output = event.output
                session.files = list(event.output.files)
            elif isinstance(event, FileEvent):
                yield event
                action = FileAction(
                    type="create_or_update_file",
                    path=event.path,
                    content=event.content,
                    language=event.language,
                )
                session.actions.append(action)
                yield ActionsEvent(actions=[action])
            else:
                yield event

    async def _generate_incremental(
        self,
        session: _Session,
        previous_schema: Dict[str, Any],
        schema: Dict[str, Any],
    ) -> AsyncIterator[GenerationEvent]:
        request = session.request
        self.stats["incremental_runs"] += 1
        diff = diff_schemas(previous_schema, schema)
        result = generate_incremental(diff, request.existing_files, schema, session.platform)
        stats = result.get_stats()
        yield GeneratingEvent(
            message=f"Updating {stats['regenerated']} files, keeping {stats['kept']}",
            progress=0,
            total=stats["regenerated"],
        )

        for file in result.files_to_regenerate:
            yield FileEvent.from_file(file)
            action = FileAction(
                type="create_or_update_file",
                path=file.path,
                content=file.content,
                language=file.language,
            )
            session.actions.append(action)
            yield ActionsEvent(actions=[action])

        if result.files_to_delete:
            deletions = [FileAction(type="delete_file", path=path) for path in result.files_to_delete]
            session.actions.extend(deletions)
            yield ActionsEvent(actions=deletions)

        files = result.files
        session.files = files
        session.output = CodeGenOutput(files=files, **manifest_data(files))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _review_enabled(self, request: GenerationRequest) -> bool:
        if self.reviewer is None:
            return False
        return self.settings.review_enabled if request.enable_review is None else request.enable_review

    @staticmethod
    def _describe(exc: Exception):
        if isinstance(exc, CodeGenError) and exc.code == "incomplete_schema":
            return str(exc), False
        return describe_failure(exc)

    @staticmethod
    def _summary(session: _Session) -> str:
        name = section(session.schema, "meta", "name") or "your app"
        count = len(session.files)
        summary = f"Generated {count} file{'s' if count != 1 else ''} for {name}."
        if session.review is not None:
            summary += f" Code review score: {session.review.score}/100."
        return summary

    async def _persist(self, session: _Session, summary: str) -> None:
        request = session.request
        if not request.project_id or not self.persistence.enabled:
            return
        with log_context(project_id=request.project_id, user_id=request.user_id):
            await self.persistence.persist_generation(
                request.project_id,
                session.actions,
                summary,
                history={
                    "prompt": request.prompt,
                    "mode": session.mode,
                    "platform": session.platform,
                    "schema": session.schema,
                    "file_count": len(session.files),
                    "duration_ms": int(session.duration * 1000),
                    "success": True,
                },
            )

    # ------------------------------------------------------------------
    # Non-streaming API
    # ------------------------------------------------------------------

    async def run(self, request: GenerationRequest) -> GenerationResult:
        """Drain ``stream`` and fold its events into one result."""
        result = GenerationResult(request_id=request.request_id, mode=request.mode)
        async for event in self.stream(request):
            if isinstance(event, ContentEvent):
                result.messages.append(event.content)
            elif isinstance(event, ErrorEvent):
                result.error = event.error
                result.retryable = event.retryable
            elif isinstance(event, CompleteEvent):
                result.mode = event.mode or result.mode
                result.app_schema = event.app_schema
                result.files = event.files or []
                result.dependencies = event.dependencies or {}
                result.scripts = event.scripts or {}
                result.reasoning = event.reasoning
                result.suggestions = event.suggestions or []
                result.review = event.review
                result.incomplete = bool(event.incomplete)
                result.duration = event.duration
        return result

    def get_statistics(self) -> Dict[str, Any]:
        return {
            **self.stats,
            "controller": self.controller.get_statistics(),
            "codegen": self.codegen.get_statistics(),
            "reviewer": self.reviewer.get_statistics() if self.reviewer else None,
            "persistence": self.persistence.get_stats(),
        }
