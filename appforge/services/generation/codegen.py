"""
CodeGen - turns a complete Unified App Schema into project files.

Two paths:
- template path: deterministic generators in ``templates`` (no LLM call)
- LLM path: JSON envelope ``{"files": [...], "dependencies": {...}, "scripts": {...}}``

The streaming LLM path forwards every file as soon as its JSON object is
complete in the token stream, so the UI does not wait for the whole batch.
"""
import json
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional, Sequence, Union

from appforge.config import Settings, settings as default_settings
from appforge.core.exceptions import CodeGenError, JSONExtractionError, ProviderError
from appforge.llm.base import ChatOptions, LLMMessage
from appforge.models.prompts import PromptLibrary, PromptType
from appforge.models.schemas.app_schema import is_schema_complete
from appforge.models.schemas.events import CodeGenCompleteEvent, FileEvent, GeneratingEvent
from appforge.models.schemas.generation import CodeGenOutput, GeneratedFile
from appforge.services.generation.schema_cache import SchemaCache
from appforge.services.generation.templates import generate_files_from_schema, language_for_path
from appforge.utils.json_extraction import extract_json
from appforge.utils.logging import get_logger, log_context, trace_async

logger = get_logger(__name__)

INCOMPLETE_SCHEMA_MESSAGE = "CodeGen mode requires a complete schema"

# Existing file bodies above this size are listed by path only
EXISTING_FILE_PREVIEW_CHARS = 4000


# =============================================================================
# STREAMING FILE EXTRACTION
# =============================================================================

class StreamingFileExtractor:
    """
    Incrementally pulls complete file objects out of a streamed JSON envelope.

    Feed raw text chunks; every ``{"path": ..., "content": ...}`` object that
    sits directly inside an array of the envelope is returned once its
    closing brace arrives. Braces inside string literals are ignored.
    """

    def __init__(self):
        self._text = ""
        self._position = 0
        self._stack: List[str] = []
        self._object_start: Optional[int] = None
        self._in_string = False
        self._escaped = False
        self.emitted_paths: List[str] = []

    def feed(self, chunk: str) -> List[GeneratedFile]:
        if not chunk:
            return []
        self._text += chunk
        found: List[GeneratedFile] = []

        text = self._text
        for index in range(self._position, len(text)):
            char = text[index]
            if self._in_string:
                if self._escaped:
                    self._escaped = False
                elif char == "\\":
                    self._escaped = True
                elif char == '"':
                    self._in_string = False
                continue

            if char == '"':
                self._in_string = True
            elif char in "{[":
                if char == "{" and self._stack[-2:] == ["{", "["]:
                    self._object_start = index
                self._stack.append(char)
            elif char in "}]":
                if self._stack:
                    self._stack.pop()
                if char == "}" and self._object_start is not None and self._stack[-2:] == ["{", "["]:
                    file = self._parse_file(text[self._object_start:index + 1])
                    self._object_start = None
                    if file is not None:
                        self.emitted_paths.append(file.path)
                        found.append(file)

        self._position = len(text)
        return found

    @property
    def text(self) -> str:
        return self._text

    @staticmethod
    def _parse_file(candidate: str) -> Optional[GeneratedFile]:
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            return None
        return to_generated_file(data)


# =============================================================================
# HELPERS
# =============================================================================

def to_generated_file(data: Any) -> Optional[GeneratedFile]:
    """GeneratedFile from a model-emitted dict, or None when it is not a file."""
    if not isinstance(data, dict):
        return None
    path = data.get("path")
    content = data.get("content")
    if not isinstance(path, str) or not path.strip() or not isinstance(content, str):
        return None
    path = path.strip()
    if path.startswith("./"):
        path = path[2:]
    language = data.get("language")
    return GeneratedFile(
        path=path,
        content=content,
        language=language if isinstance(language, str) and language else language_for_path(path),
    )


def dedupe_files(files: Iterable[GeneratedFile]) -> List[GeneratedFile]:
    """Collapse repeated paths; the last occurrence wins, first position is kept."""
    by_path: Dict[str, GeneratedFile] = {}
    for file in files:
        by_path[file.path] = file
    return list(by_path.values())


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if isinstance(v, (str, int, float))}


def manifest_data(files: Sequence[GeneratedFile]) -> Dict[str, Dict[str, str]]:
    """Dependencies and scripts declared by the generated package.json."""
    manifest = next((f for f in files if f.path == "package.json"), None)
    if manifest is None:
        return {"dependencies": {}, "scripts": {}}
    try:
        package = json.loads(manifest.content)
    except json.JSONDecodeError:
        logger.warning("⚠️ codegen.package_json.invalid")
        return {"dependencies": {}, "scripts": {}}
    dependencies = {**_string_map(package.get("dependencies")), **_string_map(package.get("devDependencies"))}
    return {"dependencies": dependencies, "scripts": _string_map(package.get("scripts"))}


def output_from_envelope(parsed: Dict[str, Any]) -> CodeGenOutput:
    raw_files = parsed.get("files")
    if not isinstance(raw_files, list):
        raise CodeGenError(
            "CodeGen failed: CodeGen did not return files array (missing_files)",
            code="missing_files",
        )
    files = dedupe_files(f for f in (to_generated_file(item) for item in raw_files) if f is not None)
    return CodeGenOutput(
        files=files,
        dependencies=_string_map(parsed.get("dependencies")),
        scripts=_string_map(parsed.get("scripts")),
    )


# =============================================================================
# CODEGEN SERVICE
# =============================================================================

class CodeGen:
    """
    Code generation stage.

    Flow:
    1. 🛑 Refuse incomplete schemas
    2. 🧱 Template path: render the platform generator, read package.json
    3. 🤖 LLM path: JSON-only prompt, stream files as they complete
    4. 🧩 Final three-tier extraction, duplicate paths collapsed
    """

    def __init__(
        self,
        llm,
        settings: Optional[Settings] = None,
        cache: Optional[SchemaCache] = None,
        prompts: Optional[PromptLibrary] = None,
    ):
        self.llm = llm
        self.settings = settings or default_settings
        self.cache = cache if self.settings.schema_cache_enabled else None
        self.prompts = prompts or PromptLibrary()

        self.stats = {
            "total_requests": 0,
            "template_runs": 0,
            "llm_runs": 0,
            "files_generated": 0,
            "cache_hits": 0,
            "failed": 0,
        }

    # ------------------------------------------------------------------
    # Template path
    # ------------------------------------------------------------------

    def generate_from_templates(self, schema: Dict[str, Any], platform: str) -> CodeGenOutput:
        try:
            files = generate_files_from_schema(schema, platform)
        except ValueError as e:
            raise CodeGenError(f"CodeGen failed: {e} (unknown_platform)", code="unknown_platform") from e
        files = dedupe_files(files)
        return CodeGenOutput(files=files, **manifest_data(files))

    # ------------------------------------------------------------------
    # LLM path
    # ------------------------------------------------------------------

    def build_messages(
        self,
        schema: Dict[str, Any],
        platform: str,
        existing_files: Optional[Sequence[GeneratedFile]] = None,
    ) -> List[LLMMessage]:
        existing_section = ""
        if existing_files:
            listed = []
            for file in existing_files:
                if len(file.content) <= EXISTING_FILE_PREVIEW_CHARS:
                    listed.append(f"--- {file.path} ---\n{file.content}")
                else:
                    listed.append(f"--- {file.path} (content omitted) ---")
            existing_section = (
                "\n\nEXISTING FILES (keep their structure; return every file that must change):\n\n"
                + "\n\n".join(listed)
            )

        _, user = self.prompts.get(PromptType.CODE_GENERATION).format(
            schema=json.dumps(schema, indent=2),
            existing_section=existing_section,
        )
        return [
            LLMMessage(role="system", content=self.prompts.codegen_system(platform).strip()),
            LLMMessage(role="user", content=user.strip()),
        ]

    def _options(self, messages: List[LLMMessage]) -> ChatOptions:
        return ChatOptions(
            model=self.settings.model_for("primary"),
            messages=messages,
            temperature=self.settings.llm_default_temperature,
            max_tokens=self.settings.codegen_max_tokens,
            json_mode=True,
        )

    def parse_response(self, content: str) -> CodeGenOutput:
        try:
            parsed = extract_json(content)
        except JSONExtractionError as e:
            logger.error(
                "❌ codegen.response.unparseable",
                extra={"reason": str(e), "content_length": len(content or ""), "raw_content": (content or "")[:2000]},
            )
            raise CodeGenError(f"CodeGen failed: {e} (invalid_json)", code="invalid_json", raw_content=content) from e
        try:
            return output_from_envelope(parsed)
        except CodeGenError as e:
            e.raw_content = content
            logger.error("❌ codegen.response.missing_files", extra={"raw_content": (content or "")[:2000]})
            raise

    @staticmethod
    def _wrap_provider_error(exc: Exception) -> CodeGenError:
        code = getattr(exc, "code", None) or (
            f"http_{exc.status_code}" if isinstance(exc, ProviderError) and exc.status_code else "provider_error"
        )
        return CodeGenError(f"CodeGen failed: {exc} ({code})", code=code)

    def _check_schema(self, schema: Dict[str, Any]) -> None:
        if not is_schema_complete(schema):
            self.stats["failed"] += 1
            raise CodeGenError(INCOMPLETE_SCHEMA_MESSAGE, code="incomplete_schema")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @trace_async("codegen.generate")
    async def generate(
        self,
        schema: Dict[str, Any],
        platform: str,
        existing_files: Optional[Sequence[GeneratedFile]] = None,
        use_templates: Optional[bool] = None,
    ) -> CodeGenOutput:
        """
        Generate the full file set for a schema.

        Raises:
            CodeGenError: incomplete schema, provider failure or unusable output
        """
        self._check_schema(schema)
        self.stats["total_requests"] += 1
        use_templates = self.settings.use_templates if use_templates is None else use_templates

        with log_context(operation="codegen", platform=platform):
            if use_templates:
                output = self.generate_from_templates(schema, platform)
                self.stats["template_runs"] += 1
                self.stats["files_generated"] += len(output.files)
                logger.info("✅ codegen.templates.completed", extra={"files": len(output.files)})
                return output

            if self.cache is not None and not existing_files:
                cached = await self.cache.get_codegen(schema, platform)
                if cached is not None:
                    self.stats["cache_hits"] += 1
                    logger.info("🎯 codegen.cache.hit")
                    return CodeGenOutput.model_validate(cached)

            options = self._options(self.build_messages(schema, platform, existing_files))
            logger.info("🤖 codegen.llm.started", extra={"model": options.model})
            try:
                response = await self.llm.chat(options)
            except Exception as e:
                self.stats["failed"] += 1
                logger.error("❌ codegen.llm.provider_failed", exc_info=e)
                raise self._wrap_provider_error(e) from e

            try:
                output = self.parse_response(response.content)
            except CodeGenError:
                self.stats["failed"] += 1
                raise

            self.stats["llm_runs"] += 1
            self.stats["files_generated"] += len(output.files)
            if self.cache is not None and not existing_files:
                await self.cache.set_codegen(schema, platform, output.model_dump())
            logger.info("✅ codegen.llm.completed", extra={"files": len(output.files), "model": response.model})
            return output

    async def stream_generate(
        self,
        schema: Dict[str, Any],
        platform: str,
        existing_files: Optional[Sequence[GeneratedFile]] = None,
        use_templates: Optional[bool] = None,
    ) -> AsyncIterator[Union[GeneratingEvent, FileEvent, CodeGenCompleteEvent]]:
        """
        Streaming variant of ``generate``.

        Yields GeneratingEvent progress, one FileEvent per file as soon as it
        is complete, then a CodeGenCompleteEvent with the deduplicated batch.
        LLM runs without existing files share the codegen cache with
        ``generate``; a truncated stream is never cached.
        """
        self._check_schema(schema)
        self.stats["total_requests"] += 1
        use_templates = self.settings.use_templates if use_templates is None else use_templates

        yield GeneratingEvent(message="Initializing code generator", progress=0, total=100)

        if use_templates:
            output = self.generate_from_templates(schema, platform)
            self.stats["template_runs"] += 1
            total = len(output.files)
            yield GeneratingEvent(message=f"Rendering {total} files from templates", progress=10, total=100)
            for file in output.files:
                yield FileEvent.from_file(file)
            self.stats["files_generated"] += total
            logger.info("✅ codegen.templates.completed", extra={"platform": platform, "files": total})
            yield CodeGenCompleteEvent(output=output)
            return

        if self.cache is not None and not existing_files:
            cached = await self.cache.get_codegen(schema, platform)
            if cached is not None:
                self.stats["cache_hits"] += 1
                output = CodeGenOutput.model_validate(cached)
                logger.info("🎯 codegen.cache.hit", extra={"platform": platform, "files": len(output.files)})
                for file in output.files:
                    yield FileEvent.from_file(file)
                yield CodeGenCompleteEvent(output=output)
                return

        options = self._options(self.build_messages(schema, platform, existing_files))
        yield GeneratingEvent(message="Generating application code", progress=10, total=100)
        logger.info("🤖 codegen.stream.started", extra={"platform": platform, "model": options.model})

        extractor = StreamingFileExtractor()
        streamed: List[GeneratedFile] = []
        try:
            async for chunk in self.llm.stream_chat(options):
                if chunk.type != "content" or not chunk.content:
                    continue
                for file in extractor.feed(chunk.content):
                    streamed.append(file)
                    yield GeneratingEvent(
                        message=f"Writing {file.path.rsplit('/', 1)[-1]}",
                        progress=min(90, 10 + len(streamed) * 5),
                        total=100,
                    )
                    yield FileEvent.from_file(file)
        except Exception as e:
            self.stats["failed"] += 1
            logger.error(
                "❌ codegen.stream.provider_failed",
                extra={"platform": platform, "files_streamed": len(streamed)},
                exc_info=e,
            )
            raise self._wrap_provider_error(e) from e

        yield GeneratingEvent(message="Validating file structure", progress=95, total=100)
        truncated = False
        try:
            output = self.parse_response(extractor.text)
        except CodeGenError:
            if not streamed:
                self.stats["failed"] += 1
                raise
            # Truncated envelope: keep every file that arrived complete
            logger.warning(
                "⚠️ codegen.stream.truncated",
                extra={"platform": platform, "files_streamed": len(streamed)},
            )
            output = CodeGenOutput(files=dedupe_files(streamed))
            truncated = True

        sent = {file.path: file.content for file in streamed}
        for file in output.files:
            if sent.get(file.path) != file.content:
                yield FileEvent.from_file(file)

        self.stats["llm_runs"] += 1
        self.stats["files_generated"] += len(output.files)
        if self.cache is not None and not existing_files and not truncated:
            await self.cache.set_codegen(schema, platform, output.model_dump())
        logger.info("✅ codegen.stream.completed", extra={"platform": platform, "files": len(output.files)})
        yield CodeGenCompleteEvent(output=output)

    def get_statistics(self) -> Dict[str, Any]:
        return dict(self.stats)
