import json

import pytest

from appforge.core.exceptions import CodeGenError, ProviderError
from appforge.models.schemas.events import CodeGenCompleteEvent, FileEvent, GeneratingEvent
from appforge.models.schemas.generation import GeneratedFile
from appforge.services.generation.codegen import (
    CodeGen,
    StreamingFileExtractor,
    manifest_data,
    to_generated_file,
)
from appforge.services.generation.schema_cache import SchemaCache

from tests.fakes import FakeLLM, build_schema, chunked, collect


def llm_envelope(files, **extra):
    return json.dumps({"files": files, **extra})


SAMPLE_FILES = [
    {"path": "src/App.tsx", "content": "export default function App() { return <div>{'}'}</div> }"},
    {"path": "./src/main.tsx", "content": "import App from \"./App\"", "language": "typescript"},
    {"path": "src/index.css", "content": "body { margin: 0; }"},
]


# ---------------------------------------------------------------------------
# streaming extractor
# ---------------------------------------------------------------------------

def test_extractor_emits_files_as_they_complete():
    extractor = StreamingFileExtractor()
    text = llm_envelope(SAMPLE_FILES, dependencies={"react": "^18.3.1"})

    emitted = []
    for char in text:
        emitted.extend(f.path for f in extractor.feed(char))

    assert emitted == ["src/App.tsx", "src/main.tsx", "src/index.css"]
    assert extractor.text == text


def test_extractor_holds_back_incomplete_object():
    extractor = StreamingFileExtractor()

    assert extractor.feed('{"files": [{"path": "a.ts", "content": "x"}, {"path": "b.ts", "con') != []
    assert extractor.feed('tent": "y"') == []
    assert [f.path for f in extractor.feed("}]}")] == ["b.ts"]


def test_extractor_ignores_non_file_objects():
    extractor = StreamingFileExtractor()

    assert extractor.feed('{"files": [{"name": "nope"}], "scripts": {"dev": "vite"}}') == []


def test_to_generated_file_normalizes():
    file = to_generated_file({"path": " ./src/App.tsx ", "content": "x"})

    assert file.path == "src/App.tsx"
    assert file.language == "typescript"
    assert to_generated_file({"path": "a.ts", "content": 3}) is None
    assert to_generated_file({"path": "  ", "content": ""}) is None
    assert to_generated_file("a.ts") is None


def test_manifest_data_merges_dev_dependencies():
    package = {"dependencies": {"react": "^18"}, "devDependencies": {"vite": "^5"}, "scripts": {"dev": "vite"}}

    data = manifest_data([GeneratedFile(path="package.json", content=json.dumps(package))])

    assert data == {"dependencies": {"react": "^18", "vite": "^5"}, "scripts": {"dev": "vite"}}
    assert manifest_data([GeneratedFile(path="package.json", content="{oops")]) == {"dependencies": {}, "scripts": {}}
    assert manifest_data([]) == {"dependencies": {}, "scripts": {}}


# ---------------------------------------------------------------------------
# one-shot generation
# ---------------------------------------------------------------------------

async def test_incomplete_schema_is_refused(settings):
    schema = build_schema()
    schema["structure"]["pages"] = []

    with pytest.raises(CodeGenError) as exc_info:
        await CodeGen(FakeLLM(), settings).generate(schema, "webapp")

    assert exc_info.value.code == "incomplete_schema"
    assert str(exc_info.value) == "CodeGen mode requires a complete schema"


async def test_template_path_needs_no_llm(settings, schema):
    llm = FakeLLM()

    output = await CodeGen(llm, settings).generate(schema, "webapp")

    assert llm.calls == []
    assert "src/App.tsx" in [f.path for f in output.files]
    assert output.dependencies["react"]
    assert output.dependencies["vite"]
    assert output.scripts["dev"] == "vite"


async def test_llm_path_parses_envelope(settings, schema):
    files = SAMPLE_FILES + [{"path": "src/App.tsx", "content": "replaced"}]
    llm = FakeLLM(replies=[llm_envelope(files, dependencies={"react": "^18.3.1"}, scripts={"dev": "vite"})])

    output = await CodeGen(llm, settings).generate(schema, "webapp", use_templates=False)

    assert [f.path for f in output.files] == ["src/App.tsx", "src/main.tsx", "src/index.css"]
    assert output.files[0].content == "replaced"
    assert output.files[2].language == "css"
    assert output.dependencies == {"react": "^18.3.1"}
    options = llm.calls[0]
    assert options.json_mode
    assert options.max_tokens == settings.codegen_max_tokens


async def test_llm_path_missing_files(settings, schema):
    codegen = CodeGen(FakeLLM(replies=['{"dependencies": {}}']), settings)

    with pytest.raises(CodeGenError) as exc_info:
        await codegen.generate(schema, "webapp", use_templates=False)

    assert exc_info.value.code == "missing_files"
    assert codegen.stats["failed"] == 1


async def test_llm_path_provider_failure(settings, schema):
    codegen = CodeGen(FakeLLM(replies=[ProviderError("busy", status_code=503)]), settings)

    with pytest.raises(CodeGenError) as exc_info:
        await codegen.generate(schema, "webapp", use_templates=False)

    assert exc_info.value.code == "http_503"


async def test_llm_results_cached_by_schema(settings, schema):
    llm = FakeLLM(replies=[llm_envelope(SAMPLE_FILES)])
    codegen = CodeGen(llm, settings, cache=SchemaCache(settings))

    first = await codegen.generate(schema, "webapp", use_templates=False)
    second = await codegen.generate(build_schema(), "webapp", use_templates=False)

    assert len(llm.calls) == 1
    assert second == first
    assert codegen.stats["cache_hits"] == 1


async def test_existing_files_listed_in_prompt(settings, schema):
    llm = FakeLLM(replies=[llm_envelope(SAMPLE_FILES)])
    existing = [
        GeneratedFile(path="src/Small.tsx", content="small body"),
        GeneratedFile(path="src/Huge.tsx", content="x" * 5000),
    ]

    await CodeGen(llm, settings).generate(schema, "webapp", existing_files=existing, use_templates=False)

    prompt = llm.calls[0].messages[1].content
    assert "--- src/Small.tsx ---\nsmall body" in prompt
    assert "--- src/Huge.tsx (content omitted) ---" in prompt


# ---------------------------------------------------------------------------
# streaming generation
# ---------------------------------------------------------------------------

async def test_stream_templates(settings, schema):
    events = await collect(CodeGen(FakeLLM(), settings).stream_generate(schema, "webapp"))

    assert events[0].message == "Initializing code generator"
    assert events[1].message == "Rendering 15 files from templates"
    file_events = [e for e in events if isinstance(e, FileEvent)]
    assert len(file_events) == 15
    assert isinstance(events[-1], CodeGenCompleteEvent)
    assert events[-1].output.paths() == [e.path for e in file_events]


async def test_stream_llm_emits_each_file_once(settings, schema):
    llm = FakeLLM(streams=[chunked(llm_envelope(SAMPLE_FILES), size=11)])

    events = await collect(CodeGen(llm, settings).stream_generate(schema, "webapp", use_templates=False))

    paths = [e.path for e in events if isinstance(e, FileEvent)]
    assert paths == ["src/App.tsx", "src/main.tsx", "src/index.css"]
    messages = [e.message for e in events if isinstance(e, GeneratingEvent)]
    assert "Writing App.tsx" in messages
    assert messages[-1] == "Validating file structure"
    assert isinstance(events[-1], CodeGenCompleteEvent)
    assert len(events[-1].output.files) == 3


async def test_stream_truncated_envelope_keeps_complete_files(settings, schema):
    truncated = '{"files": [{"path": "a.ts", "content": "one"}, {"path": "b.ts", "content": "tw'
    llm = FakeLLM(streams=[chunked(truncated)])

    events = await collect(CodeGen(llm, settings).stream_generate(schema, "webapp", use_templates=False))

    assert [e.path for e in events if isinstance(e, FileEvent)] == ["a.ts"]
    assert events[-1].output.paths() == ["a.ts"]


async def test_stream_llm_results_share_cache_with_generate(settings, schema):
    llm = FakeLLM(streams=[chunked(llm_envelope(SAMPLE_FILES), size=11)])
    codegen = CodeGen(llm, settings, cache=SchemaCache(settings))

    first = await collect(codegen.stream_generate(schema, "webapp", use_templates=False))
    replayed = await collect(codegen.stream_generate(build_schema(), "webapp", use_templates=False))
    generated = await codegen.generate(build_schema(), "webapp", use_templates=False)

    assert len(llm.stream_calls) == 1 and llm.calls == []
    assert [e.path for e in replayed if isinstance(e, FileEvent)] == ["src/App.tsx", "src/main.tsx", "src/index.css"]
    assert replayed[-1].output == first[-1].output == generated
    assert codegen.stats["cache_hits"] == 2


async def test_stream_truncated_output_is_not_cached(settings, schema):
    truncated = '{"files": [{"path": "a.ts", "content": "one"}, {"path": "b.ts", "content": "tw'
    llm = FakeLLM(replies=[llm_envelope(SAMPLE_FILES)], streams=[chunked(truncated)])
    codegen = CodeGen(llm, settings, cache=SchemaCache(settings))

    await collect(codegen.stream_generate(schema, "webapp", use_templates=False))
    output = await codegen.generate(schema, "webapp", use_templates=False)

    assert len(llm.calls) == 1
    assert len(output.files) == 3
    assert codegen.stats["cache_hits"] == 0


async def test_stream_truncated_without_files_fails(settings, schema):
    llm = FakeLLM(streams=[['{"files": [{"path": "a.ts", "cont']])

    with pytest.raises(CodeGenError) as exc_info:
        await collect(CodeGen(llm, settings).stream_generate(schema, "webapp", use_templates=False))

    assert exc_info.value.code == "invalid_json"


async def test_stream_provider_failure(settings, schema):
    llm = FakeLLM(streams=[["{", ProviderError("model not found", status_code=404)]])

    with pytest.raises(CodeGenError) as exc_info:
        await collect(CodeGen(llm, settings).stream_generate(schema, "webapp", use_templates=False))

    assert exc_info.value.code == "http_404"
