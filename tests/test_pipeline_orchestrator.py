# FILE: tests/test_pipeline_orchestrator.py
"""
Tests for sitesmith/pipeline/
Orchestrator time budget, edit merging/diffing and preview rendering.
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import json
from types import SimpleNamespace

import pytest

from sitesmith.pipeline.diffing import build_patches, changed_paths, merge_files
from sitesmith.pipeline.llm import OpenAISitePipeline, _coerce_draft
from sitesmith.pipeline.orchestrator import PipelineOrchestrator
from sitesmith.pipeline.preview import render_preview
from sitesmith.pipeline.schemas import PipelineMode, PipelineRequest

from conftest import FakePipeline

BASE_FILES = {
    "index.html": "<html>\n<h1>A</h1>\n</html>\n",
    "styles.css": "h1 { color: red; }\n",
}


def _generate_request(**kwargs):
    return PipelineRequest(project_id="p-1", prompt="make a site", **kwargs)


def _edit_request(**kwargs):
    return PipelineRequest(
        project_id="p-1", prompt="change it", base_version=1, base_files=dict(BASE_FILES), **kwargs
    )


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class TestGenerate:

    @pytest.mark.asyncio
    async def test_generate_success(self):
        pipeline = FakePipeline(files={"index.html": "<h1>A</h1>"}, summary="Built A")
        result = await PipelineOrchestrator(pipeline).run(_generate_request())

        assert result.success
        assert result.mode == PipelineMode.GENERATE
        assert result.files == {"index.html": "<h1>A</h1>"}
        assert result.files_changed == ["index.html"]
        assert result.summary == "Built A"
        assert result.preview_html == "<h1>A</h1>"
        assert pipeline.calls[0]["mode"] == "generate"

    @pytest.mark.asyncio
    async def test_context_passed_through(self):
        pipeline = FakePipeline()
        context = [{"role": "user", "content": "earlier"}]
        await PipelineOrchestrator(pipeline).run(_generate_request(context=context))
        assert pipeline.calls[0]["context"] == context

    @pytest.mark.asyncio
    async def test_default_summary(self):
        result = await PipelineOrchestrator(FakePipeline(files={"a.html": "x", "b.css": "y"})).run(
            _generate_request()
        )
        assert result.summary == "Generated 2 file(s)."

    @pytest.mark.asyncio
    async def test_blank_output_fails(self):
        result = await PipelineOrchestrator(FakePipeline(files={"index.html": "   "})).run(_generate_request())
        assert not result.success
        assert result.errors == ["Pipeline produced no files"]


class TestEdit:

    @pytest.mark.asyncio
    async def test_untouched_files_carry_over(self):
        pipeline = FakePipeline(edits={"styles.css": "h1 { color: blue; }\n"})
        result = await PipelineOrchestrator(pipeline).run(_edit_request())

        assert result.success
        assert result.mode == PipelineMode.EDIT
        assert result.base_version == 1
        assert result.files["index.html"] == BASE_FILES["index.html"]
        assert result.files["styles.css"] == "h1 { color: blue; }\n"
        assert result.files_changed == ["styles.css"]
        assert pipeline.calls[0]["files"] == BASE_FILES

    @pytest.mark.asyncio
    async def test_patches_describe_changes(self):
        pipeline = FakePipeline(edits={"styles.css": "h1 { color: blue; }\n", "about.html": "<p>About</p>\n"})
        result = await PipelineOrchestrator(pipeline).run(_edit_request())

        patches = {p.path: p for p in result.patches}
        assert patches["styles.css"].summary == "Modified styles.css (+1 -1)"
        assert "-h1 { color: red; }" in patches["styles.css"].diff
        assert "+h1 { color: blue; }" in patches["styles.css"].diff
        assert patches["about.html"].summary == "Added about.html"

    @pytest.mark.asyncio
    async def test_deletions(self):
        pipeline = FakePipeline(edits={}, deleted=["styles.css"])
        result = await PipelineOrchestrator(pipeline).run(_edit_request())

        assert result.success
        assert "styles.css" not in result.files
        assert result.patches[0].summary == "Removed styles.css"

    @pytest.mark.asyncio
    async def test_no_changes_fails(self):
        pipeline = FakePipeline(edits={"index.html": BASE_FILES["index.html"]})
        result = await PipelineOrchestrator(pipeline).run(_edit_request())

        assert not result.success
        assert result.errors == ["No files were modified."]

    @pytest.mark.asyncio
    async def test_preview_inlines_styles(self):
        base = {
            "index.html": '<head><link rel="stylesheet" href="styles.css"></head><h1>A</h1>',
            "styles.css": "h1 { color: red; }",
        }
        pipeline = FakePipeline(edits={"styles.css": "h1 { color: blue; }"})
        request = PipelineRequest(project_id="p-1", prompt="blue", base_version=1, base_files=base)
        result = await PipelineOrchestrator(pipeline).run(request)

        assert "<style>\nh1 { color: blue; }\n</style>" in result.preview_html
        assert "<link" not in result.preview_html


class TestFailures:

    @pytest.mark.asyncio
    async def test_timeout(self):
        pipeline = FakePipeline(delay=1.0)
        result = await PipelineOrchestrator(pipeline, timeout_seconds=0.05).run(_generate_request())

        assert not result.success
        assert result.timed_out
        assert "time budget" in result.errors[0]
        assert result.files == {}

    @pytest.mark.asyncio
    async def test_pipeline_exception(self):
        pipeline = FakePipeline(error=RuntimeError("model unavailable"))
        result = await PipelineOrchestrator(pipeline).run(_edit_request())

        assert not result.success
        assert not result.timed_out
        assert result.errors == ["Pipeline error: model unavailable"]
        assert result.base_version == 1

    @pytest.mark.asyncio
    async def test_draft_errors(self):
        class _Erroring(FakePipeline):
            async def generate(self, prompt, context):
                draft = await super().generate(prompt, context)
                draft.errors.append("bad output")
                return draft

        result = await PipelineOrchestrator(_Erroring()).run(_generate_request())
        assert not result.success
        assert result.errors == ["bad output"]


class TestFilePaths:
    """Draft paths are normalised; anything escaping the project root fails the run."""

    @pytest.mark.asyncio
    async def test_relative_forms_normalised(self):
        pipeline = FakePipeline(files={"./index.html": "<h1>A</h1>", "css//site.css": "body{}"})
        result = await PipelineOrchestrator(pipeline).run(_generate_request())

        assert result.success
        assert sorted(result.files) == ["css/site.css", "index.html"]
        assert result.preview_html == "<h1>A</h1>"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["../../evil.sh", "/index.html", "C:\\site\\index.html", "a/../../b.html"])
    async def test_escaping_path_fails(self, path):
        pipeline = FakePipeline(files={"index.html": "<p/>", path: "x"})
        result = await PipelineOrchestrator(pipeline).run(_generate_request())

        assert not result.success
        assert result.files == {}
        assert result.errors[0].startswith("Unsafe file path")

    @pytest.mark.asyncio
    async def test_colliding_paths_fail(self):
        pipeline = FakePipeline(files={"a.html": "one", "./a.html": "two"})
        result = await PipelineOrchestrator(pipeline).run(_generate_request())

        assert not result.success
        assert "duplicates 'a.html'" in result.errors[0]

    @pytest.mark.asyncio
    async def test_edit_paths_land_on_base_entries(self):
        pipeline = FakePipeline(edits={"./styles.css": "h1 { color: blue; }\n"}, deleted=["./index.html"])
        result = await PipelineOrchestrator(pipeline).run(_edit_request())

        assert result.success
        assert result.files == {"styles.css": "h1 { color: blue; }\n"}
        assert result.files_changed == ["index.html", "styles.css"]

    @pytest.mark.asyncio
    async def test_unsafe_deletion_fails(self):
        pipeline = FakePipeline(edits={"styles.css": "x"}, deleted=["../outside.txt"])
        result = await PipelineOrchestrator(pipeline).run(_edit_request())

        assert not result.success
        assert result.base_version == 1
        assert "parent directory reference" in result.errors[0]


# =============================================================================
# HELPERS
# =============================================================================

class TestDiffing:

    def test_merge_files(self):
        merged = merge_files({"a": "1", "b": "2"}, {"b": "3", "c": "4"}, ["a"])
        assert merged == {"b": "3", "c": "4"}

    def test_changed_paths_order(self):
        base = {"a": "1", "b": "2", "c": "3"}
        result = {"a": "1", "b": "x", "d": "4"}
        assert changed_paths(base, result) == ["b", "c", "d"]

    def test_patch_without_trailing_newline(self):
        patches = build_patches({"a.txt": "one"}, {"a.txt": "two"}, ["a.txt"])
        assert "\\ No newline at end of file" in patches[0].diff
        assert patches[0].summary == "Modified a.txt (+1 -1)"


class TestPreview:

    def test_no_index(self):
        assert render_preview({"styles.css": "x"}) is None

    def test_public_index_fallback(self):
        assert render_preview({"public/index.html": "<p>hi</p>"}) == "<p>hi</p>"

    def test_remote_stylesheet_untouched(self):
        html = '<link rel="stylesheet" href="https://cdn.example.com/x.css">'
        assert render_preview({"index.html": html}) == html

    def test_nested_relative_href(self):
        files = {
            "public/index.html": '<link rel="stylesheet" href="../css/site.css">',
            "css/site.css": "p{}",
        }
        assert render_preview(files) == "<style>\np{}\n</style>"

    def test_component_project_previews_index_as_is(self):
        index = '<div id="root"></div><script type="module" src="/src/main.jsx"></script>'
        files = {
            "public/index.html": index,
            "src/main.jsx": "import App from './App'",
            "src/App.jsx": "export default () => <h1>Hi</h1>",
        }
        assert render_preview(files) == index

    @pytest.mark.asyncio
    async def test_pipeline_preview_preferred(self):
        class _Rendering(FakePipeline):
            async def generate(self, prompt, context):
                draft = await super().generate(prompt, context)
                draft.preview_html = "<h1>rendered</h1>"
                return draft

        result = await PipelineOrchestrator(_Rendering(files={"src/App.jsx": "x"})).run(_generate_request())
        assert result.preview_html == "<h1>rendered</h1>"


# =============================================================================
# OPENAI PIPELINE
# =============================================================================

class _FakeCompletions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(content):
    completions = _FakeCompletions(content)
    return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions


class TestOpenAIPipeline:

    @pytest.mark.asyncio
    async def test_generate_parses_json(self):
        client, completions = _client(json.dumps({"files": {"index.html": "<p/>"}, "summary": "ok"}))
        pipeline = OpenAISitePipeline(api_key=None, model="test-model", client=client)

        draft = await pipeline.generate("make it", [{"role": "user", "content": "earlier"}])

        assert draft.files == {"index.html": "<p/>"}
        assert draft.summary == "ok"
        assert completions.kwargs["model"] == "test-model"
        assert completions.kwargs["response_format"] == {"type": "json_object"}
        assert completions.kwargs["messages"][1] == {"role": "user", "content": "earlier"}
        assert completions.kwargs["messages"][-1] == {"role": "user", "content": "make it"}

    @pytest.mark.asyncio
    async def test_edit_sends_current_files(self):
        client, completions = _client(json.dumps({"files": {}, "deleted": ["old.css"]}))
        pipeline = OpenAISitePipeline(api_key=None, model="m", client=client)

        draft = await pipeline.edit("drop old css", [], {"old.css": "x"})

        assert draft.deleted == ["old.css"]
        assert '"old.css": "x"' in completions.kwargs["messages"][-1]["content"]

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client, _ = _client("not json")
        draft = await OpenAISitePipeline(api_key=None, model="m", client=client).generate("x", [])
        assert draft.errors == ["Model returned invalid JSON"]

    def test_requires_key_or_client(self):
        with pytest.raises(ValueError):
            OpenAISitePipeline(api_key=None, model="m")

    def test_coerce_draft(self):
        assert _coerce_draft([]).errors
        assert _coerce_draft({"files": "nope"}).errors
        draft = _coerce_draft({"files": {"package.json": {"name": "x"}}, "summary": 5})
        assert json.loads(draft.files["package.json"]) == {"name": "x"}
        assert draft.summary == ""
