import copy

import pytest

from appforge.models.schemas.generation import GeneratedFile
from appforge.services.generation.incremental import (
    compute_file_diff,
    diff_schemas,
    format_diff_summary,
    generate_incremental,
    key_matches,
    merge_files,
    suggest_update_strategy,
)
from appforge.services.generation.templates import generate_files_from_schema

from tests.fakes import build_schema


def project(schema):
    return generate_files_from_schema(schema)


def regenerated(result):
    return [f.path for f in result.files_to_regenerate]


# ---------------------------------------------------------------------------
# schema diff
# ---------------------------------------------------------------------------

def test_identical_schemas_have_no_changes(schema):
    diff = diff_schemas(schema, copy.deepcopy(schema))

    assert not diff.has_changes
    assert diff.can_incremental


def test_feature_changes_are_reported(schema):
    new = copy.deepcopy(schema)
    new["features"] = {"auth": {"enabled": True, "providers": ["email"]}}

    diff = diff_schemas(schema, new)

    assert diff.features_changed
    assert diff.changed_features == ["auth"]
    assert not diff_schemas(schema, copy.deepcopy(schema)).features_changed


def test_diff_reports_fragment_keys(schema):
    new = copy.deepcopy(schema)
    new["design"]["colors"]["primary"] = "#000000"
    new["structure"]["pages"][1]["name"] = "Our Menu"
    new["structure"]["pages"].append({"id": "contact", "name": "Contact", "path": "/contact", "components": []})

    diff = diff_schemas(schema, new)

    assert diff.changed_design_keys == ["colors"]
    assert diff.changed_pages == ["menu"]
    assert diff.added_pages == ["contact"]
    assert {"design.colors", "page:menu", "page:contact", "pages"} <= diff.changed_keys
    assert "meta" not in diff.changed_keys


def test_platform_change_blocks_incremental(schema):
    diff = diff_schemas(schema, build_schema("mobile"))

    assert diff.platform_changed
    assert not diff.can_incremental


def test_key_matching_uses_dotted_prefixes():
    assert key_matches("design", "design.colors")
    assert key_matches("design.colors", "design")
    assert not key_matches("design.col", "design.colors")
    assert not key_matches("page:home", "page:home2")


# ---------------------------------------------------------------------------
# incremental generation
# ---------------------------------------------------------------------------

def test_color_change_regenerates_only_stylesheet(schema):
    old_files = project(schema)
    new = copy.deepcopy(schema)
    new["design"]["colors"]["primary"] = "#000000"

    result = generate_incremental(diff_schemas(schema, new), old_files, new)

    assert regenerated(result) == ["src/index.css"]
    assert "#000000" in result.files_to_regenerate[0].content
    assert result.files_to_delete == []


def test_footer_change_regenerates_footer(schema):
    old_files = project(schema)
    new = copy.deepcopy(schema)
    new["components"][2]["props"] = {"brand": "Bakery Co Ltd"}

    result = generate_incremental(diff_schemas(schema, new), old_files, new)

    assert regenerated(result) == ["src/components/Footer.tsx"]


def test_unaffected_files_keep_previous_content(schema):
    old_files = project(schema)
    old_files = [
        GeneratedFile(path=f.path, content="// edited by hand", language=f.language)
        if f.path == "src/pages/Index.tsx" else f
        for f in old_files
    ]
    new = copy.deepcopy(schema)
    new["design"]["colors"]["accent"] = "#111111"

    result = generate_incremental(diff_schemas(schema, new), old_files, new)

    kept = {f.path: f for f in result.files_to_keep}
    assert kept["src/pages/Index.tsx"].content == "// edited by hand"


def test_removed_page_deletes_its_file_and_keeps_hand_written_files(schema):
    old_files = project(schema) + [GeneratedFile(path="src/custom.ts", content="export {}", language="typescript")]
    new = copy.deepcopy(schema)
    new["structure"]["pages"] = new["structure"]["pages"][:2]

    result = generate_incremental(diff_schemas(schema, new), old_files, new)

    assert result.files_to_delete == ["src/pages/About.tsx"]
    assert "src/App.tsx" in regenerated(result)
    assert "src/custom.ts" in [f.path for f in result.files_to_keep]
    final_paths = [f.path for f in result.files]
    assert "src/pages/About.tsx" not in final_paths
    assert "src/custom.ts" in final_paths


def test_platform_change_is_a_full_rebuild(schema):
    old_files = project(schema)
    new = build_schema("mobile")

    result = generate_incremental(diff_schemas(schema, new), old_files, new)

    assert result.full_rebuild
    assert result.files_to_keep == []
    assert "src/App.tsx" in result.files_to_delete
    assert "app.json" in regenerated(result)


def test_without_previous_schema_everything_regenerates(schema):
    result = generate_incremental(diff_schemas(None, schema), [], schema)

    assert result.full_rebuild
    assert len(result.files_to_regenerate) == len(project(schema))


def with_galleries(schema):
    """Two pages that derive the same file and component name."""
    schema = copy.deepcopy(schema)
    schema["structure"]["pages"].extend([
        {"id": "g1", "name": "Gallery", "title": "Cake Photos", "path": "/gallery", "components": []},
        {"id": "g2", "name": "Gallery", "title": "Event Photos", "path": "/gallery", "components": []},
    ])
    return schema


def as_contents(files):
    return {f.path: f.content for f in files}


def test_removing_first_duplicate_page_regenerates_the_renamed_one():
    old = with_galleries(build_schema())
    old_files = project(old)
    new = copy.deepcopy(old)
    new["structure"]["pages"] = [p for p in new["structure"]["pages"] if p["id"] != "g1"]

    result = generate_incremental(diff_schemas(old, new), old_files, new)

    assert "src/pages/Gallery.tsx" in regenerated(result)
    assert result.files_to_delete == ["src/pages/Gallery2.tsx"]
    gallery = as_contents(result.files)["src/pages/Gallery.tsx"]
    assert "Event Photos" in gallery
    assert "Cake Photos" not in gallery


def rename_page(schema):
    schema["structure"]["pages"][1]["name"] = "Our Menu"


def remove_page(schema):
    del schema["structure"]["pages"][2]


def reorder_pages(schema):
    schema["structure"]["pages"].reverse()


def remove_home_page(schema):
    del schema["structure"]["pages"][0]


def add_duplicate_pages(schema):
    schema["structure"]["pages"].extend([
        {"id": "d1", "name": "Blog Post", "path": "/posts", "components": []},
        {"id": "d2", "name": "Blog Post", "path": "/posts", "components": ["hero"]},
    ])


def prepend_duplicate_page(schema):
    schema["structure"]["pages"].insert(1, {"id": "g0", "name": "Gallery", "title": "Shop Photos", "path": "/gallery"})


def remove_first_duplicate(schema):
    schema["structure"]["pages"] = [p for p in schema["structure"]["pages"] if p["id"] != "g1"]


def rename_first_duplicate(schema):
    for page in schema["structure"]["pages"]:
        if page["id"] == "g1":
            page["name"] = "Photos"


def change_component(schema):
    schema["components"][0]["props"] = {"title": {"type": "string", "default": "Warm bread daily"}}


def change_footer(schema):
    schema["components"][2]["props"] = {"brand": "Bakery Co Ltd"}


def change_colors(schema):
    schema["design"]["colors"]["primary"] = "#000000"


def change_fonts(schema):
    schema["design"]["typography"]["headingFont"] = "Playfair Display"


def change_meta(schema):
    schema["meta"]["name"] = "Bread Co"


def change_navigation(schema):
    schema["structure"]["navigation"]["type"] = "tabs"
    schema["structure"]["navigation"]["items"].pop()


def enable_auth(schema):
    schema["features"]["auth"] = {"enabled": True, "providers": ["email"]}


def enable_pwa(schema):
    schema["features"]["pwa"] = {"enabled": True}


SCHEMA_EDITS = [
    rename_page,
    remove_page,
    reorder_pages,
    remove_home_page,
    add_duplicate_pages,
    prepend_duplicate_page,
    remove_first_duplicate,
    rename_first_duplicate,
    change_component,
    change_footer,
    change_colors,
    change_fonts,
    change_meta,
    change_navigation,
    enable_auth,
    enable_pwa,
]


@pytest.mark.parametrize("platform", ["webapp", "website", "mobile"])
@pytest.mark.parametrize("start", [build_schema, lambda platform: with_galleries(build_schema(platform))])
def test_incremental_update_matches_a_fresh_render(platform, start):
    for edit in SCHEMA_EDITS:
        old = start(platform)
        old_files = project(old)
        new = copy.deepcopy(old)
        edit(new)

        result = generate_incremental(diff_schemas(old, new), old_files, new)

        fresh = as_contents(project(new))
        assert as_contents(result.files) == fresh, edit.__name__
        before = as_contents(old_files)
        for kept in result.files_to_keep:
            assert kept.content == before[kept.path] == fresh[kept.path], (edit.__name__, kept.path)


# ---------------------------------------------------------------------------
# strategy
# ---------------------------------------------------------------------------

def test_strategy_none(schema):
    assert suggest_update_strategy(schema, copy.deepcopy(schema)).type == "none"


def test_strategy_incremental(schema):
    new = copy.deepcopy(schema)
    new["design"]["colors"]["primary"] = "#000000"

    suggestion = suggest_update_strategy(schema, new)

    assert suggestion.type == "incremental"
    assert suggestion.affected_files == ["src/index.css"]
    assert suggestion.estimated_time_ms == 200


def test_strategy_full_on_platform_change(schema):
    assert suggest_update_strategy(schema, build_schema("website")).type == "full"


def test_strategy_full_when_most_files_change(schema):
    new = copy.deepcopy(schema)
    new["meta"]["name"] = "Bread Co"
    new["design"]["colors"]["primary"] = "#000000"
    for page in new["structure"]["pages"]:
        page["name"] = page["name"] + " Page"

    suggestion = suggest_update_strategy(schema, new)

    assert suggestion.type == "full"
    assert suggestion.reason == "Too many changes for incremental update"


# ---------------------------------------------------------------------------
# file-level diff
# ---------------------------------------------------------------------------

def test_file_diff_and_summary():
    old = [
        GeneratedFile(path="a.ts", content="x\ny"),
        GeneratedFile(path="b.ts", content="same"),
        GeneratedFile(path="c.ts", content="gone"),
    ]
    new = [
        GeneratedFile(path="a.ts", content="x\nz"),
        GeneratedFile(path="b.ts", content="same   \n"),
        GeneratedFile(path="d.ts", content="new"),
    ]

    result = compute_file_diff(old, new)

    assert (result.added, result.modified, result.deleted, result.unchanged) == (1, 1, 1, 1)
    summary = format_diff_summary(result)
    assert "  ~ a.ts (2 changes)" in summary
    assert "  + d.ts" in summary
    assert "  - c.ts" in summary


def test_merge_files():
    existing = [GeneratedFile(path="a", content="1"), GeneratedFile(path="b", content="2")]
    updated = [GeneratedFile(path="b", content="3"), GeneratedFile(path="c", content="4")]

    merged = merge_files(existing, updated, deleted=["a"])

    assert [(f.path, f.content) for f in merged] == [("b", "3"), ("c", "4")]
