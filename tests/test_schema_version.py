from appforge.services.generation.schema_version import (
    CURRENT_SCHEMA_VERSION,
    VERSION_KEY,
    compare_versions,
    create_versioned_schema,
    export_schema,
    migrate_schema,
    migration_path,
    schema_version_of,
    stamp_version,
    validate_compatibility,
    version_info,
)

from tests.fakes import build_schema


def test_unversioned_schema_is_treated_as_initial():
    assert schema_version_of(build_schema()) == "1.0.0"
    assert schema_version_of(None) == "1.0.0"


def test_version_comparison():
    assert compare_versions("1.2.0", "2.0.0") == -1
    assert compare_versions("2.0.0", "2.0.0") == 0
    assert compare_versions("2.0.1", "2.0.0") == 1


def test_migration_path():
    assert migration_path("1.0.0") == ["1.1.0", "1.2.0", "2.0.0"]
    assert migration_path("1.2.0") == ["2.0.0"]
    assert migration_path("2.0.0") == []


def test_migrate_unversioned_schema():
    schema = build_schema()

    result = migrate_schema(schema)

    assert result.success
    assert (result.from_version, result.to_version) == ("1.0.0", CURRENT_SCHEMA_VERSION)
    assert result.schema[VERSION_KEY] == CURRENT_SCHEMA_VERSION
    assert result.schema["design"]["responsive"]["strategy"] == "mobile-first"
    assert result.schema["features"]["pwa"]["enabled"] is False
    assert "[1.0.0→1.1.0] Added default responsive configuration" in result.changes
    assert result.schema["$history"][-1]["version"] == CURRENT_SCHEMA_VERSION
    # input untouched
    assert VERSION_KEY not in schema
    assert "responsive" not in schema["design"]


def test_migration_adds_auth_redirects():
    schema = build_schema(features={"auth": {"enabled": True, "providers": ["email"]}})
    schema[VERSION_KEY] = "1.1.0"

    result = migrate_schema(schema)

    auth = result.schema["features"]["auth"]
    assert auth["redirectAfterLogin"] == "/"
    assert auth["redirectAfterLogout"] == "/login"
    assert "pwa" not in result.schema["features"]


def test_current_schema_needs_no_migration():
    schema = stamp_version(build_schema())

    result = migrate_schema(schema)

    assert result.success
    assert result.changes == ["No migration needed"]
    assert result.schema is schema


def test_unsupported_version_fails():
    schema = build_schema()
    schema[VERSION_KEY] = "0.9.0"

    result = migrate_schema(schema)

    assert not result.success
    assert "not supported" in result.warnings[0]


def test_version_info():
    info = version_info(build_schema())

    assert info["needs_migration"]
    assert info["migration_path"] == ["1.1.0", "1.2.0", "2.0.0"]


def test_stamp_version_copies():
    schema = build_schema()

    stamped = stamp_version(schema)

    assert stamped[VERSION_KEY] == CURRENT_SCHEMA_VERSION
    assert VERSION_KEY not in schema


def test_create_versioned_schema_fills_defaults():
    versioned = create_versioned_schema({"meta": {"name": "Tasks"}}, "mobile")

    assert versioned["meta"]["name"] == "Tasks"
    assert versioned["meta"]["platform"] == "mobile"
    assert versioned["design"]["colors"]
    assert versioned["components"] == []
    assert versioned["$history"][0]["changes"] == ["Initial schema creation"]


def test_validate_compatibility():
    ok, issues = validate_compatibility(stamp_version(build_schema()))
    assert ok and issues == []

    newer = build_schema()
    newer[VERSION_KEY] = "3.0.0"
    ok, issues = validate_compatibility(newer)
    assert not ok
    assert issues == ["Schema version 3.0.0 is newer than current 2.0.0"]

    malformed = build_schema()
    malformed[VERSION_KEY] = "2.0"
    del malformed["structure"]
    _, issues = validate_compatibility(malformed)
    assert "Invalid version format: 2.0" in issues
    assert "Missing required field: structure" in issues


def test_export_strips_metadata():
    exported = export_schema(create_versioned_schema(build_schema(), "webapp"))

    assert not [key for key in exported if key.startswith("$")]
    assert exported["meta"]["name"] == "Bakery Co"
