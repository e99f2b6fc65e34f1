from appforge.models.schemas.events import FileAction
from appforge.services.persistence import BestEffortPersistence

from tests.fakes import FakeStore


def actions():
    return [
        FileAction(type="create_or_update_file", path="src/App.tsx", content="app", language="typescript"),
        FileAction(type="create_or_update_file", path="README.md", content="# hi"),
        FileAction(type="delete_file", path="src/Old.tsx"),
    ]


async def test_persist_generation_writes_everything(fake_store):
    fake_store.files["src/Old.tsx"] = {"content": "old"}
    persistence = BestEffortPersistence(fake_store)

    summary = await persistence.persist_generation(
        "proj-1", actions(), "Generated 2 files.", history={"mode": "controller", "file_count": 2}
    )

    assert summary == {"succeeded": 5, "failed": 0}
    assert set(fake_store.files) == {"src/App.tsx", "README.md"}
    assert fake_store.files["README.md"]["language"] == "plaintext"
    assert fake_store.messages == [{"project_id": "proj-1", "role": "assistant", "content": "Generated 2 files."}]
    assert fake_store.history == [{"project_id": "proj-1", "mode": "controller", "file_count": 2}]


async def test_failed_writes_are_counted_not_raised():
    store = FakeStore(fail_on={"upsert_file"})
    persistence = BestEffortPersistence(store)

    summary = await persistence.persist_generation("proj-1", actions(), "done")

    assert summary == {"succeeded": 2, "failed": 2}
    assert persistence.get_stats() == {"writes": 2, "failures": 2}
    assert store.messages


async def test_disabled_persistence_is_a_no_op():
    persistence = BestEffortPersistence(None)

    assert not persistence.enabled
    assert await persistence.append_message("proj-1", "assistant", "hi") is False
    assert persistence.get_stats() == {"writes": 0, "failures": 0}
