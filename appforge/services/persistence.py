"""
Project persistence.

``ProjectStore`` is the boundary the pipeline writes through; the Postgres
implementation sits on ``DatabaseManager``. ``BestEffortPersistence`` wraps
any store so a failed write is logged and counted but never aborts a
generation that already succeeded.
"""
from typing import Any, Dict, List, Optional, Protocol, Sequence

from appforge.core.database import DatabaseManager
from appforge.core.exceptions import PersistenceError
from appforge.models.schemas.events import FileAction
from appforge.utils.logging import get_logger

logger = get_logger(__name__)


class ProjectStore(Protocol):
    async def upsert_file(self, project_id: str, path: str, content: str, language: str) -> None: ...

    async def delete_file(self, project_id: str, path: str) -> None: ...

    async def append_message(self, project_id: str, role: str, content: str) -> None: ...

    async def append_generation_history(self, record: Dict[str, Any]) -> None: ...


class PostgresProjectStore:
    """ProjectStore over asyncpg."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def upsert_file(self, project_id: str, path: str, content: str, language: str) -> None:
        try:
            await self.db.upsert_file(project_id, path, content, language)
        except Exception as e:
            raise PersistenceError(f"upsert_file failed for {path}: {e}") from e

    async def delete_file(self, project_id: str, path: str) -> None:
        try:
            await self.db.delete_file(project_id, path)
        except Exception as e:
            raise PersistenceError(f"delete_file failed for {path}: {e}") from e

    async def append_message(self, project_id: str, role: str, content: str) -> None:
        try:
            await self.db.append_message(project_id, role, content)
        except Exception as e:
            raise PersistenceError(f"append_message failed: {e}") from e

    async def append_generation_history(self, record: Dict[str, Any]) -> None:
        try:
            await self.db.append_generation_history(record)
        except Exception as e:
            raise PersistenceError(f"append_generation_history failed: {e}") from e


class BestEffortPersistence:
    """
    Non-blocking persistence around a ProjectStore.

    Every operation returns True on success and False on failure; failures
    are logged with the project id and counted in ``stats``.
    """

    def __init__(self, store: Optional[ProjectStore]):
        self.store = store
        self.stats = {
            "writes": 0,
            "failures": 0,
        }

    @property
    def enabled(self) -> bool:
        return self.store is not None

    async def _attempt(self, operation: str, project_id: str, call) -> bool:
        if self.store is None:
            return False
        try:
            await call()
        except Exception as e:
            self.stats["failures"] += 1
            logger.warning(
                "⚠️ persistence.write.failed",
                extra={"operation": operation, "project_id": project_id, "error": str(e)},
            )
            return False
        self.stats["writes"] += 1
        return True

    async def apply_action(self, project_id: str, action: FileAction) -> bool:
        if action.type == "delete_file":
            return await self._attempt(
                "delete_file", project_id, lambda: self.store.delete_file(project_id, action.path)
            )
        return await self._attempt(
            "upsert_file",
            project_id,
            lambda: self.store.upsert_file(project_id, action.path, action.content or "", action.language or "plaintext"),
        )

    async def append_message(self, project_id: str, role: str, content: str) -> bool:
        return await self._attempt(
            "append_message", project_id, lambda: self.store.append_message(project_id, role, content)
        )

    async def append_generation_history(self, record: Dict[str, Any]) -> bool:
        return await self._attempt(
            "append_generation_history",
            record.get("project_id", ""),
            lambda: self.store.append_generation_history(record),
        )

    async def persist_generation(
        self,
        project_id: str,
        actions: Sequence[FileAction],
        assistant_message: Optional[str],
        history: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, int]:
        """
        Apply file actions, then the assistant message, then the history record.

        Returns:
            {"succeeded": n, "failed": m}
        """
        outcomes: List[bool] = []
        for action in actions:
            outcomes.append(await self.apply_action(project_id, action))
        if assistant_message:
            outcomes.append(await self.append_message(project_id, "assistant", assistant_message))
        if history is not None:
            outcomes.append(await self.append_generation_history({"project_id": project_id, **history}))

        summary = {"succeeded": sum(outcomes), "failed": len(outcomes) - sum(outcomes)}
        logger.info("💾 persistence.generation.saved", extra={"project_id": project_id, **summary})
        return summary

    def get_stats(self) -> Dict[str, int]:
        return dict(self.stats)
