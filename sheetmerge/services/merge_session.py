import time
import uuid
from collections.abc import Callable, Iterable

from sheetmerge._config import config
from sheetmerge.commons.exceptions import NoMergeResult, NoTargetSelected, SessionNotFound
from sheetmerge.libs.log import get_logger
from sheetmerge.schemas.merge_schemas import MergeResult, MergeState, SourceConfig
from sheetmerge.schemas.table_schemas import Table
from sheetmerge.services.source_config_manager import SourceConfigManager
from sheetmerge.services.table_merger import TableMerger
from sheetmerge.services.table_registry import TableRegistry


logger = get_logger(__name__)


class MergeSession:
    """
    One user's loaded tables, merge configuration and latest merge result.

    State moves UNCONFIGURED -> CONFIGURED when a target is selected and
    CONFIGURED -> MERGED on a successful merge. Any change to the tables
    or the configuration drops the result and moves MERGED back to
    CONFIGURED.
    """

    def __init__(self, session_id: str):
        self.id = session_id
        self.registry = TableRegistry()
        self.config_manager = SourceConfigManager(self.registry)
        self._result: MergeResult | None = None

    @property
    def state(self) -> MergeState:
        if self.config_manager.target is None:
            return MergeState.UNCONFIGURED
        if self._result is None:
            return MergeState.CONFIGURED
        return MergeState.MERGED

    @property
    def result(self) -> MergeResult:
        if self._result is None:
            raise NoMergeResult()
        return self._result

    def _invalidate(self) -> None:
        if self._result is not None:
            logger.info(f"Session {self.id}: configuration changed, discarding result")
        self._result = None

    def add_tables(self, tables: Iterable[Table]) -> None:
        self.registry.add_many(tables)
        self.config_manager.sync()
        self._invalidate()

    def remove_table(self, table_id: str) -> None:
        self.registry.remove(table_id)
        self.config_manager.sync()
        self._invalidate()

    def select_target(self, table_id: str | None) -> None:
        self.config_manager.select_target(table_id)
        self._invalidate()

    def toggle_source(self, source_id: str) -> SourceConfig:
        config = self.config_manager.toggle(source_id)
        self._invalidate()
        return config

    def set_join_key(self, source_id: str, column: str) -> SourceConfig:
        config = self.config_manager.set_join_key(source_id, column)
        self._invalidate()
        return config

    def toggle_copy_column(self, source_id: str, column: str) -> SourceConfig:
        config = self.config_manager.toggle_column(source_id, column)
        self._invalidate()
        return config

    def merge(self) -> MergeResult:
        target = self.config_manager.target
        if target is None:
            raise NoTargetSelected()

        merger = TableMerger(
            target=target,
            sources=self.config_manager.enabled_configs(),
            all_tables=self.registry.tables,
        )
        # A failed merge raises before the previous state is touched
        self._result = merger.merge()
        return self._result


class SessionStore:
    """
    Process-local store of merge sessions, nothing is persisted.

    Sessions not accessed for `ttl_seconds` are evicted on the next
    create() or get().
    """

    def __init__(
        self,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = config.SESSION_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.clock = clock
        self._sessions: dict[str, MergeSession] = {}
        self._last_access: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def evict_expired(self) -> int:
        cutoff = self.clock() - self.ttl_seconds
        expired = [sid for sid, seen in self._last_access.items() if seen < cutoff]
        for session_id in expired:
            del self._sessions[session_id]
            del self._last_access[session_id]
        if expired:
            logger.info(f"Evicted {len(expired)} idle merge session(s)")
        return len(expired)

    def create(self) -> MergeSession:
        self.evict_expired()
        session = MergeSession(uuid.uuid4().hex)
        self._sessions[session.id] = session
        self._last_access[session.id] = self.clock()
        logger.info(f"Created merge session {session.id}")
        return session

    def get(self, session_id: str) -> MergeSession:
        self.evict_expired()
        if (session := self._sessions.get(session_id)) is None:
            raise SessionNotFound(session_id)
        self._last_access[session_id] = self.clock()
        return session

    def delete(self, session_id: str) -> None:
        if self._sessions.pop(session_id, None) is None:
            raise SessionNotFound(session_id)
        del self._last_access[session_id]
        logger.info(f"Deleted merge session {session_id}")


session_store = SessionStore()
