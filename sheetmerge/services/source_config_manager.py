from collections.abc import Iterable

from sheetmerge.commons.exceptions import (
    InvalidCopyColumn,
    InvalidJoinKey,
    NoTargetSelected,
    SourceNotJoinable,
    TableNotFound,
)
from sheetmerge.libs.log import get_logger
from sheetmerge.schemas.merge_schemas import SourceConfig, SourceConfigView
from sheetmerge.schemas.table_schemas import Table
from sheetmerge.services.table_registry import TableRegistry


logger = get_logger(__name__)


class SourceConfigManager:
    """Tracks how every candidate source table joins into the selected target"""

    def __init__(self, registry: TableRegistry):
        self.registry = registry
        self.target_id: str | None = None
        # Keyed by source table id, kept in registry order by sync()
        self.configs: dict[str, SourceConfig] = {}

    @property
    def target(self) -> Table | None:
        if self.target_id is None:
            return None
        return self.registry.find(self.target_id)

    @staticmethod
    def common_columns(source: Table, target: Table) -> list[str]:
        """Columns present in both tables, in the source's column order"""
        target_columns = set(target.columns)
        return [col for col in source.columns if col in target_columns]

    @classmethod
    def default_config(cls, source: Table, target: Table) -> SourceConfig:
        common = cls.common_columns(source, target)
        join_key = common[0] if common else ""
        target_columns = set(target.columns)

        return SourceConfig(
            source_table_id=source.id,
            join_key=join_key,
            # Default to copying only the columns the target does not have yet
            copy_columns=[
                col
                for col in source.columns
                if col != join_key and col not in target_columns
            ],
            enabled=False,
        )

    @classmethod
    def derive_defaults(
        cls,
        target: Table,
        all_tables: Iterable[Table],
    ) -> dict[str, SourceConfig]:
        """Default config for every table other than the target"""
        return {
            source.id: cls.default_config(source, target)
            for source in all_tables
            if source.id != target.id
        }

    def select_target(self, target_id: str | None) -> dict[str, SourceConfig]:
        """Select a new target and rebuild every source config from defaults"""
        if target_id is None:
            logger.info("Cleared target selection")
            self.target_id = None
            self.configs = {}
            return self.configs

        target = self.registry.get(target_id)
        self.target_id = target.id
        self.configs = self.derive_defaults(target, self.registry.tables)
        logger.info(
            f"Selected target {target.file_name} - {target.name} "
            f"with {len(self.configs)} candidate sources",
        )
        return self.configs

    def sync(self) -> dict[str, SourceConfig]:
        """
        Reconcile configs after tables were added or removed.

        Existing configs keep the user's choices. New tables get defaults,
        configs for removed tables are dropped, and removing the target
        clears the selection.
        """
        if self.target_id is None:
            return self.configs

        target = self.target
        if target is None:
            logger.info(f"Target {self.target_id} was removed, clearing selection")
            return self.select_target(None)

        configs: dict[str, SourceConfig] = {}
        for source in self.registry.tables:
            if source.id == target.id:
                continue
            if (existing := self.configs.get(source.id)) is not None:
                configs[source.id] = existing
            else:
                configs[source.id] = self.default_config(source, target)
                logger.info(f"Added default config for source {source.file_name}")

        self.configs = configs
        return self.configs

    def _resolve(self, source_id: str) -> tuple[Table, Table, SourceConfig]:
        target = self.target
        if target is None:
            raise NoTargetSelected()

        config = self.configs.get(source_id)
        source = self.registry.find(source_id)
        if config is None or source is None:
            raise TableNotFound(source_id)

        return target, source, config

    def toggle(self, source_id: str) -> SourceConfig:
        target, source, config = self._resolve(source_id)

        if not config.enabled and not self.common_columns(source, target):
            raise SourceNotJoinable(source.file_name)

        config = config.model_copy(update={"enabled": not config.enabled})
        self.configs[source_id] = config
        return config

    def set_join_key(self, source_id: str, column: str) -> SourceConfig:
        target, source, config = self._resolve(source_id)

        if column not in self.common_columns(source, target):
            raise InvalidJoinKey(column)

        # A join key is never also copied
        config = config.model_copy(
            update={
                "join_key": column,
                "copy_columns": [col for col in config.copy_columns if col != column],
            },
        )
        self.configs[source_id] = config
        return config

    def toggle_column(self, source_id: str, column: str) -> SourceConfig:
        _, source, config = self._resolve(source_id)

        if column not in source.columns or column == config.join_key:
            raise InvalidCopyColumn(column)

        if column in config.copy_columns:
            copy_columns = [col for col in config.copy_columns if col != column]
        else:
            copy_columns = [*config.copy_columns, column]

        config = config.model_copy(update={"copy_columns": copy_columns})
        self.configs[source_id] = config
        return config

    def enabled_configs(self) -> list[SourceConfig]:
        """Enabled configs in the order their tables were loaded"""
        return [config for config in self.configs.values() if config.enabled]

    def views(self) -> list[SourceConfigView]:
        target = self.target
        if target is None:
            return []

        views = []
        for source_id, config in self.configs.items():
            if (source := self.registry.find(source_id)) is None:
                continue
            common = self.common_columns(source, target)
            views.append(
                SourceConfigView(
                    config=config,
                    file_name=source.file_name,
                    name=source.name,
                    common_columns=common,
                    copyable_columns=[
                        col for col in source.columns if col != config.join_key
                    ],
                    joinable=bool(common),
                ),
            )
        return views
