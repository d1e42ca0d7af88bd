import copy
from collections.abc import Iterable, Sequence

from sheetmerge.commons.exceptions import MergeFailed, MissingJoinKey, NoSourcesSelected
from sheetmerge.libs.keys import normalize_key
from sheetmerge.libs.log import get_logger
from sheetmerge.schemas.merge_schemas import MergeResult, SourceConfig
from sheetmerge.schemas.table_schemas import Record, Table


logger = get_logger(__name__)


class TableMerger:
    """
    Enrich a target table with columns looked up from source tables.

    Sources are applied in the given order, so a later source overwrites
    a column written by an earlier one. The merger never mutates the
    tables it is given: it works on a deep copy of the target rows and
    returns them in a new MergeResult.
    """

    def __init__(
        self,
        target: Table,
        sources: Sequence[SourceConfig],
        all_tables: Iterable[Table],
    ):
        self.target = target
        self.sources = list(sources)
        self.tables_by_id = {table.id: table for table in all_tables}

    def source_name(self, config: SourceConfig) -> str:
        if (source := self.tables_by_id.get(config.source_table_id)) is not None:
            return source.file_name
        return config.source_table_id

    def validate(self) -> None:
        """Fail fast on the first unusable configuration"""
        if not self.sources:
            raise NoSourcesSelected()

        for config in self.sources:
            if not config.join_key:
                raise MissingJoinKey(self.source_name(config))

    @staticmethod
    def build_lookup_index(rows: Iterable[Record], join_key: str) -> dict[str, Record]:
        """Map normalized join-key values to source rows"""
        index: dict[str, Record] = {}
        for row in rows:
            key = normalize_key(row.get(join_key))
            if key is None:
                continue
            # Duplicate keys: the last row wins
            index[key] = row
        return index

    @staticmethod
    def apply_source(
        rows: list[Record],
        config: SourceConfig,
        index: dict[str, Record],
    ) -> int:
        """Copy the configured columns into every matching row, return the hit count"""
        matched = 0
        for row in rows:
            key = normalize_key(row.get(config.join_key))
            if key is None:
                continue

            source_row = index.get(key)
            if source_row is None:
                continue

            for column in config.copy_columns:
                row[column] = source_row.get(column)
            matched += 1

        return matched

    @staticmethod
    def collect_columns(base_columns: Sequence[str], rows: Iterable[Record]) -> list[str]:
        """Base columns first, then any new column in first-appearance order"""
        columns = list(base_columns)
        seen = set(columns)
        for row in rows:
            for column in row:
                if column not in seen:
                    seen.add(column)
                    columns.append(column)
        return columns

    def merge(self) -> MergeResult:
        self.validate()

        logger.info(
            f"Starting merge into {self.target.file_name} - {self.target.name} "
            f"from {len(self.sources)} source(s)...",
        )

        matched_rows: dict[str, int] = {}
        sources_merged = 0
        try:
            rows = copy.deepcopy(self.target.rows)

            for config in self.sources:
                source = self.tables_by_id.get(config.source_table_id)
                if source is None:
                    logger.warning(
                        f"Source table {config.source_table_id} is no longer loaded, "
                        "skipping",
                    )
                    continue

                index = self.build_lookup_index(source.rows, config.join_key)
                matched = self.apply_source(rows, config, index)
                matched_rows[source.id] = matched
                sources_merged += 1
                logger.info(
                    f"Matched {matched}/{len(rows)} rows from {source.file_name} "
                    f"on '{config.join_key}' ({len(index)} distinct keys)",
                )

            result = MergeResult(
                target_table_id=self.target.id,
                columns=self.collect_columns(self.target.columns, rows),
                rows=rows,
                matched_rows=matched_rows,
                sources_merged=sources_merged,
            )
        except Exception as e:
            logger.exception("Merge failed")
            raise MergeFailed() from e

        logger.info("Merge completed successfully!")
        return result
