from typing import Any


class BaseError(Exception):
    status_code = 400
    error_code = "bad_request"
    message = "Bad request"

    def __init__(
        self,
        message: str | None = None,
        error_data: dict[str, Any] | None = None,
    ):
        if message is not None:
            self.message = message
        self.error_data = error_data or {}
        super().__init__(self.message)

    def to_response(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "error_message": self.message,
            "error_data": self.error_data,
        }


class ValidationError(BaseError):
    error_code = "validation_error"
    message = "Invalid request"


# Merge errors


class NoSourcesSelected(BaseError):
    error_code = "no_sources_selected"
    message = "Please select at least one source sheet to merge from."


class MissingJoinKey(BaseError):
    error_code = "missing_join_key"

    def __init__(self, source_name: str):
        super().__init__(
            f"Please select a join key for source: {source_name}",
            {"source_name": source_name},
        )


class MergeFailed(BaseError):
    status_code = 500
    error_code = "merge_failed"
    message = "An error occurred during the merge process."


# File errors


class DecodeError(BaseError):
    status_code = 422
    error_code = "decode_error"

    def __init__(self, file_name: str, reason: str | None = None):
        message = f"Could not read spreadsheet file: {file_name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, {"file_name": file_name})


# Lookup errors


class NotFound(BaseError):
    status_code = 404
    error_code = "not_found"
    message = "Not found"


class SessionNotFound(NotFound):
    error_code = "session_not_found"

    def __init__(self, session_id: str):
        super().__init__(
            f"Merge session not found: {session_id}",
            {"session_id": session_id},
        )


class TableNotFound(NotFound):
    error_code = "table_not_found"

    def __init__(self, table_id: str):
        super().__init__(f"Table not found: {table_id}", {"table_id": table_id})


# Configuration errors


class Conflict(BaseError):
    status_code = 409
    error_code = "conflict"
    message = "Conflict"


class NoTargetSelected(Conflict):
    error_code = "no_target_selected"
    message = "Please select a master sheet first."


class NoMergeResult(Conflict):
    error_code = "no_merge_result"
    message = "No merge result available. Run a merge first."


class SourceNotJoinable(Conflict):
    error_code = "source_not_joinable"

    def __init__(self, source_name: str):
        super().__init__(
            f"Source has no columns in common with the master sheet: {source_name}",
            {"source_name": source_name},
        )


class InvalidJoinKey(BaseError):
    error_code = "invalid_join_key"

    def __init__(self, column: str):
        super().__init__(
            f"Column is not shared with the master sheet: {column}",
            {"column": column},
        )


class InvalidCopyColumn(BaseError):
    error_code = "invalid_copy_column"

    def __init__(self, column: str):
        super().__init__(f"Column cannot be copied: {column}", {"column": column})
