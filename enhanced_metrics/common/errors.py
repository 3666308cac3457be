"""Domain errors and failure typing."""


class PipelineError(Exception):
    """Base class for pipeline failures."""

    error_code = "PIPELINE_ERROR"


class ConfigError(PipelineError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class ContractError(PipelineError):
    """Raised when the artifact shape contract is broken."""

    error_code = "CONTRACT_ERROR"


class StageError(PipelineError):
    """Raised for stage failures that abort the run."""

    error_code = "STAGE_ERROR"


class FetchError(StageError):
    """Raised when a source table cannot be read."""

    error_code = "FETCH_ERROR"

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(f"Failed to fetch table {table}: {reason}")
        self.table = table
        self.reason = reason


class ArtifactWriteError(StageError):
    """Raised when the artifact cannot be compressed or persisted."""

    error_code = "WRITE_ERROR"
