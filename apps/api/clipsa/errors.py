"""Application exception types."""

from clipsa.schemas.error import ErrorResponse


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(self, status_code: int, code: str, message: str, details: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = ErrorResponse(code=code, message=message, details=details)
        super().__init__(message)


class PipelineError(Exception):
    """Base class for generation pipeline failures."""

    code = "PIPELINE_ERROR"


class JobNotFound(PipelineError):
    """A dispatch or job request referenced an unregistered job name."""

    code = "JOB_NOT_FOUND"

    def __init__(self, job_name: str) -> None:
        self.job_name = job_name
        super().__init__(f'Job "{job_name}" not found')


class MissingCorrelationId(PipelineError):
    """A provider notification arrived without the projectId it belongs to."""

    code = "MISSING_PROJECT_ID"


class UnknownUnitType(PipelineError):
    code = "UNKNOWN_UNIT_TYPE"

    def __init__(self, unit_type: str | None) -> None:
        self.unit_type = unit_type
        super().__init__(f"Unknown generation type: {unit_type!r}")


class UnresolvedAsset(PipelineError):
    """A succeeded generation output could not be normalized to an asset URL."""

    code = "UNRESOLVED_ASSET"


class MissingUnit(PipelineError):
    """A scene has no succeeded generation, or the audio track has none or several."""

    code = "MISSING_UNIT"


class AssetDownloadFailure(PipelineError):
    code = "ASSET_DOWNLOAD_FAILED"


class ExternalToolFailure(PipelineError):
    code = "EXTERNAL_TOOL_FAILURE"


class ProviderSubmissionFailure(PipelineError):
    code = "PROVIDER_SUBMISSION_FAILED"


class RelayPublishFailure(PipelineError):
    code = "RELAY_PUBLISH_FAILED"


__all__ = [
    "ApiError",
    "AssetDownloadFailure",
    "ExternalToolFailure",
    "JobNotFound",
    "MissingCorrelationId",
    "MissingUnit",
    "PipelineError",
    "ProviderSubmissionFailure",
    "RelayPublishFailure",
    "UnknownUnitType",
    "UnresolvedAsset",
]
