"""Domain errors raised by the report workflow and the credit ledger."""
from decimal import Decimal


class ExpertizError(Exception):
    """Base class for all domain errors."""

    code = "EXPERTIZ_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(ExpertizError):
    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: object):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class PermissionDenied(ExpertizError):
    code = "PERMISSION_DENIED"


class InsufficientCredit(ExpertizError):
    code = "INSUFFICIENT_CREDIT"

    def __init__(self, required: Decimal, available: Decimal):
        super().__init__(f"Insufficient credit: {required} required, {available} available")
        self.required = required
        self.available = available


class InvalidReportType(ExpertizError):
    code = "INVALID_REPORT_TYPE"

    def __init__(self, report_type: str):
        super().__init__(f"Unknown report type: {report_type}")
        self.report_type = report_type


class InvalidStateTransition(ExpertizError):
    code = "INVALID_STATE_TRANSITION"

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move report from {current} to {target}")
        self.current = current
        self.target = target


class ReportNotEditable(ExpertizError):
    code = "REPORT_NOT_EDITABLE"

    def __init__(self, report_id: int, status: str):
        super().__init__(f"Report {report_id} is {status} and no longer accepts media")
        self.report_id = report_id
        self.status = status


class MediaRejected(ExpertizError):
    """An uploaded media item violates the configured limits.

    `reason` is one of: empty, too_large, unsupported_type, too_many.
    """

    code = "MEDIA_REJECTED"

    def __init__(self, reason: str, message: str, filename: str | None = None):
        super().__init__(message)
        self.reason = reason
        self.filename = filename


class MediaRequired(ExpertizError):
    code = "MEDIA_REQUIRED"


class AnalysisFailure(ExpertizError):
    code = "ANALYSIS_FAILED"

    def __init__(self, cause: str):
        super().__init__(cause)
        self.cause = cause


class AnalysisTimeout(AnalysisFailure):
    code = "ANALYSIS_TIMEOUT"

    def __init__(self, timeout: float):
        super().__init__(f"Analysis did not finish within {timeout:g} seconds")
        self.timeout = timeout


class InvalidCreditPackage(ExpertizError):
    code = "INVALID_CREDIT_PACKAGE"

    def __init__(self, package: str):
        super().__init__(f"Unknown credit package: {package}")
        self.package = package
