from __future__ import annotations

from typing import Any, Protocol

from expertiz.models.report import ReportType
from expertiz.services.analysis.models import AnalysisOutcome, MediaInput


class AnalysisInvoker(Protocol):
    """External AI collaborator.

    Returns an AnalysisOutcome or raises AnalysisFailure. Timeouts are
    enforced by the caller.
    """

    async def analyze(
        self,
        report_type: ReportType,
        vehicle: dict[str, Any],
        media: list[MediaInput],
    ) -> AnalysisOutcome:  # pragma: no cover - Protocol
        ...
