from __future__ import annotations

from typing import Any

from expertiz.models.report import ReportType
from expertiz.services.analysis.models import AnalysisOutcome, MediaInput
from expertiz.services.analysis.profiles import get_profile


class FakeAnalysisInvoker:
    """Deterministic invoker for local development and tests."""

    model_version = "fake-1"

    def __init__(self, confidence: float = 0.9) -> None:
        self.confidence = confidence
        self.calls: list[tuple[ReportType, dict[str, Any], list[MediaInput]]] = []

    async def analyze(
        self,
        report_type: ReportType,
        vehicle: dict[str, Any],
        media: list[MediaInput],
    ) -> AnalysisOutcome:
        self.calls.append((report_type, vehicle, media))
        profile = get_profile(report_type)
        result = {
            "summary": f"{profile.name} completed for {vehicle.get('plate') or 'vehicle'}",
            "report_type": report_type.value,
            "media_count": len(media),
            "media_kinds": sorted({item.kind.value for item in media}),
            "confidence": self.confidence,
        }
        return AnalysisOutcome(
            result=result,
            confidence=self.confidence,
            model_version=self.model_version,
        )
