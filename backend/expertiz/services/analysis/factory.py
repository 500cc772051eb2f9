from __future__ import annotations

from expertiz.config import get_settings
from expertiz.services.analysis.base import AnalysisInvoker
from expertiz.services.analysis.client import OpenAIAnalysisInvoker
from expertiz.services.analysis.fake import FakeAnalysisInvoker


def get_analysis_invoker() -> AnalysisInvoker:
    settings = get_settings()
    provider = (settings.ai_provider or "openai").lower()

    if provider == "fake":
        return FakeAnalysisInvoker()
    return OpenAIAnalysisInvoker()
