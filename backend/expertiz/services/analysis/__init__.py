"""AI analysis integration."""
from expertiz.services.analysis.base import AnalysisInvoker
from expertiz.services.analysis.client import OpenAIAnalysisInvoker
from expertiz.services.analysis.factory import get_analysis_invoker
from expertiz.services.analysis.fake import FakeAnalysisInvoker
from expertiz.services.analysis.models import AnalysisOutcome, MediaInput
from expertiz.services.analysis.profiles import AnalysisProfile, get_profile

__all__ = [
    "AnalysisInvoker",
    "OpenAIAnalysisInvoker",
    "FakeAnalysisInvoker",
    "get_analysis_invoker",
    "AnalysisOutcome",
    "MediaInput",
    "AnalysisProfile",
    "get_profile",
]
