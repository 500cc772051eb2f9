"""Per report type analysis configuration."""
from dataclasses import dataclass

from expertiz.models.report import MediaItem, MediaKind, ReportType

_JSON_RULES = (
    "Answer with a single JSON object only. Use English keys in snake_case, "
    "include a numeric `confidence` between 0 and 1 and a short `summary`."
)


@dataclass(frozen=True)
class AnalysisProfile:
    """What an analysis of one report type needs and asks for."""
    report_type: ReportType
    name: str
    description: str
    needs_images: bool
    needs_audio: bool
    prompt: str
    max_tokens: int = 2500
    temperature: float = 0.3

    def missing_media(self, media: list[MediaItem]) -> list[str]:
        """Return the media categories still required before analysis."""
        kinds = {item.kind for item in media}
        missing = []
        if self.needs_images and not any(not kind.is_audio for kind in kinds):
            missing.append("image")
        if self.needs_audio and MediaKind.AUDIO not in kinds:
            missing.append("audio")
        return missing


PAINT_PROFILE = AnalysisProfile(
    report_type=ReportType.PAINT_ANALYSIS,
    name="Paint Analysis",
    description="Paint condition, repaint and thickness assessment from photos",
    needs_images=True,
    needs_audio=False,
    prompt=(
        "You are an automotive paint expert. Inspect the photos of the vehicle "
        "and assess paint condition per panel: gloss, colour match, repainted "
        "areas, scratches, swirl marks and estimated thickness deviations. "
        "Return `panels` (list of {panel, condition, issues}), `overall_score` "
        "(0-100) and `recommendations`. " + _JSON_RULES
    ),
    temperature=0.1,
)

DAMAGE_PROFILE = AnalysisProfile(
    report_type=ReportType.DAMAGE_ASSESSMENT,
    name="Damage Assessment",
    description="Body damage detection and repair cost estimation from photos",
    needs_images=True,
    needs_audio=False,
    prompt=(
        "You are a vehicle damage assessor. Detect every visible damage on the "
        "vehicle photos. Return `damages` (list of {area, type, severity, "
        "estimated_repair_cost}), `total_estimated_cost`, `safety_impact` and "
        "`recommendations`. " + _JSON_RULES
    ),
    temperature=0.1,
)

ENGINE_SOUND_PROFILE = AnalysisProfile(
    report_type=ReportType.ENGINE_SOUND_ANALYSIS,
    name="Engine Sound Analysis",
    description="Engine health assessment from an engine sound recording",
    needs_images=False,
    needs_audio=True,
    prompt=(
        "You are an engine diagnostics expert. Using the recording notes of the "
        "running engine, assess engine health. Return `detected_issues` (list of "
        "{issue, severity, likely_cause}), `engine_health_score` (0-100), "
        "`rpm_stability` and `recommendations`. " + _JSON_RULES
    ),
    temperature=0.1,
)

VALUE_PROFILE = AnalysisProfile(
    report_type=ReportType.VALUE_ESTIMATION,
    name="Value Estimation",
    description="Market value estimation from vehicle metadata and optional photos",
    needs_images=False,
    needs_audio=False,
    prompt=(
        "You are a used-car valuation expert for the Turkish market. Estimate "
        "the market value of the vehicle in TRY. Return `estimated_value`, "
        "`value_range` ({min, max}), `market_factors` and `recommendations`. "
        + _JSON_RULES
    ),
)

FULL_PROFILE = AnalysisProfile(
    report_type=ReportType.FULL_REPORT,
    name="Full Report",
    description="Comprehensive expertise combining paint, damage and value",
    needs_images=True,
    needs_audio=False,
    prompt=(
        "You are a senior vehicle inspection expert. Produce a comprehensive "
        "expertise of the vehicle: `paint` (condition summary), `damages` (list "
        "of {area, type, severity}), `engine` (if a recording is provided), "
        "`estimated_value`, `overall_score` (0-100) and `recommendations`. "
        + _JSON_RULES
    ),
    max_tokens=4000,
)

_PROFILES: dict[ReportType, AnalysisProfile] = {
    profile.report_type: profile
    for profile in (
        PAINT_PROFILE,
        DAMAGE_PROFILE,
        ENGINE_SOUND_PROFILE,
        VALUE_PROFILE,
        FULL_PROFILE,
    )
}


def get_profile(report_type: ReportType) -> AnalysisProfile:
    """Get analysis profile by report type."""
    profile = _PROFILES.get(report_type)
    if profile is None:
        raise ValueError(f"Unknown report type: {report_type}")
    return profile
