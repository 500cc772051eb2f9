"""OpenAI-compatible analysis client."""
import base64
import json
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from expertiz.config import get_settings
from expertiz.exceptions import AnalysisFailure
from expertiz.models.report import ReportType
from expertiz.services.analysis.models import (
    AnalysisOutcome,
    ChatCompletionResponse,
    MediaInput,
    TranscriptionResponse,
)
from expertiz.services.analysis.profiles import AnalysisProfile, get_profile
from expertiz.utils.storage import StorageService, storage as default_storage

logger = logging.getLogger(__name__)


class OpenAIAnalysisInvoker:
    """Runs report analyses against a chat completions endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        transcription_model: str | None = None,
        storage: StorageService | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.api_key = api_key or settings.ai_api_key
        self.base_url = (base_url or settings.ai_base_url).rstrip("/")
        self.model = model or settings.ai_model
        self.transcription_model = transcription_model or settings.ai_transcription_model
        self.storage = storage or default_storage
        # The overall deadline is enforced by the caller.
        self.timeout = httpx.Timeout(30.0, read=float(settings.analysis_timeout))
        self.transport = transport

    def _get_headers(self) -> dict[str, str]:
        """Get request headers with Bearer token authentication."""
        return {"Authorization": f"Bearer {self.api_key}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def analyze(
        self,
        report_type: ReportType,
        vehicle: dict[str, Any],
        media: list[MediaInput],
    ) -> AnalysisOutcome:
        """
        Analyze a report's media.

        API Endpoint: POST /chat/completions

        Args:
            report_type: Report type to analyze for
            vehicle: Vehicle metadata (plate, brand, model, year, color, mileage)
            media: Stored media attached to the report

        Returns:
            AnalysisOutcome with the parsed JSON result

        Raises:
            AnalysisFailure: On transport errors, non-2xx answers or unusable content
        """
        profile = get_profile(report_type)

        try:
            async with self._client() as client:
                content = await self._build_content(client, profile, vehicle, media)
                payload = {
                    "model": self.model,
                    "temperature": profile.temperature,
                    "max_tokens": profile.max_tokens,
                    "response_format": {"type": "json_object"},
                    "messages": [
                        {"role": "system", "content": profile.prompt},
                        {"role": "user", "content": content},
                    ],
                }
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._get_headers(),
                    json=payload,
                )
                response.raise_for_status()
                completion = ChatCompletionResponse(**response.json())
        except httpx.HTTPStatusError as e:
            logger.warning(
                "%s request failed with HTTP %s", profile.name, e.response.status_code
            )
            raise AnalysisFailure(f"AI provider returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning("%s request failed: %s", profile.name, e)
            raise AnalysisFailure(f"AI provider unreachable: {e.__class__.__name__}") from e
        except (ValidationError, ValueError) as e:
            raise AnalysisFailure("AI provider returned a malformed response") from e
        except OSError as e:
            raise AnalysisFailure(f"Could not read media: {e}") from e

        return self._parse_outcome(completion)

    async def _build_content(
        self,
        client: httpx.AsyncClient,
        profile: AnalysisProfile,
        vehicle: dict[str, Any],
        media: list[MediaInput],
    ) -> list[dict[str, Any]]:
        vehicle_text = ", ".join(
            f"{key}: {value}" for key, value in vehicle.items() if value not in (None, "")
        )
        parts: list[dict[str, Any]] = [
            {
                "type": "text",
                "text": f"Report: {profile.name}. Vehicle: {vehicle_text or 'unknown'}.",
            }
        ]

        for item in media:
            data = await self.storage.read_file(item.file_path)
            if item.kind.is_audio:
                transcript = await self._transcribe(client, item, data)
                parts.append({
                    "type": "text",
                    "text": f"Engine recording ({item.filename}) notes: {transcript or 'no speech or notes detected'}",
                })
            else:
                encoded = base64.b64encode(data).decode("ascii")
                parts.append({"type": "text", "text": f"Photo ({item.kind.value}):"})
                parts.append({
                    "type": "image_url",
                    "image_url": {"url": f"data:{item.mime_type};base64,{encoded}"},
                })
        return parts

    async def _transcribe(
        self, client: httpx.AsyncClient, item: MediaInput, data: bytes
    ) -> str:
        """
        Transcribe an audio recording.

        API Endpoint: POST /audio/transcriptions
        """
        response = await client.post(
            f"{self.base_url}/audio/transcriptions",
            headers=self._get_headers(),
            data={"model": self.transcription_model},
            files={"file": (item.filename, data, item.mime_type)},
        )
        response.raise_for_status()
        return TranscriptionResponse(**response.json()).text.strip()

    def _parse_outcome(self, completion: ChatCompletionResponse) -> AnalysisOutcome:
        content = completion.content
        if not content or not content.strip():
            raise AnalysisFailure("AI provider returned an empty answer")
        try:
            result = json.loads(content)
        except json.JSONDecodeError as e:
            raise AnalysisFailure("AI provider answer is not valid JSON") from e
        if not isinstance(result, dict):
            raise AnalysisFailure("AI provider answer is not a JSON object")

        confidence = result.get("confidence")
        if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
            confidence = max(0.0, min(1.0, float(confidence)))
        else:
            confidence = None

        return AnalysisOutcome(
            result=result,
            confidence=confidence,
            model_version=completion.model or self.model,
        )
