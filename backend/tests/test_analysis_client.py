from __future__ import annotations

import json

import httpx
import pytest

from expertiz.exceptions import AnalysisFailure
from expertiz.models.report import MediaItem, MediaKind, ReportType
from expertiz.services.analysis import (
    FakeAnalysisInvoker,
    MediaInput,
    OpenAIAnalysisInvoker,
    get_analysis_invoker,
    get_profile,
)
from expertiz.utils.storage import StorageService
from tests.fakes import PNG_BYTES, WAV_BYTES

VEHICLE = {"plate": "34 ABC 123", "brand": "Renault", "model": "Clio", "year": 2018, "color": None}


def _completion(content: str | None, model: str = "gpt-4o-2024-08-06") -> dict:
    return {
        "id": "chatcmpl-1",
        "model": model,
        "choices": [
            {"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30},
    }


async def _stored_media(storage: StorageService, kind: MediaKind, content: bytes, mime: str) -> MediaInput:
    path, _ = await storage.save_file(content, f"{kind.value}.bin", subfolder="reports/1")
    return MediaInput(kind=kind, file_path=path, mime_type=mime, filename=f"{kind.value}.bin")


def _invoker(tmp_path, handler, **overrides) -> OpenAIAnalysisInvoker:
    return OpenAIAnalysisInvoker(
        api_key="sk-test",
        base_url="https://ai.test/v1/",
        model="gpt-4o",
        storage=StorageService(base_dir=str(tmp_path)),
        transport=httpx.MockTransport(handler),
        **overrides,
    )


async def test_analyze_sends_images_and_parses_json(tmp_path) -> None:
    captured: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        return httpx.Response(200, json=_completion(json.dumps({"summary": "clean", "confidence": 1.7})))

    invoker = _invoker(tmp_path, handler)
    media = [await _stored_media(invoker.storage, MediaKind.PAINT, PNG_BYTES, "image/png")]

    outcome = await invoker.analyze(ReportType.PAINT_ANALYSIS, VEHICLE, media)

    assert outcome.result["summary"] == "clean"
    assert outcome.confidence == 1.0
    assert outcome.model_version == "gpt-4o-2024-08-06"

    [request] = captured
    assert request.url == "https://ai.test/v1/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "gpt-4o"
    assert body["response_format"] == {"type": "json_object"}
    assert body["max_tokens"] == get_profile(ReportType.PAINT_ANALYSIS).max_tokens
    system, user = body["messages"]
    assert system["content"] == get_profile(ReportType.PAINT_ANALYSIS).prompt
    assert "plate: 34 ABC 123" in user["content"][0]["text"]
    assert "color" not in user["content"][0]["text"]
    image = user["content"][-1]
    assert image["type"] == "image_url"
    assert image["image_url"]["url"].startswith("data:image/png;base64,")


async def test_audio_is_transcribed_before_analysis(tmp_path) -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path.endswith("/audio/transcriptions"):
            assert b"whisper-1" in request.content
            return httpx.Response(200, json={"text": " knocking at idle "})
        body = json.loads(request.content)
        assert "knocking at idle" in body["messages"][1]["content"][1]["text"]
        return httpx.Response(200, json=_completion(json.dumps({"summary": "worn bearings"})))

    invoker = _invoker(tmp_path, handler)
    media = [await _stored_media(invoker.storage, MediaKind.AUDIO, WAV_BYTES, "audio/wav")]

    outcome = await invoker.analyze(ReportType.ENGINE_SOUND_ANALYSIS, VEHICLE, media)

    assert paths == ["/v1/audio/transcriptions", "/v1/chat/completions"]
    assert outcome.result == {"summary": "worn bearings"}
    assert outcome.confidence is None


async def test_transcription_model_is_configurable(tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/audio/transcriptions"):
            assert b"gpt-4o-transcribe" in request.content
            assert b"whisper-1" not in request.content
            return httpx.Response(200, json={"text": "smooth idle"})
        return httpx.Response(200, json=_completion(json.dumps({"summary": "healthy"})))

    invoker = _invoker(tmp_path, handler, transcription_model="gpt-4o-transcribe")
    media = [await _stored_media(invoker.storage, MediaKind.AUDIO, WAV_BYTES, "audio/wav")]

    outcome = await invoker.analyze(ReportType.ENGINE_SOUND_ANALYSIS, VEHICLE, media)

    assert outcome.result == {"summary": "healthy"}


async def test_http_error_status_becomes_analysis_failure(tmp_path) -> None:
    invoker = _invoker(tmp_path, lambda request: httpx.Response(503, json={"error": "overloaded"}))

    with pytest.raises(AnalysisFailure, match="HTTP 503"):
        await invoker.analyze(ReportType.VALUE_ESTIMATION, VEHICLE, [])


async def test_transport_error_becomes_analysis_failure(tmp_path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    invoker = _invoker(tmp_path, handler)

    with pytest.raises(AnalysisFailure, match="unreachable"):
        await invoker.analyze(ReportType.VALUE_ESTIMATION, VEHICLE, [])


@pytest.mark.parametrize("content", [None, "   ", "not json", "[1, 2]"])
async def test_unusable_answers_become_analysis_failure(tmp_path, content) -> None:
    invoker = _invoker(tmp_path, lambda request: httpx.Response(200, json=_completion(content)))

    with pytest.raises(AnalysisFailure):
        await invoker.analyze(ReportType.VALUE_ESTIMATION, VEHICLE, [])


async def test_malformed_envelope_becomes_analysis_failure(tmp_path) -> None:
    invoker = _invoker(tmp_path, lambda request: httpx.Response(200, json={"choices": [{"nope": 1}]}))

    with pytest.raises(AnalysisFailure, match="malformed"):
        await invoker.analyze(ReportType.VALUE_ESTIMATION, VEHICLE, [])


async def test_missing_media_file_becomes_analysis_failure(tmp_path) -> None:
    invoker = _invoker(tmp_path, lambda request: httpx.Response(200, json=_completion("{}")))
    media = [MediaInput(kind=MediaKind.EXTERIOR, file_path="reports/1/gone.png", mime_type="image/png", filename="gone.png")]

    with pytest.raises(AnalysisFailure, match="Could not read media"):
        await invoker.analyze(ReportType.DAMAGE_ASSESSMENT, VEHICLE, media)


async def test_fake_invoker_is_deterministic() -> None:
    invoker = FakeAnalysisInvoker(confidence=0.75)
    media = [MediaInput(kind=MediaKind.DAMAGE, file_path="x", mime_type="image/png", filename="x.png")]

    first = await invoker.analyze(ReportType.DAMAGE_ASSESSMENT, VEHICLE, media)
    second = await invoker.analyze(ReportType.DAMAGE_ASSESSMENT, VEHICLE, media)

    assert first == second
    assert first.result["media_kinds"] == ["damage"]
    assert first.confidence == 0.75
    assert len(invoker.calls) == 2


def test_factory_honours_provider_setting() -> None:
    assert isinstance(get_analysis_invoker(), FakeAnalysisInvoker)


def test_profiles_report_missing_media() -> None:
    photo = MediaItem(kind=MediaKind.EXTERIOR)
    recording = MediaItem(kind=MediaKind.AUDIO)

    assert get_profile(ReportType.FULL_REPORT).missing_media([]) == ["image"]
    assert get_profile(ReportType.FULL_REPORT).missing_media([recording]) == ["image"]
    assert get_profile(ReportType.ENGINE_SOUND_ANALYSIS).missing_media([photo]) == ["audio"]
    assert get_profile(ReportType.ENGINE_SOUND_ANALYSIS).missing_media([recording]) == []
    assert get_profile(ReportType.VALUE_ESTIMATION).missing_media([]) == []
