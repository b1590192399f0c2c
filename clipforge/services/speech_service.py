"""
Speech synthesis for story narration and hooks.

`synthesize_narration` returns a typed outcome instead of letting a failed TTS call
abort the story: Synthesized carries the narration, Degraded carries silent
stand-in tracks of the target act lengths.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Union

import requests

from clipforge.config.constants import ACT1_TARGET_SEC, ACT2_TARGET_SEC, NARRATION_SAMPLE_RATE
from clipforge.config.settings import settings
from clipforge.services.media_service import MediaService
from clipforge.utils.exceptions import ClipForgeError, ConfigError, UpstreamError
from clipforge.utils.paths import PathLike

logger = logging.getLogger(__name__)


class SpeechSynthesizer(Protocol):
    def synthesize(self, text: str, output_path: PathLike) -> Path:
        ...


class HttpSpeechSynthesizer:
    """POST {text, language} JSON to a TTS server that answers with audio bytes"""

    def __init__(self, url: Optional[str] = None, language: Optional[str] = None,
                 timeout: Optional[float] = None):
        self.url = url or settings.TTS_URL
        self.language = language or settings.TTS_LANGUAGE
        self.timeout = timeout or settings.TTS_TIMEOUT_SEC

    def synthesize(self, text: str, output_path: PathLike) -> Path:
        if not self.url:
            raise ConfigError("TTS_URL not set")
        try:
            res = requests.post(self.url, json={"text": text, "language": self.language}, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"TTS request failed: {e}")
        if not res.ok:
            raise UpstreamError(f"TTS error: {res.status_code} {res.text[:200]}", status_code=res.status_code)
        if not res.content:
            raise UpstreamError("TTS returned no audio")

        output_path = Path(output_path)
        output_path.write_bytes(res.content)
        return output_path


class ElevenLabsSpeechSynthesizer:
    def __init__(self, api_key: Optional[str] = None, voice_id: Optional[str] = None,
                 model_id: Optional[str] = None, client=None):
        self.api_key = api_key or settings.ELEVENLABS_API_KEY
        self.voice_id = voice_id or settings.ELEVENLABS_VOICE_ID
        self.model_id = model_id or settings.ELEVENLABS_MODEL_ID
        self._client = client

    def _get_client(self):
        if not self._client:
            if not self.api_key:
                raise ConfigError("ELEVENLABS_API_KEY not set")
            from elevenlabs.client import ElevenLabs
            self._client = ElevenLabs(api_key=self.api_key)
        return self._client

    def synthesize(self, text: str, output_path: PathLike) -> Path:
        client = self._get_client()
        try:
            audio = client.text_to_speech.convert(
                text=text,
                voice_id=self.voice_id,
                model_id=self.model_id,
                output_format="mp3_44100_128",
            )
            audio_bytes = b"".join(chunk for chunk in audio)
        except Exception as e:
            raise UpstreamError(f"ElevenLabs TTS failed: {e}")
        if not audio_bytes:
            raise UpstreamError("ElevenLabs returned no audio")

        output_path = Path(output_path)
        output_path.write_bytes(audio_bytes)
        return output_path


def get_speech_synthesizer() -> SpeechSynthesizer:
    provider = settings.TTS_PROVIDER.lower()
    if provider == "elevenlabs":
        return ElevenLabsSpeechSynthesizer()
    if provider == "http":
        return HttpSpeechSynthesizer()
    raise ConfigError(f"Unknown TTS_PROVIDER: {settings.TTS_PROVIDER}")


@dataclass(frozen=True)
class Synthesized:
    path: Path
    duration: float


@dataclass(frozen=True)
class Degraded:
    hook_path: Path
    context_path: Path
    reason: str
    hook_duration: float = ACT1_TARGET_SEC
    context_duration: float = ACT2_TARGET_SEC


NarrationOutcome = Union[Synthesized, Degraded]


def synthesize_narration(
    synthesizer: Optional[SpeechSynthesizer],
    media: MediaService,
    text: str,
    output_path: PathLike,
    hook_fallback_path: PathLike,
    context_fallback_path: PathLike,
) -> NarrationOutcome:
    """Synthesize narration; on any synthesis failure produce silent tracks instead."""
    try:
        if synthesizer is None:
            synthesizer = get_speech_synthesizer()
        path = synthesizer.synthesize(text, output_path)
        duration = media.get_duration(path)
        if duration <= 0:
            raise UpstreamError("TTS produced empty audio")
        return Synthesized(path=Path(path), duration=duration)
    except ClipForgeError as e:
        reason = str(e)
        logger.warning(f"⚠️ TTS failed, using silent fallback: {reason}")

    media.generate_silence(hook_fallback_path, ACT1_TARGET_SEC, NARRATION_SAMPLE_RATE)
    media.generate_silence(context_fallback_path, ACT2_TARGET_SEC, NARRATION_SAMPLE_RATE)
    return Degraded(hook_path=Path(hook_fallback_path), context_path=Path(context_fallback_path), reason=reason)
