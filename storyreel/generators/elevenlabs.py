"""ElevenLabs text-to-speech with character-level timestamps."""

import base64
import os
from pathlib import Path

import httpx

from ..config import Config, TTSConfig
from ..models import Language
from .base import CharacterAlignment, SpeechResult, SpeechSynthesizer


class ElevenLabsSynthesizer(SpeechSynthesizer):
    """Calls the ``with-timestamps`` endpoint so alignment comes back with the audio."""

    BASE_URL = "https://api.elevenlabs.io/v1"

    def __init__(
        self,
        config: TTSConfig | None = None,
        price_per_1000_chars: float = 0.15,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or TTSConfig()
        self.price_per_1000_chars = price_per_1000_chars
        self.api_key = api_key or os.environ.get(self.config.api_key_env)
        if not self.api_key:
            raise ValueError(
                f"ElevenLabs API key required. Set {self.config.api_key_env} "
                "environment variable or pass api_key parameter."
            )
        self._transport = transport

    def voice_for(self, language: Language) -> str:
        try:
            return self.config.voices[language]
        except KeyError:
            raise ValueError(f"No ElevenLabs voice configured for language '{language}'")

    def estimate_cost(self, text: str) -> float:
        return len(text) / 1000 * self.price_per_1000_chars

    async def synthesize(self, text: str, language: Language, output_path: Path) -> SpeechResult:
        """Synthesize narration and return audio plus character alignment."""
        voice_id = self.voice_for(language)
        print(f"[TTS] Generating {len(text)} characters ({language}) with voice {voice_id}")

        async with httpx.AsyncClient(timeout=120.0, transport=self._transport) as client:
            response = await client.post(
                f"{self.BASE_URL}/text-to-speech/{voice_id}/with-timestamps",
                params={"output_format": self.config.output_format},
                headers={"xi-api-key": self.api_key, "Content-Type": "application/json"},
                json={
                    "text": text,
                    "model_id": self.config.model,
                    "voice_settings": {"stability": 0.5, "similarity_boost": 0.5},
                },
            )
            if response.status_code >= 400:
                raise RuntimeError(f"ElevenLabs API error: {response.status_code} {response.text}")
            data = response.json()

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(base64.b64decode(data["audio_base64"]))

        alignment = None
        raw = data.get("alignment")
        if raw and raw.get("characters"):
            alignment = CharacterAlignment(
                characters=raw["characters"],
                start_times=raw["character_start_times_seconds"],
                end_times=raw["character_end_times_seconds"],
            )

        return SpeechResult(
            audio_path=output_path,
            cost=self.estimate_cost(text),
            alignment=alignment,
            duration_seconds=alignment.end_times[-1] if alignment else None,
        )


def get_speech_synthesizer(config: Config) -> SpeechSynthesizer:
    """Get the TTS provider named in configuration.

    Raises:
        ValueError: If provider name is not recognized.
    """
    provider_name = config.tts.provider.lower()

    if provider_name == "mock":
        from .mock import MockSpeechSynthesizer

        return MockSpeechSynthesizer()
    elif provider_name == "elevenlabs":
        return ElevenLabsSynthesizer(config.tts, config.pricing.tts_per_1000_chars)
    else:
        raise ValueError(f"Unknown TTS provider: {provider_name}")
