import logging
from abc import ABC, abstractmethod
from io import BytesIO
from typing import Optional, Sequence

from gtts import gTTS
from gtts.tts import gTTSError
from pydub import AudioSegment

from transform_factory.core.errors import EngineUnavailableError, InvalidInputError
from transform_factory.services.render_service import render_service

logger = logging.getLogger(__name__)

BITRATES = {"low": "64k", "standard": "128k", "medium": "128k", "high": "192k"}

# region part of a voice name such as "en-GB-Neural2-A" -> Google host for that accent
ACCENT_HOSTS = {
    "US": "com",
    "GB": "co.uk",
    "AU": "com.au",
    "IN": "co.in",
    "CA": "ca",
    "IE": "ie",
    "ZA": "co.za",
}


class SpeechSynthesizer(ABC):
    @abstractmethod
    def synthesize(self, text: str, language: str = "en", voice: Optional[str] = None) -> bytes:
        """Return MP3 audio for ``text``."""
        raise NotImplementedError


class GoogleSpeechSynthesizer(SpeechSynthesizer):
    def synthesize(self, text: str, language: str = "en", voice: Optional[str] = None) -> bytes:
        parts = (voice or "").split("-")
        tld = ACCENT_HOSTS.get(parts[1].upper(), "com") if len(parts) > 1 else "com"
        try:
            tts = gTTS(text=text, lang=language, tld=tld)
        except ValueError as exc:
            raise InvalidInputError(f"Unsupported language: {language}") from exc
        output = BytesIO()
        try:
            tts.write_to_fp(output)
        except gTTSError as exc:
            raise EngineUnavailableError(f"Speech service unavailable: {exc}") from exc
        return output.getvalue()


def _change_speed(audio: AudioSegment, speed: float) -> AudioSegment:
    if speed == 1.0:
        return audio
    # resample trick: play the same samples at a different rate, then restore the rate
    shifted = audio._spawn(audio.raw_data, overrides={"frame_rate": int(audio.frame_rate * speed)})
    return shifted.set_frame_rate(audio.frame_rate)


class SpeechService:
    @staticmethod
    def pdf_to_audio(
        content: bytes,
        synthesizer: SpeechSynthesizer,
        pages: Optional[Sequence[int]] = None,
        language: str = "en",
        voice: Optional[str] = None,
        speed: float = 1.0,
        quality: str = "standard",
    ) -> bytes:
        if not 0.5 <= speed <= 2.0:
            raise InvalidInputError("Speed must be between 0.5 and 2.0")
        texts = render_service.page_text(content, pages)
        text = "\n\n".join(t.strip() for _, t in texts if t.strip())
        if not text:
            raise InvalidInputError("No readable text found in the selected pages")

        audio = synthesizer.synthesize(text, language=language, voice=voice)
        segment = _change_speed(AudioSegment.from_file(BytesIO(audio), format="mp3"), speed)
        output = BytesIO()
        segment.export(output, format="mp3", bitrate=BITRATES.get(quality, "128k"))
        logger.info("Synthesised %d characters from %d pages", len(text), len(texts))
        return output.getvalue()


speech_synthesizer = GoogleSpeechSynthesizer()
speech_service = SpeechService()
