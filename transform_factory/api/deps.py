"""Engine providers for route dependencies.

Routes never import engine singletons directly; they ask for them with
``Depends(get_...)`` so a deployment or a test can swap an engine through
``app.dependency_overrides``.
"""
from transform_factory.services.ocr_service import OcrEngine, ocr_engine
from transform_factory.services.office_service import OfficeConverter, office_converter
from transform_factory.services.media_service import VideoTranscoder, video_transcoder
from transform_factory.services.pdf_service import PdfEngine, pdf_engine
from transform_factory.services.speech_service import SpeechSynthesizer, speech_synthesizer
from transform_factory.services.translation_service import Translator, translator


def get_pdf_engine() -> PdfEngine:
    return pdf_engine


def get_office_converter() -> OfficeConverter:
    return office_converter


def get_video_transcoder() -> VideoTranscoder:
    return video_transcoder


def get_ocr_engine() -> OcrEngine:
    return ocr_engine


def get_translator() -> Translator:
    return translator


def get_speech_synthesizer() -> SpeechSynthesizer:
    return speech_synthesizer
