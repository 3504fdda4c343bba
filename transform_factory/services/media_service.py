import logging
import os
import tempfile
from abc import ABC, abstractmethod

import ffmpeg

from transform_factory.core.config import settings
from transform_factory.core.errors import EngineUnavailableError, InvalidInputError, TransformError

logger = logging.getLogger(__name__)

VIDEO_CONTENT_TYPES = {
    "mp4": "video/mp4",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    "wmv": "video/x-ms-wmv",
    "mkv": "video/x-matroska",
    "webm": "video/webm",
}

# container -> ffmpeg output arguments
VIDEO_CODECS = {
    "mp4": {"vcodec": "libx264", "acodec": "aac", "pix_fmt": "yuv420p", "movflags": "+faststart"},
    "mov": {"vcodec": "libx264", "acodec": "aac", "pix_fmt": "yuv420p"},
    "mkv": {"vcodec": "libx264", "acodec": "aac"},
    "avi": {"vcodec": "mpeg4", "acodec": "libmp3lame", "qscale:v": 3},
    "wmv": {"vcodec": "wmv2", "acodec": "wmav2", "qscale:v": 3},
    "webm": {"vcodec": "libvpx-vp9", "acodec": "libopus", "crf": 32, "b:v": 0},
}


class VideoTranscoder(ABC):
    @abstractmethod
    def transcode(self, content: bytes, source_ext: str, target: str) -> bytes:
        raise NotImplementedError


class FfmpegTranscoder(VideoTranscoder):
    def __init__(self, binary: str = None):
        self.binary = binary or settings.FFMPEG_BINARY

    def transcode(self, content: bytes, source_ext: str, target: str) -> bytes:
        target = target.lower()
        if target not in VIDEO_CODECS:
            raise InvalidInputError(
                f"Unsupported output format: {target}. Supported: {', '.join(VIDEO_CODECS)}"
            )
        source_ext = (source_ext or "bin").lower().lstrip(".")
        with tempfile.TemporaryDirectory(prefix="transform-video-") as workdir:
            source = os.path.join(workdir, f"input.{source_ext}")
            output = os.path.join(workdir, f"output.{target}")
            with open(source, "wb") as f:
                f.write(content)
            stream = ffmpeg.output(ffmpeg.input(source), output, **VIDEO_CODECS[target])
            try:
                ffmpeg.run(stream, cmd=self.binary, quiet=True, overwrite_output=True)
            except FileNotFoundError as exc:
                raise EngineUnavailableError("ffmpeg is not installed on the server") from exc
            except ffmpeg.Error as exc:
                stderr = exc.stderr.decode(errors="replace") if exc.stderr else ""
                logger.error("ffmpeg failed: %s", stderr[-2000:])
                raise TransformError(f"Video conversion to {target} failed") from exc
            with open(output, "rb") as f:
                return f.read()


video_transcoder = FfmpegTranscoder()
