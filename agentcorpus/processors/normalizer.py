"""
Format normalizer for uploaded image and audio media.

Uploads whose extension is already understood by the generative service
are adopted by attaching that extension to the stored file. Anything
else is transcoded to the media class default: images through Pillow,
audio through ffmpeg.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import List, Optional

from PIL import Image
from imageio_ffmpeg import get_ffmpeg_exe

from .base import ConversionError, file_extension
from .tempfiles import discard_file
from ..config import ProcessingConfig
from ..models import ConversionJob, split_extension


logger = logging.getLogger(__name__)


# ffmpeg codec per audio target format
AUDIO_CODECS = {
    'mp3': 'libmp3lame',
    'wav': 'pcm_s16le',
    'aac': 'aac',
    'ogg': 'libvorbis',
}


class FormatNormalizer:
    """
    Converts uploaded media into the small set of formats the service accepts.

    The caller keeps ownership of the original upload and must delete it
    on every path; on a successful conversion the original is already gone.
    """

    def __init__(self, config: ProcessingConfig, ffmpeg_binary: Optional[str] = None):
        self.config = config
        self._ffmpeg_binary = ffmpeg_binary

    @property
    def ffmpeg_binary(self) -> str:
        """Lazily resolve the ffmpeg executable bundled with imageio-ffmpeg."""
        if self._ffmpeg_binary is None:
            self._ffmpeg_binary = get_ffmpeg_exe()
        return self._ffmpeg_binary

    async def normalize_image(self, file_path: str, original_name: Optional[str]) -> str:
        """
        Return a usable image path, adopting or converting to JPEG.

        Raises:
            ConversionError: If the image cannot be converted
        """
        _, ext = split_extension(original_name)
        if ext in self.config.image_formats:
            return self.adopt(file_path, ext)

        job = self._build_job(file_path, ext, self.config.default_image_format)
        return await self._run_job(job, self.convert_image)

    async def normalize_audio(self, file_path: str, original_name: Optional[str]) -> str:
        """
        Return a usable audio path, adopting or converting to MP3.

        Raises:
            ConversionError: If the audio cannot be converted
        """
        _, ext = split_extension(original_name)
        if ext in self.config.audio_formats:
            return self.adopt(file_path, ext)

        job = self._build_job(file_path, ext, self.config.default_audio_format)
        return await self._run_job(job, self.convert_audio)

    def adopt(self, file_path: str, ext: str) -> str:
        """
        Attach an extension to a stored upload without transcoding.

        Returns:
            The renamed path; the old path no longer exists
        """
        if file_extension(file_path) == ext:
            return file_path
        target = f"{file_path}.{ext}"
        os.replace(file_path, target)
        logger.debug(f"Adopted {file_path} as {target}")
        return target

    def _build_job(self, file_path: str, source_format: str, target_format: str) -> ConversionJob:
        base, _ = os.path.splitext(file_path)
        return ConversionJob(
            input_path=file_path,
            output_path=f"{base}_converted.{target_format}",
            source_format=source_format or None,
            target_format=target_format,
        )

    async def _run_job(self, job: ConversionJob, converter) -> str:
        logger.info(
            f"Converting {job.input_path} from {job.source_format or 'unknown'} to {job.target_format}"
        )
        try:
            await converter(job.input_path, job.output_path, job.target_format)
        except Exception as e:
            discard_file(job.output_path)
            if isinstance(e, ConversionError):
                raise
            raise ConversionError(
                f"Conversion to {job.target_format} failed: {e}",
                file_path=job.input_path,
                cause=e,
            )

        if not Path(job.output_path).exists():
            raise ConversionError(
                f"Conversion to {job.target_format} produced no output",
                file_path=job.input_path,
            )

        discard_file(job.input_path)
        return job.output_path

    async def convert_image(self, input_path: str, output_path: str, target_format: str = "jpeg") -> str:
        """Transcode an image with Pillow in a worker thread."""

        def _convert():
            with Image.open(input_path) as img:
                rgb = img.convert("RGB")
                rgb.save(output_path, format=target_format.upper(), quality=self.config.image_quality)

        try:
            await asyncio.to_thread(_convert)
        except Exception as e:
            raise ConversionError("Image conversion failed", file_path=input_path, cause=e)

        logger.info(f"Image converted to {target_format}")
        return output_path

    def build_audio_args(self, input_path: str, output_path: str, target_format: str = "mp3") -> List[str]:
        """Build the ffmpeg argument list for an audio conversion."""
        codec = AUDIO_CODECS.get(target_format)
        if codec is None:
            raise ConversionError(f"Unsupported audio target format: {target_format}")

        args = ["-i", input_path, "-acodec", codec]
        if target_format != "wav":
            args += ["-b:a", "128k"]
        args += ["-ar", "44100", "-ac", "2", "-y", output_path]
        return args

    async def convert_audio(self, input_path: str, output_path: str, target_format: str = "mp3") -> str:
        """Transcode audio through an ffmpeg subprocess."""
        args = self.build_audio_args(input_path, output_path, target_format)
        logger.debug(f"Converting audio with args: {args}")

        try:
            process = await asyncio.create_subprocess_exec(
                self.ffmpeg_binary,
                *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise ConversionError(f"Failed to start audio conversion: {e}", file_path=input_path, cause=e)

        _, stderr = await process.communicate()
        if process.returncode != 0:
            logger.error(f"FFmpeg stderr: {stderr.decode(errors='replace')[-2000:]}")
            raise ConversionError(
                f"Audio conversion failed with code {process.returncode}",
                file_path=input_path,
            )

        logger.info(f"Audio converted to {target_format} successfully")
        return output_path
