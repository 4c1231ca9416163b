"""
Unit tests for the media format normalizer.

Image conversions run through Pillow for real; ffmpeg is never started,
the subprocess call is mocked.
"""

import os
import pytest
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

from PIL import Image

from agentcorpus.config import ProcessingConfig
from agentcorpus.processors.base import ConversionError
from agentcorpus.processors.normalizer import FormatNormalizer


@pytest.fixture
def normalizer():
    return FormatNormalizer(ProcessingConfig(), ffmpeg_binary="/usr/bin/ffmpeg-test")


@pytest.fixture
def upload(tmp_path):
    """A stored upload without an extension, as an upload layer saves it."""
    path = tmp_path / "3f2a9c"
    path.write_bytes(b"original media bytes")
    return str(path)


class TestAdopt:
    """Supported formats are renamed, never transcoded."""

    @pytest.mark.asyncio
    async def test_supported_image_is_renamed(self, normalizer, upload):
        result = await normalizer.normalize_image(upload, "holiday.PNG")

        assert result == f"{upload}.png"
        assert not os.path.exists(upload)
        assert Path(result).read_bytes() == b"original media bytes"

    @pytest.mark.asyncio
    async def test_supported_audio_is_renamed(self, normalizer, upload):
        with patch.object(normalizer, "convert_audio", new_callable=AsyncMock) as mock_convert:
            result = await normalizer.normalize_audio(upload, "memo.wav")

        mock_convert.assert_not_called()
        assert result == f"{upload}.wav"
        assert Path(result).read_bytes() == b"original media bytes"

    def test_adopt_keeps_matching_extension(self, normalizer, tmp_path):
        path = tmp_path / "clip.mp3"
        path.write_bytes(b"x")
        assert normalizer.adopt(str(path), "mp3") == str(path)
        assert path.exists()


class TestImageConversion:
    """Unsupported images are converted to JPEG."""

    @pytest.mark.asyncio
    async def test_bmp_converted_to_jpeg(self, normalizer, tmp_path):
        upload = tmp_path / "a1b2c3"
        Image.new("RGB", (8, 8), color="red").save(upload, format="BMP")

        result = await normalizer.normalize_image(str(upload), "scan.bmp")

        assert result == str(tmp_path / "a1b2c3_converted.jpeg")
        assert not upload.exists()
        with Image.open(result) as img:
            assert img.format == "JPEG"

    @pytest.mark.asyncio
    async def test_unreadable_image_fails_without_output(self, normalizer, upload, tmp_path):
        with pytest.raises(ConversionError):
            await normalizer.normalize_image(upload, "photo.heic")

        # The caller still owns the original; no partial output remains
        assert os.path.exists(upload)
        assert not (tmp_path / "3f2a9c_converted.jpeg").exists()

    @pytest.mark.asyncio
    async def test_missing_extension_takes_convert_branch(self, normalizer, upload):
        with patch.object(normalizer, "convert_image", new_callable=AsyncMock) as mock_convert:
            mock_convert.side_effect = ConversionError("Image conversion failed")
            with pytest.raises(ConversionError):
                await normalizer.normalize_image(upload, "no_extension")
        mock_convert.assert_awaited_once()
        assert mock_convert.await_args.args[2] == "jpeg"


class TestAudioConversion:
    """Unsupported audio goes through ffmpeg."""

    def test_mp3_args(self, normalizer):
        args = normalizer.build_audio_args("in.flac", "out.mp3", "mp3")
        assert args == [
            "-i", "in.flac", "-acodec", "libmp3lame", "-b:a", "128k",
            "-ar", "44100", "-ac", "2", "-y", "out.mp3",
        ]

    def test_wav_has_no_bitrate(self, normalizer):
        args = normalizer.build_audio_args("in.flac", "out.wav", "wav")
        assert "pcm_s16le" in args
        assert "-b:a" not in args

    def test_unknown_target_rejected(self, normalizer):
        with pytest.raises(ConversionError):
            normalizer.build_audio_args("in.flac", "out.xyz", "xyz")

    @pytest.mark.asyncio
    async def test_successful_conversion_removes_original(self, normalizer, upload, tmp_path):
        output = tmp_path / "3f2a9c_converted.mp3"

        async def fake_exec(binary, *args, **kwargs):
            assert binary == "/usr/bin/ffmpeg-test"
            Path(args[-1]).write_bytes(b"mp3 data")
            process = Mock(returncode=0)
            process.communicate = AsyncMock(return_value=(None, b""))
            return process

        with patch("agentcorpus.processors.normalizer.asyncio.create_subprocess_exec", side_effect=fake_exec):
            result = await normalizer.normalize_audio(upload, "voice.flac")

        assert result == str(output)
        assert output.exists()
        assert not os.path.exists(upload)

    @pytest.mark.asyncio
    async def test_failed_conversion_leaves_no_output(self, normalizer, upload, tmp_path):
        output = tmp_path / "3f2a9c_converted.mp3"

        async def fake_exec(binary, *args, **kwargs):
            Path(args[-1]).write_bytes(b"partial")
            process = Mock(returncode=1)
            process.communicate = AsyncMock(return_value=(None, b"Invalid data found"))
            return process

        with patch("agentcorpus.processors.normalizer.asyncio.create_subprocess_exec", side_effect=fake_exec):
            with pytest.raises(ConversionError, match="code 1"):
                await normalizer.normalize_audio(upload, "voice.flac")

        assert not output.exists()
        assert os.path.exists(upload)
