"""
Configuration management system for the agent corpus backend.

Provides dataclasses for all system configurations including processing,
the Gemini service and its credential pool, website crawling, storage
and logging.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import os
import re
from pathlib import Path


# Hard ceiling on pages fetched by a single website crawl
MAX_CRAWL_PAGES = 50


@dataclass
class ProcessingConfig:
    """Configuration for upload handling and format normalization."""
    upload_directory: str = "uploads"
    temp_directory: str = "/tmp/agentcorpus"
    max_file_size_mb: int = 100
    document_formats: List[str] = field(default_factory=lambda: [
        'pdf', 'docx', 'doc', 'csv', 'txt'
    ])
    image_formats: List[str] = field(default_factory=lambda: [
        'jpeg', 'jpg', 'png', 'webp'
    ])
    audio_formats: List[str] = field(default_factory=lambda: [
        'mp3', 'wav', 'ogg', 'aac'
    ])
    default_image_format: str = "jpeg"
    default_audio_format: str = "mp3"
    image_quality: int = 90
    soffice_binary: str = "soffice"


@dataclass
class GeminiConfig:
    """Configuration for the Gemini generative service and its retry policy."""
    api_keys: List[str] = field(default_factory=list)
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    upload_url: str = "https://generativelanguage.googleapis.com/upload/v1beta/files"
    text_model: str = "gemini-1.5-flash"
    media_model: str = "gemini-2.0-flash"
    request_timeout: int = 300
    file_poll_interval: float = 10.0
    file_poll_max_checks: int = 60
    transient_delay: float = 5.0
    backoff_base: float = 1.0
    max_backoff: float = 60.0
    fixed_max_retries: int = 3
    attempts_per_key: int = 2


@dataclass
class CrawlerConfig:
    """Configuration for website crawling."""
    max_pages: int = MAX_CRAWL_PAGES
    navigation_timeout_ms: int = 30000
    wait_until: str = "networkidle"
    headless: bool = True


@dataclass
class StorageConfig:
    """Configuration for the agent corpus store."""
    corpus_path: str = "storage/agents.json"


@dataclass
class LoggingConfig:
    """Configuration for system logging."""
    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = "logs/agentcorpus.log"
    max_file_size_mb: int = 20
    backup_count: int = 14
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    enable_console_logging: bool = True
    enable_file_logging: bool = True


@dataclass
class SystemConfig:
    """Main system configuration containing all subsystem configs."""
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    auto_create_directories: bool = True


_API_KEY_PATTERN = re.compile(r"^GEMINI_API_KEY_(\d+)$")


def load_api_keys_from_env(environ: Optional[dict] = None) -> List[str]:
    """
    Collect Gemini API keys from ``GEMINI_API_KEY_<n>`` variables.

    Keys are ordered by their numeric suffix; empty values are skipped.
    """
    environ = os.environ if environ is None else environ
    numbered = []
    for name, value in environ.items():
        match = _API_KEY_PATTERN.match(name)
        if match and value and value.strip():
            numbered.append((int(match.group(1)), value.strip()))
    return [value for _, value in sorted(numbered)]


class ConfigManager:
    """
    Manages system configuration loading and validation.

    Supports loading from environment variables with validation.
    """

    def __init__(self):
        self._config: Optional[SystemConfig] = None

    def load_config(self) -> SystemConfig:
        """Load configuration from environment variables."""
        if self._config is None:
            self._config = SystemConfig()
            self._apply_environment_overrides()
            self._validate_config()
            self._create_directories()
        return self._config

    def _apply_environment_overrides(self) -> None:
        """Apply configuration overrides from environment variables."""
        if not self._config:
            return

        # Processing config overrides
        if os.getenv("UPLOAD_DIRECTORY"):
            self._config.processing.upload_directory = os.getenv("UPLOAD_DIRECTORY")
        if os.getenv("MAX_FILE_SIZE_MB"):
            self._config.processing.max_file_size_mb = int(os.getenv("MAX_FILE_SIZE_MB"))

        # Gemini config overrides
        api_keys = load_api_keys_from_env()
        if api_keys:
            self._config.gemini.api_keys = api_keys
        if os.getenv("GEMINI_TEXT_MODEL"):
            self._config.gemini.text_model = os.getenv("GEMINI_TEXT_MODEL")
        if os.getenv("GEMINI_MEDIA_MODEL"):
            self._config.gemini.media_model = os.getenv("GEMINI_MEDIA_MODEL")
        if os.getenv("GEMINI_TRANSIENT_DELAY"):
            self._config.gemini.transient_delay = float(os.getenv("GEMINI_TRANSIENT_DELAY"))

        # Crawler config overrides
        if os.getenv("CRAWL_MAX_PAGES"):
            self._config.crawler.max_pages = int(os.getenv("CRAWL_MAX_PAGES"))

        # Storage / logging overrides
        if os.getenv("CORPUS_PATH"):
            self._config.storage.corpus_path = os.getenv("CORPUS_PATH")
        if os.getenv("LOG_LEVEL"):
            self._config.logging.level = os.getenv("LOG_LEVEL").upper()

    def _validate_config(self) -> None:
        """Validate configuration values and constraints."""
        if not self._config:
            return

        processing = self._config.processing
        if not processing.document_formats:
            raise ValueError("document_formats cannot be empty")
        if processing.default_image_format not in processing.image_formats:
            raise ValueError("default_image_format must be a supported image format")
        if processing.default_audio_format not in processing.audio_formats:
            raise ValueError("default_audio_format must be a supported audio format")

        gemini = self._config.gemini
        if gemini.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if gemini.fixed_max_retries < 0 or gemini.attempts_per_key <= 0:
            raise ValueError("retry counts must be positive")
        if gemini.transient_delay < 0 or gemini.backoff_base < 0:
            raise ValueError("retry delays cannot be negative")

        if not 1 <= self._config.crawler.max_pages <= MAX_CRAWL_PAGES:
            raise ValueError(f"crawler max_pages must be between 1 and {MAX_CRAWL_PAGES}")

        if not self._config.storage.corpus_path:
            raise ValueError("corpus_path cannot be empty")

    def _create_directories(self) -> None:
        """Create necessary directories if they don't exist."""
        if not self._config or not self._config.auto_create_directories:
            return

        directories = [
            self._config.processing.upload_directory,
            self._config.processing.temp_directory,
            str(Path(self._config.storage.corpus_path).parent),
        ]

        # Add log directory if file logging is enabled
        if self._config.logging.enable_file_logging and self._config.logging.log_file:
            directories.append(str(Path(self._config.logging.log_file).parent))

        for directory in directories:
            Path(directory).mkdir(parents=True, exist_ok=True)

    def get_config(self) -> SystemConfig:
        """Get the current system configuration."""
        if self._config is None:
            return self.load_config()
        return self._config
