"""Configuration management for the Zule PFP service.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the ZULE_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (ZULE_* prefix)
2. .env file in the project root
3. Default values defined in ZulePfpConfig

Example .env file:
    ZULE_LOGO_PATH=assets/watermark_logo.png
    ZULE_SHUFFLE_KEYS=true
    ZULE_PUBLIC_BASE_URL=https://pfp.example.com/uploads
    GEMINI_API_KEY_1=...
    GEMINI_API_KEY_2=...

Generation API credentials are NOT part of this model.  They are numbered
variables (``GEMINI_API_KEY_1``, ``GEMINI_API_KEY_2``, ...) read by
:func:`zulepfp.core.key_pool.load_credentials`, which uses
``credential_prefix`` and ``env_file`` from here.

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.

Usage Example
-------------
    from zulepfp.core.config import config

    print(config.imagen_model_id)
    print(config.uploads_dir)
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ZulePfpConfig(BaseSettings):
    """Main configuration for the Zule PFP service.

    Attributes
    ----------
    Generation API:
        imagen_base_url : str
            Base URL of the text-to-image REST API
        imagen_model_id : str
            Model path appended to the base URL (``models/...``)
        sample_count, person_generation, aspect_ratio
            Fixed parameters sent with every generation request
        request_timeout : float
            Per-attempt HTTP timeout in seconds

    Credential rotation:
        credential_prefix : str
            Prefix of the numbered credential variables
        shuffle_keys : bool
            Randomise credential order once at startup
        rate_limit_delay, failure_delay, unavailable_delay : float
            Back-off delays (seconds) used by the retry controller

    Watermark:
        logo_path : Path
            Logo composited onto every generated image
        logo_width_fraction, logo_max_width, logo_padding, logo_opacity
            Logo sizing and placement parameters

    Storage:
        data_dir, uploads_dir, temp_dir : Path
        database_path : Path
        upload_folder : str
        public_base_url : str

    Server:
        allowed_origins, server_host, server_port, log_level

    Notes
    -----
    - All directories are created automatically if they don't exist
    - To modify config, set environment variables and restart the application
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ZULE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Generation API
    imagen_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the image generation REST API",
    )
    imagen_model_id: str = Field(
        default="models/imagen-3.0-generate-002",
        description="Model path used to build the :predict endpoint",
    )
    sample_count: int = Field(default=1, ge=1, le=4)
    person_generation: Literal["DONT_ALLOW", "ALLOW_ADULT", "ALLOW_ALL"] = Field(
        default="ALLOW_ADULT",
        description="Content policy mode for people in generated images",
    )
    aspect_ratio: Literal["1:1", "3:4", "4:3", "9:16", "16:9"] = Field(default="1:1")
    request_timeout: float = Field(
        default=120.0,
        description="Per-attempt HTTP timeout in seconds",
        gt=0,
    )

    # Credential rotation and retry
    credential_prefix: str = Field(
        default="GEMINI_API_KEY_",
        description="Prefix of numbered credential variables (GEMINI_API_KEY_1, ...)",
    )
    shuffle_keys: bool = Field(
        default=False,
        description="Shuffle credential order once at startup to spread load across restarts",
    )
    rate_limit_delay: float = Field(default=1.0, ge=0)
    failure_delay: float = Field(default=1.0, ge=0)
    unavailable_delay: float = Field(default=5.0, ge=0)

    # Watermark
    logo_path: Path = Field(
        default=Path("assets/watermark_logo.png"),
        description="Logo image composited onto generated images",
    )
    logo_width_fraction: float = Field(default=0.4, gt=0, le=1)
    logo_max_width: int = Field(default=100, ge=1)
    logo_padding: int = Field(default=10, ge=0)
    logo_opacity: float = Field(default=0.7, ge=0, le=1)

    # Storage
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the SQLite document store",
    )
    uploads_dir: Path = Field(
        default=Path("uploads"),
        description="Directory for published (watermarked) images",
    )
    temp_dir: Path = Field(
        default=Path(".temp"),
        description="Scratch directory for intermediate artifacts",
    )
    database_filename: str = Field(default="zule.sqlite3")
    upload_folder: str = Field(default="zule-pfps")
    public_base_url: str = Field(
        default="/uploads",
        description="URL prefix under which uploads_dir is published",
    )
    gallery_page_size: int = Field(default=10, ge=1, le=100)

    # Server
    allowed_origins: list[str] = Field(
        default=[
            "https://pfp-zule.vercel.app",
            "https://pfp.zuleai.xyz",
            "https://www.zuleai.xyz",
            "https://zuleai.xyz",
        ],
        description="CORS allow-list",
    )
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=5000, ge=1024, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")
    env_file: Path = Field(
        default=Path(".env"),
        description="Dotenv file also scanned for numbered credentials",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories."""
        super().__init__(**kwargs)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.temp_dir.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        """Location of the SQLite document store."""
        return self.data_dir / self.database_filename

    @property
    def predict_url(self) -> str:
        """Full ``:predict`` endpoint for the configured model."""
        return f"{self.imagen_base_url.rstrip('/')}/{self.imagen_model_id}:predict"


# Global configuration instance
# Loads values from environment variables (ZULE_* prefix) and .env file.
config = ZulePfpConfig()
