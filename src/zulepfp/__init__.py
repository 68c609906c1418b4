"""Zule PFP - profile picture generation API."""

__version__ = "0.3.0"

from zulepfp.core.config import ZulePfpConfig, config
from zulepfp.core.key_pool import Credential, KeyPool
from zulepfp.core.retry import RetryController
from zulepfp.core.watermark import WatermarkSpec, apply_watermark

__all__ = [
    "Credential",
    "KeyPool",
    "RetryController",
    "WatermarkSpec",
    "ZulePfpConfig",
    "apply_watermark",
    "config",
]
