"""Core components: configuration, credential rotation, generation, watermarking, storage."""

from zulepfp.core.config import ZulePfpConfig, config
from zulepfp.core.errors import MaxRetriesExceededError, MissingAssetError, NoCredentialsError

__all__ = [
    "MaxRetriesExceededError",
    "MissingAssetError",
    "NoCredentialsError",
    "ZulePfpConfig",
    "config",
]
