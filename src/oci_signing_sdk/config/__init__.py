"""
Configuration management for OCI Signing SDK

Client settings plus loading of signing identities from the standard OCI
config file.
"""

from .settings import (
    ClientSettings,
    ENV_PREFIX,
    TRANSPORT_CHOICES,
)
from .profile import (
    OciProfile,
    load_profile,
    load_identity,
    default_config_path,
    DEFAULT_CONFIG_PATH,
    DEFAULT_PROFILE,
)

__all__ = [
    'ClientSettings',
    'ENV_PREFIX',
    'TRANSPORT_CHOICES',
    'OciProfile',
    'load_profile',
    'load_identity',
    'default_config_path',
    'DEFAULT_CONFIG_PATH',
    'DEFAULT_PROFILE',
]
