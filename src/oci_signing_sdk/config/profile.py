"""
OCI config file loading

Reads a profile from the standard OCI INI config file (``~/.oci/config``)
and the private key file it points to.
"""

import os
import logging
import configparser
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..exceptions import ConfigError, ErrorCodes
from ..signing.types import SigningIdentity

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.oci/config"
DEFAULT_PROFILE = "DEFAULT"
CONFIG_FILE_ENV = "OCI_CONFIG_FILE"

REQUIRED_KEYS = ("user", "fingerprint", "tenancy", "key_file")


@dataclass(frozen=True)
class OciProfile:
    """
    A profile from the OCI config file

    Attributes:
        name: Profile name
        identity: Signing identity
        region: Region identifier, e.g. us-phoenix-1
    """
    name: str
    identity: SigningIdentity
    region: Optional[str] = None

    def endpoint(self, service: str) -> str:
        """
        Build the regional API host for a service.

        Args:
            service: Service prefix, e.g. "objectstorage"

        Returns:
            str: Host name such as objectstorage.us-phoenix-1.oraclecloud.com

        Raises:
            ConfigError: If the profile has no region
        """
        if not self.region:
            raise ConfigError(
                f"Profile {self.name!r} has no region",
                ErrorCodes.CONFIG_FILE_ERROR,
                {"profile": self.name}
            )
        return f"{service}.{self.region}.oraclecloud.com"


def default_config_path() -> Path:
    return Path(os.environ.get(CONFIG_FILE_ENV, DEFAULT_CONFIG_PATH)).expanduser()


def load_profile(
    file_path: Optional[Union[str, Path]] = None,
    profile: str = DEFAULT_PROFILE
) -> OciProfile:
    """
    Load a profile from an OCI config file.

    Values in the DEFAULT section are inherited by every profile. A relative
    ``key_file`` is resolved against the config file's directory.

    Args:
        file_path: Config file path; OCI_CONFIG_FILE or ~/.oci/config by default
        profile: Profile (section) name

    Returns:
        OciProfile: Loaded profile

    Raises:
        ConfigError: If the file, profile, a required key or the key file is missing
    """
    path = Path(file_path).expanduser() if file_path else default_config_path()

    parser = configparser.ConfigParser(interpolation=None)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            parser.read_file(f)
    except OSError as e:
        raise ConfigError(
            f"Failed to read OCI config file: {e}",
            ErrorCodes.CONFIG_FILE_ERROR,
            {"path": str(path)}
        ) from e
    except configparser.Error as e:
        raise ConfigError(
            f"Invalid OCI config file: {e}",
            ErrorCodes.CONFIG_FILE_ERROR,
            {"path": str(path)}
        ) from e

    if profile != DEFAULT_PROFILE and not parser.has_section(profile):
        raise ConfigError(
            f"Profile {profile!r} not found in {path}",
            ErrorCodes.CONFIG_FILE_ERROR,
            {"path": str(path), "profile": profile}
        )
    section = parser[profile]

    missing = [key for key in REQUIRED_KEYS if not section.get(key)]
    if missing:
        raise ConfigError(
            f"Profile {profile!r} is missing: {', '.join(missing)}",
            ErrorCodes.CONFIG_FILE_ERROR,
            {"path": str(path), "profile": profile, "missing": missing}
        )

    key_path = Path(section["key_file"]).expanduser()
    if not key_path.is_absolute():
        key_path = path.parent / key_path
    try:
        private_key = key_path.read_text(encoding='utf-8')
    except OSError as e:
        raise ConfigError(
            f"Failed to read private key file: {e}",
            ErrorCodes.CONFIG_FILE_ERROR,
            {"key_file": str(key_path)}
        ) from e

    identity = SigningIdentity(
        tenancy_ocid=section["tenancy"],
        user_ocid=section["user"],
        key_fingerprint=section["fingerprint"],
        private_key=private_key,
        passphrase=section.get("pass_phrase") or None
    )

    logger.debug(f"Loaded OCI profile {profile!r} from {path}")
    return OciProfile(name=profile, identity=identity, region=section.get("region"))


def load_identity(
    file_path: Optional[Union[str, Path]] = None,
    profile: str = DEFAULT_PROFILE
) -> SigningIdentity:
    """
    Load only the signing identity of a profile.

    See load_profile for arguments and errors.
    """
    return load_profile(file_path, profile).identity
