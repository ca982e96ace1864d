"""
Host platform detection.

The release metadata of the target host is matched against family markers and
the matching command provider is selected once per run.
"""
import logging

from ..errors import CommandError, DetectionError
from ..executor import Executor
from ..models import HostFamily, PlatformDescriptor
from .base import HOSTAGENT_PACKAGE, OS_RELEASE_FILE, PF9_PACKAGES, Platform
from .debian import Debian
from .redhat import RedHat

logger = logging.getLogger("nodectl.platform")

# Checked in order, redhat markers first
FAMILY_MARKERS = [
    (HostFamily.REDHAT, ('centos', 'red hat', 'rhel', 'rocky')),
    (HostFamily.DEBIAN, ('ubuntu', 'debian')),
]

PROVIDERS = {
    HostFamily.DEBIAN: Debian,
    HostFamily.REDHAT: RedHat,
}

UNKNOWN_PLATFORM = PlatformDescriptor(HostFamily.UNKNOWN, '')


def read_os_release(executor: Executor) -> str:
    """Return the lower-cased release metadata of the host."""
    try:
        data = executor.run_with_stdout('cat', OS_RELEASE_FILE)
    except CommandError as e:
        raise DetectionError(f"failed reading data from file: {e}") from e
    return data.lower()


def detect(executor: Executor) -> PlatformDescriptor:
    """Classify the host OS.

    Args:
        executor: Executor for the target host

    Returns:
        PlatformDescriptor: The family and version, or the unknown family if no
        marker matches or the version is unsupported

    Raises:
        DetectionError: If the release metadata cannot be read
    """
    logger.debug("Received a call to validate platform")
    data = read_os_release(executor)
    for family, markers in FAMILY_MARKERS:
        if any(marker in data for marker in markers):
            provider = PROVIDERS[family](executor)
            try:
                version = provider.version()
            except (DetectionError, CommandError) as e:
                logger.debug(f"Error : {e}")
                return UNKNOWN_PLATFORM
            logger.debug(f"Detected {family.value} {version}")
            return PlatformDescriptor(family, version)
    return UNKNOWN_PLATFORM


def platform_for(descriptor: PlatformDescriptor, executor: Executor) -> Platform:
    """Return the command provider for a detected platform."""
    provider = PROVIDERS.get(descriptor.family)
    if provider is None:
        raise DetectionError("Invalid host OS, supported OS families are debian and redhat")
    return provider(executor)


__all__ = [
    'Platform',
    'Debian',
    'RedHat',
    'PF9_PACKAGES',
    'HOSTAGENT_PACKAGE',
    'detect',
    'platform_for',
    'read_os_release',
]
