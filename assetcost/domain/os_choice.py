"""
Operating system names derived from disk license strings.
"""
from enum import Enum
from typing import Optional
import logging

from assetcost.core.config import config


logger = logging.getLogger(__name__)


class OsChoice(Enum):
    """Operating systems with distinct license pricing. Values are (display name, resource group)."""
    UNSPECIFIED = ("Unspecified", "Unspecified")
    CENTOS = ("CentOS", "CentOS")
    CONTAINER_OPTIMIZED_OS = ("Container Optimized OS", "CoreOSStable")
    DEBIAN = ("Debian", "Debian")
    DEEP_LEARNING_ON_LINUX = ("Deep Learning on Linux", "Debian")
    FEDORA_CORE_OS = ("Fedora Core OS", "FedoraCoreOS")
    RHEL = ("Red Hat Enterprise Linux", "RHEL7")
    RHEL_FOR_SAP = ("Red Hat Enterprise Linux for SAP", "Google")
    SQL_SERVER_ON_WINDOWS = ("SQL Server On Windows Server", "SQLServer2016Standard")
    SLES = ("SUSE Linux Enterprise Server", "Google")
    SLES_FOR_SAP = ("SUSE Linux Enterprise Server for SAP", "SLES12ForSAP")
    UBUNTU = ("Ubuntu", "Ubuntu1604")
    WINDOWS_SERVER = ("Windows Server", "WindowsServer2012")

    @property
    def display_name(self) -> str:
        return self.value[0]

    @property
    def resource_group(self) -> str:
        return self.value[1]


# First token of a license name -> OS
LICENSE_PREFIXES = {
    "ubuntu": OsChoice.UBUNTU,
    "centos": OsChoice.CENTOS,
    "debian": OsChoice.DEBIAN,
    "fedora": OsChoice.FEDORA_CORE_OS,
    "rhel": OsChoice.RHEL,
    "windows": OsChoice.WINDOWS_SERVER,
    "sles": OsChoice.SLES,
    "cos": OsChoice.CONTAINER_OPTIMIZED_OS,
}


def os_choice_by_name(name: str) -> OsChoice:
    """Look up an OsChoice by display name, case-insensitively."""
    lowered = name.lower()
    for choice in OsChoice:
        if choice is not OsChoice.UNSPECIFIED and choice.display_name.lower() == lowered:
            return choice
    return OsChoice.UNSPECIFIED


def os_from_license_name(license_name: str, fallback: Optional[str] = None) -> str:
    """
    Map a license URL or name to a canonical OS name.

    License names are usually of the form <base os name>-<version>, e.g.
    'projects/debian-cloud/global/licenses/debian-11-bullseye'.

    Args:
        license_name: License URL or bare license name
        fallback: OS name to report for unknown prefixes (defaults to config.FALLBACK_OS)

    Returns:
        Canonical OS display name
    """
    basename = license_name.rstrip("/").split("/")[-1]
    prefix = basename.split("-")[0].lower()
    choice = LICENSE_PREFIXES.get(prefix)
    if choice is None:
        fallback = fallback or config.FALLBACK_OS
        logger.debug(f"Unknown license prefix '{prefix}' in {license_name}, assuming {fallback}")
        return fallback
    return choice.display_name

