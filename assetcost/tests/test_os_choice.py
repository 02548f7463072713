"""
Tests for OS names derived from licenses.
"""

import pytest

from assetcost.domain.os_choice import (
    OsChoice,
    os_choice_by_name,
    os_from_license_name,
)


@pytest.mark.parametrize('license_name,expected', [
    ('projects/debian-cloud/global/licenses/debian-11-bullseye', 'Debian'),
    ('projects/ubuntu-os-cloud/global/licenses/ubuntu-2004-lts', 'Ubuntu'),
    ('projects/centos-cloud/global/licenses/centos-7', 'CentOS'),
    ('projects/rhel-cloud/global/licenses/rhel-8-server', 'Red Hat Enterprise Linux'),
    ('projects/windows-cloud/global/licenses/windows-server-2019-dc', 'Windows Server'),
    ('projects/cos-cloud/global/licenses/cos-stable', 'Container Optimized OS'),
    ('projects/suse-cloud/global/licenses/sles-15', 'SUSE Linux Enterprise Server'),
    ('Fedora-coreos-stable', 'Fedora Core OS'),
])
def test_known_license_prefixes(license_name, expected):
    """Known license prefixes map to their OS."""
    assert os_from_license_name(license_name) == expected


def test_unknown_prefix_uses_fallback():
    """Unknown prefixes report the fallback OS rather than failing."""
    assert os_from_license_name('projects/x/global/licenses/mystery-os-1') == 'Debian'
    assert os_from_license_name('mystery-os-1', fallback='CentOS') == 'CentOS'


def test_os_choice_by_name():
    """Display names are looked up case-insensitively."""
    assert os_choice_by_name('ubuntu') is OsChoice.UBUNTU
    assert os_choice_by_name('Windows Server') is OsChoice.WINDOWS_SERVER
    assert os_choice_by_name('plan9') is OsChoice.UNSPECIFIED


@pytest.mark.parametrize('name,resource_group', [
    ('Debian', 'Debian'),
    ('Ubuntu', 'Ubuntu1604'),
    ('Windows Server', 'WindowsServer2012'),
    ('Red Hat Enterprise Linux', 'RHEL7'),
])
def test_license_resource_groups(name, resource_group):
    """Each OS names the billing resource group of its license SKUs."""
    assert os_choice_by_name(name).resource_group == resource_group
