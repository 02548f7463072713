"""
Tests for usage profiles and billing resource groups.
"""

import pytest

from assetcost.domain.resources import Disk, Instance
from assetcost.services.grouping import ResourceGroup
from assetcost.services.usage import (
    HOURS_PER_MONTH,
    MachineShape,
    disk_usage,
    instance_usage,
    resource_group_for_disk_type,
    resource_groups_for_machine_type,
)


@pytest.fixture
def instance_group():
    instance = Instance(name='vm', zone='europe-west1-b', region='europe-west1',
                        machine_type='n1-standard-2', scheduling='OnDemand')
    return ResourceGroup(representative=instance, count=3, fingerprint='fp')


def test_instance_usage(instance_group):
    """Ceiling assumes a full month; projection uses the given uptime."""
    shape = MachineShape(name='n1-standard-2', cpu_count=2, memory_mb=7680)

    cpu, memory = instance_usage(instance_group, shape, projected_hours=100)

    assert cpu.usage_unit == 'h'
    assert cpu.ceiling == HOURS_PER_MONTH * 2 * 3
    assert cpu.projected == 100 * 2 * 3
    assert memory.usage_unit == 'GiBy.h'
    assert memory.ceiling == pytest.approx(HOURS_PER_MONTH * 7.5 * 3)
    assert memory.projected == pytest.approx(100 * 7.5 * 3)


def test_instance_usage_defaults_to_full_month(instance_group):
    """Without an uptime the configured default applies."""
    shape = MachineShape(name='n1-standard-2', cpu_count=2, memory_mb=7680)

    cpu, _ = instance_usage(instance_group, shape)

    assert cpu.projected == cpu.ceiling


def test_disk_usage():
    """Disk space is billed in full for ceiling and projection alike."""
    disk = Disk(name='d', is_regional=False, region='europe-west1', zone='europe-west1-b',
                size_gb=50, disk_type='pd-standard')

    usage, = disk_usage(ResourceGroup(representative=disk, count=4, fingerprint='fp'))

    assert usage.usage_unit == 'GiBy.mo'
    assert usage.ceiling == usage.projected == 200


@pytest.mark.parametrize('machine_type,expected', [
    ('e2-micro', ['CPU', 'RAM']),
    ('f1-micro', ['F1Micro']),
    ('g1-small', ['G1Small']),
    ('n1-standard-4', ['N1Standard']),
    ('a2-highgpu-1g', ['CPU', 'RAM', 'GPU']),
    ('n2-highmem-8', ['CPU', 'RAM']),
])
def test_resource_groups_for_machine_type(machine_type, expected):
    """Machine type names map onto billing resource groups."""
    assert resource_groups_for_machine_type(machine_type) == expected


@pytest.mark.parametrize('machine_type', ['custom', 'n1-custom-4-1024', 'm1-ultramem'])
def test_unknown_machine_types(machine_type):
    """Unrecognised names are rejected."""
    with pytest.raises(ValueError):
        resource_groups_for_machine_type(machine_type)


def test_resource_group_for_disk_type():
    """Disk types map onto billing resource groups."""
    assert resource_group_for_disk_type('pd-standard') == 'PDStandard'
    assert resource_group_for_disk_type('pd-balanced') == 'SSD'
    assert resource_group_for_disk_type('local-ssd') == 'LocalSSD'
    with pytest.raises(ValueError):
        resource_group_for_disk_type('hyperdisk-throughput')
