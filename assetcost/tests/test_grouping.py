"""
Tests for grouping identically billed resources.
"""

import itertools
import pytest

from assetcost.domain.errors import MissingField
from assetcost.domain.resources import Disk, Image, Instance, Network, Subnetwork
from assetcost.services.grouping import fingerprint, group_graph, group_resources


def make_instance(name, region='europe-west1', machine_type='n1-standard-1', scheduling='OnDemand', os='Debian'):
    return Instance(name=name, zone=f'{region}-b', region=region, machine_type=machine_type,
                    scheduling=scheduling, os=os)


def make_disk(name, size_gb=10, disk_type='pd-ssd', image=None, is_regional=False):
    return Disk(name=name, is_regional=is_regional, region='europe-west1',
                zone=None if is_regional else 'europe-west1-b', size_gb=size_gb,
                disk_type=disk_type, source_image=image)


def test_instance_fingerprint():
    """Instances are keyed by region, machine type, scheduling and OS."""
    assert fingerprint(make_instance('a')) == 'europe-west1:n1-standard-1:OnDemand:Debian'
    assert fingerprint(make_instance('b', os=None)) == 'europe-west1:n1-standard-1:OnDemand:'


def test_disk_fingerprint_includes_image():
    """Disks with a source image are keyed by the image too."""
    assert fingerprint(make_disk('a')) == 'europe-west1:10:pd-ssd'
    imaged = make_disk('b', image=Image(name='golden', size_gb=2))
    assert fingerprint(imaged) == 'europe-west1:10:pd-ssd:img(golden:2)'


def test_fingerprint_requires_shape():
    """Resources without a region or shape cannot be grouped."""
    with pytest.raises(MissingField):
        fingerprint(make_instance('a', region=''))
    with pytest.raises(MissingField):
        fingerprint(make_instance('a', machine_type=''))
    with pytest.raises(MissingField):
        fingerprint(make_disk('a', disk_type=''))


def test_fingerprint_rejects_other_resources():
    """Only instances, disks, images and subnetworks are billed by group."""
    with pytest.raises(TypeError):
        fingerprint(Network(name='default'))


def test_groups_keep_discovery_order():
    """Groups are ordered by first appearance with the first member as representative."""
    resources = [
        make_instance('a'),
        make_instance('b', machine_type='e2-medium'),
        make_instance('c'),
        make_instance('d', scheduling='Preemptible'),
    ]

    groups = group_resources(resources)

    assert [g.count for g in groups] == [2, 1, 1]
    assert groups[0].representative.name == 'a'
    assert groups[1].fingerprint == 'europe-west1:e2-medium:OnDemand:Debian'
    assert sum(g.count for g in groups) == len(resources)



def test_missing_scheduling_groups_with_on_demand():
    """An instance without a scheduling class groups with explicit on-demand ones."""
    groups = group_resources([make_instance('a', scheduling=''), make_instance('b', scheduling='OnDemand')])

    assert len(groups) == 1
    assert groups[0].count == 2
    assert groups[0].fingerprint == 'europe-west1:n1-standard-1:OnDemand:Debian'


def test_image_and_subnetwork_fingerprints():
    """Images are keyed by storage regions and size, subnetworks by region and tier."""
    image = Image(name='golden', size_gb=2, storage_regions=['us', 'eu'])
    assert fingerprint(image) == 'eu+us:image:2'

    subnetwork = Subnetwork(name='default', network_name='default', region='europe-west1', tier='PREMIUM')
    assert fingerprint(subnetwork) == 'europe-west1:subnet:PREMIUM'
    with pytest.raises(MissingField):
        fingerprint(Subnetwork(name='default', network_name='default', region=''))


def test_grouping_is_order_independent():
    """Every visiting order yields the same set of groups."""
    resources = [
        make_instance('a'),
        make_instance('b', machine_type='e2-medium'),
        make_instance('c'),
        make_instance('d', scheduling='Preemptible'),
        make_instance('e', scheduling=''),
        make_instance('f', region='us-east1'),
    ]
    expected = {(g.fingerprint, g.count) for g in group_resources(resources)}

    for permutation in itertools.permutations(resources):
        assert {(g.fingerprint, g.count) for g in group_resources(permutation)} == expected
    assert sorted(count for _, count in expected) == [1, 1, 1, 3]


def test_group_graph(sample_records):
    """A graph splits into instance, disk, image and subnetwork groups."""
    from assetcost.services.asset_builder import build_graph

    groups = group_graph(build_graph(sample_records))

    assert len(groups.instances) == 1
    assert groups.instances[0].count == 2
    # web-1 has an image and web-2 does not
    assert len(groups.disks) == 2
    assert groups.instances[0].to_dict()['fingerprint'] == 'europe-west1:n1-standard-1:OnDemand:Debian'
    assert [g.fingerprint for g in groups.images] == ['eu:image:2']
    assert [g.fingerprint for g in groups.subnetworks] == ['europe-west1:subnet:PREMIUM']
    assert len(groups.all()) == 5
