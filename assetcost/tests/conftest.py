"""
Shared pytest fixtures for assetcost tests.
"""

import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest
from fastapi.testclient import TestClient

from assetcost.domain.records import COMPUTE_SERVICE_ID, RawRecord
from assetcost.pricing.catalog import InMemoryPriceCatalog
from assetcost.resilience.circuit_breaker import reset_circuit_breakers


PROJECT = 'demo-project'


def make_record(type_name, name, data, service='compute.googleapis.com'):
    """Build a raw record the way the asset inventory emits it."""
    return RawRecord(
        name=f'//{service}/projects/{PROJECT}/{name}',
        type=f'{service}/{type_name}',
        payload={'data': data},
    )


def network_url(name='default'):
    return f'projects/{PROJECT}/global/networks/{name}'


def instance_data(name, zone='europe-west1-b', machine_type='n1-standard-1', network='default',
                  subnetwork='default', tier=None, nat_ip=None, preemptible=False, licenses=None):
    """Instance payload with a single network interface."""
    region = zone[:-2]
    access_configs = []
    if tier or nat_ip:
        access_config = {'name': 'External NAT'}
        if tier:
            access_config['networkTier'] = tier
        if nat_ip:
            access_config['natIP'] = nat_ip
        access_configs.append(access_config)
    nic = {'name': 'nic0', 'network': network_url(network), 'accessConfigs': access_configs}
    if subnetwork:
        nic['subnetwork'] = f'projects/{PROJECT}/regions/{region}/subnetworks/{subnetwork}'
    data = {
        'name': name,
        'zone': f'projects/{PROJECT}/zones/{zone}',
        'machineType': f'projects/{PROJECT}/zones/{zone}/machineTypes/{machine_type}',
        'scheduling': {'preemptible': preemptible},
        'networkInterfaces': [nic],
    }
    if licenses is not None:
        data['disks'] = [{'boot': True, 'licenses': licenses}]
    return data


@pytest.fixture
def record_factory():
    """Factory for raw records."""
    return make_record


@pytest.fixture
def sample_records():
    """A small but complete project: network, instances, disks, IAM and services."""
    return [
        make_record('Project', '', {'projectId': PROJECT}, service='cloudresourcemanager.googleapis.com'),
        make_record('Project', '', {'name': PROJECT, 'defaultNetworkTier': 'STANDARD'}),
        make_record('Network', 'global/networks/default', {'name': 'default'}),
        make_record('Subnetwork', 'regions/europe-west1/subnetworks/default', {
            'name': 'default',
            'network': network_url(),
            'region': f'projects/{PROJECT}/regions/europe-west1',
            'ipCidrRange': '10.132.0.0/20',
        }),
        make_record('Firewall', 'global/firewalls/default-allow-ssh', {
            'name': 'default-allow-ssh',
            'network': network_url(),
        }),
        make_record('Route', 'global/routes/default-route-1', {
            'name': 'default-route-1',
            'network': network_url(),
            'destRange': '0.0.0.0/0',
        }),
        make_record('Instance', 'zones/europe-west1-b/instances/web-1', instance_data(
            'web-1', tier='PREMIUM', nat_ip='34.76.1.1',
            licenses=['projects/debian-cloud/global/licenses/debian-11-bullseye'],
        )),
        make_record('Instance', 'zones/europe-west1-b/instances/web-2', instance_data(
            'web-2',
            licenses=['projects/debian-cloud/global/licenses/debian-11-bullseye'],
        )),
        make_record('Disk', 'zones/europe-west1-b/disks/web-1', {
            'name': 'web-1',
            'zone': f'projects/{PROJECT}/zones/europe-west1-b',
            'type': f'projects/{PROJECT}/zones/europe-west1-b/diskTypes/pd-ssd',
            'sizeGb': '10',
        }),
        make_record('Disk', 'zones/europe-west1-b/disks/web-2', {
            'name': 'web-2',
            'zone': f'projects/{PROJECT}/zones/europe-west1-b',
            'type': f'projects/{PROJECT}/zones/europe-west1-b/diskTypes/pd-ssd',
            'sizeGb': '10',
        }),
        make_record('Image', 'global/images/web-golden', {
            'name': 'web-golden',
            'sourceDisk': f'projects/{PROJECT}/zones/europe-west1-b/disks/web-1',
            'archiveSizeBytes': str(2 * 1024 ** 3),
            'storageLocations': ['eu'],
            'licenses': ['projects/debian-cloud/global/licenses/debian-11-bullseye'],
        }),
        make_record('Address', 'regions/europe-west1/addresses/lb-ip', {
            'name': 'lb-ip',
            'address': '34.76.2.2',
            'region': f'projects/{PROJECT}/regions/europe-west1',
            'status': 'RESERVING',
            'addressType': 'EXTERNAL',
        }),
        make_record('ServiceAccount', f'serviceAccounts/deployer@{PROJECT}.iam.gserviceaccount.com', {
            'name': f'projects/{PROJECT}/serviceAccounts/deployer@{PROJECT}.iam.gserviceaccount.com',
        }, service='iam.googleapis.com'),
        make_record('ServiceAccountKey', f'serviceAccounts/deployer@{PROJECT}.iam.gserviceaccount.com/keys/k1', {
            'name': f'projects/{PROJECT}/serviceAccounts/deployer@{PROJECT}.iam.gserviceaccount.com/keys/k1',
        }, service='iam.googleapis.com'),
        make_record('Service', 'services/compute.googleapis.com', {
            'name': 'compute.googleapis.com',
            'state': 'ENABLED',
        }, service='serviceusage.googleapis.com'),
    ]


@pytest.fixture
def catalog_data():
    """Catalog data covering the sample project: n1-standard-1, pd-ssd, image storage and premium egress."""
    return {
        'skus': [
            {
                'sku_id': 'N1-CORE-EW1',
                'description': 'N1 Predefined Instance Core running in Belgium',
                'service_id': COMPUTE_SERVICE_ID,
                'resource_family': 'Compute',
                'resource_group': 'N1Standard',
                'usage_type': 'OnDemand',
                'regions': ['europe-west1'],
                'pricing': {
                    'usage_unit': 'h',
                    'tiers': [{'start_usage_amount': 0, 'unit_price': 0.05}],
                },
            },
            {
                'sku_id': 'N1-RAM-EW1',
                'description': 'N1 Predefined Instance Ram running in Belgium',
                'service_id': COMPUTE_SERVICE_ID,
                'resource_family': 'Compute',
                'resource_group': 'N1Standard',
                'usage_type': 'OnDemand',
                'regions': ['europe-west1'],
                'pricing': {
                    'usage_unit': 'GiBy.h',
                    'tiers': [{'start_usage_amount': 0, 'units': 0, 'nanos': 5000000}],
                },
            },
            {
                'sku_id': 'SSD-EW1',
                'description': 'SSD backed PD Capacity in Belgium',
                'service_id': COMPUTE_SERVICE_ID,
                'resource_family': 'Storage',
                'resource_group': 'SSD',
                'usage_type': 'OnDemand',
                'regions': ['europe-west1'],
                'pricing': {
                    'usage_unit': 'GiBy.mo',
                    'tiers': [{'start_usage_amount': 0, 'unit_price': 0.2}],
                },
            },
            {
                'sku_id': 'REGIONAL-SSD-EW1',
                'description': 'Regional SSD backed PD Capacity in Belgium',
                'service_id': COMPUTE_SERVICE_ID,
                'resource_family': 'Storage',
                'resource_group': 'SSD',
                'usage_type': 'OnDemand',
                'regions': ['europe-west1'],
                'pricing': {
                    'usage_unit': 'GiBy.mo',
                    'tiers': [{'start_usage_amount': 0, 'unit_price': 0.4}],
                },
            },
            {
                'sku_id': 'STORAGE-IMAGE-EU',
                'description': 'Storage Image',
                'service_id': COMPUTE_SERVICE_ID,
                'resource_family': 'Storage',
                'resource_group': 'StorageImage',
                'usage_type': 'OnDemand',
                'regions': ['eu'],
                'pricing': {
                    'usage_unit': 'GiBy.mo',
                    'tiers': [{'start_usage_amount': 0, 'unit_price': 0.05}],
                },
            },
            {
                'sku_id': 'EGRESS-PREMIUM-EW1',
                'description': 'Network Internet Egress from Belgium to EMEA',
                'service_id': COMPUTE_SERVICE_ID,
                'resource_family': 'Network',
                'resource_group': 'PremiumInternetEgress',
                'usage_type': 'OnDemand',
                'regions': ['europe-west1'],
                'pricing': {
                    'usage_unit': 'GiBy',
                    'tiers': [
                        {'start_usage_amount': 0, 'unit_price': 0.12},
                        {'start_usage_amount': 1024, 'unit_price': 0.11},
                    ],
                },
            },
        ],
        'machine_shapes': [
            {'name': 'n1-standard-1', 'cpu_count': 1, 'memory_mb': 3840},
        ],
    }


@pytest.fixture
def sample_catalog(catalog_data):
    """In-memory price catalog built from catalog_data."""
    return InMemoryPriceCatalog.from_dict(catalog_data)


@pytest.fixture(autouse=True)
def fresh_circuit_breakers():
    """Every test starts with closed circuits."""
    reset_circuit_breakers()
    yield
    reset_circuit_breakers()


@pytest.fixture
def client():
    """FastAPI test client."""
    from assetcost.main import app
    return TestClient(app)


@pytest.fixture
def instance_payload():
    """Factory for instance payloads."""
    return instance_data
