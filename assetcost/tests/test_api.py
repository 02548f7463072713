"""
Tests for the HTTP API.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, Mock, patch

from assetcost.middleware.request_size_limiter import RequestSizeLimiterMiddleware
from assetcost.pricing.cloud_billing_client import CloudBillingError
from assetcost.services.cost_lines import REPORT_HEADER


@pytest.fixture
def sample_body(sample_records):
    """Sample records as a JSON request body."""
    return {'records': [record.to_dict() for record in sample_records]}


def test_health(client):
    """Health endpoint responds."""
    response = client.get('/health')

    assert response.status_code == 200
    assert response.json() == {'status': 'ok'}


def test_build_graph(client, sample_body):
    """Records are reconciled into a graph with a summary."""
    response = client.post('/api/assets/graph', json=sample_body)

    assert response.status_code == 200
    data = response.json()
    assert data['status'] == 'ok'
    assert data['summary']['instances'] == 2
    assert data['graph']['project_name'] == 'demo-project'
    assert data['graph']['networks'][0]['subnetworks'][0]['tier'] == 'PREMIUM'


def test_build_graph_with_text_payloads(client, sample_records):
    """Payloads may be sent as JSON text."""
    import json

    body = {'records': [
        {'name': r.name, 'type': r.type, 'payload': json.dumps(r.payload)} for r in sample_records
    ]}

    response = client.post('/api/assets/graph', json=body)

    assert response.status_code == 200
    assert response.json()['summary']['networks'] == 1


def test_orphans_are_listed(client, record_factory):
    """Orphaned records are returned in the error detail."""
    route = record_factory('Route', 'global/routes/lost', {
        'name': 'lost',
        'network': 'projects/demo-project/global/networks/nowhere',
    })

    response = client.post('/api/assets/graph', json={'records': [route.to_dict()]})

    assert response.status_code == 422
    detail = response.json()['detail']
    assert detail['error'] == 'OrphanedReference'
    assert len(detail['orphans']) == 1
    assert 'lost' in detail['orphans'][0]


def test_malformed_payload(client):
    """Unreadable payloads are rejected with the record named."""
    body = {'records': [{
        'name': '//compute.googleapis.com/projects/p/zones/z/instances/broken',
        'type': 'compute.googleapis.com/Instance',
        'payload': '{not json',
    }]}

    response = client.post('/api/assets/graph', json=body)

    assert response.status_code == 422
    detail = response.json()['detail']
    assert detail['error'] == 'MalformedPayload'
    assert 'broken' in detail['message']


def test_estimate(client, sample_body, catalog_data):
    """Estimates return the report header, rows and totals."""
    response = client.post('/api/cost/estimate', json=dict(sample_body, catalog=catalog_data, projected_hours=360))

    assert response.status_code == 200
    data = response.json()
    assert data['header'] == REPORT_HEADER
    assert len(data['rows']) == 6
    assert all(len(row) == len(REPORT_HEADER) for row in data['rows'])
    assert data['report']['total_ceiling_cost'] == 103.22
    assert data['report']['total_projected_cost'] == 53.72
    assert data['report']['unpriced'] == []


def test_estimate_rejects_zero_conversion_rate(client, sample_body, catalog_data):
    """A catalog SKU with a zero conversion rate is a bad request, not a server error."""
    catalog_data['skus'][2]['pricing']['conversion_rate'] = 0

    response = client.post('/api/cost/estimate', json=dict(sample_body, catalog=catalog_data))

    assert response.status_code == 400
    assert 'conversion rate' in response.json()['detail']


def test_estimate_rejects_bad_uptime(client, sample_body):
    """Projected uptime is limited to a month."""
    response = client.post('/api/cost/estimate', json=dict(sample_body, projected_hours=1000))

    assert response.status_code == 422


def test_estimate_loads_billing_services(client, sample_body):
    """Requested billing services are loaded through the Cloud Billing client."""
    billing = Mock()
    billing.load_into = AsyncMock(return_value=0)

    with patch('assetcost.api.assets.CloudBillingClient', return_value=billing):
        response = client.post('/api/cost/estimate', json=dict(sample_body, billing_services=['6F81-5844-456A']))

    assert response.status_code == 200
    billing.load_into.assert_awaited_once()
    assert billing.load_into.await_args.args[1] == '6F81-5844-456A'
    assert len(response.json()['report']['unpriced']) == 5


def test_estimate_billing_failure(client, sample_body):
    """Cloud Billing failures are reported as a bad gateway."""
    billing = Mock()
    billing.load_into = AsyncMock(side_effect=CloudBillingError('circuit breaker is open'))

    with patch('assetcost.api.assets.CloudBillingClient', return_value=billing):
        response = client.post('/api/cost/estimate', json=dict(sample_body, billing_services=['6F81-5844-456A']))

    assert response.status_code == 502


@pytest.fixture
def limited_client():
    """Small app behind a strict request size limiter."""
    app = FastAPI()
    app.add_middleware(RequestSizeLimiterMiddleware, max_body_bytes=2048, max_records=2)

    @app.post('/api/assets/graph')
    async def graph():
        return {'status': 'ok'}

    @app.post('/other')
    async def other():
        return {'status': 'ok'}

    return TestClient(app)


def test_record_limit(limited_client):
    """Too many records are rejected before reconciliation."""
    records = [{'name': f'r{i}', 'type': '', 'payload': {}} for i in range(3)]

    assert limited_client.post('/api/assets/graph', json={'records': records[:2]}).status_code == 200
    response = limited_client.post('/api/assets/graph', json={'records': records})
    assert response.status_code == 413
    assert response.json()['error'] == 'request_too_large'


def test_body_limit(limited_client):
    """Oversized bodies are rejected on protected routes only."""
    body = {'records': [], 'padding': 'x' * 4096}

    assert limited_client.post('/api/assets/graph', json=body).status_code == 413
    assert limited_client.post('/other', json=body).status_code == 200
