"""
Tests for the Rewards API endpoints.

The payment gateway is always mocked.
"""
import json
import pytest
from unittest.mock import patch

from shopper_rewards.extensions import db
from shopper_rewards.models import PaymentTransaction, RewardStatus


class TestListRewards:
    """Tests for GET /api/rewards."""

    def test_requires_admin_key(self, client):
        assert client.get('/api/rewards').status_code == 401

    def test_list(self, client, auth_headers, sample_reward):
        response = client.get('/api/rewards', headers=auth_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['count'] == 1
        assert data['rewards'][0]['id'] == sample_reward.id
        assert data['rewards'][0]['amount'] == 30.0

    def test_status_filter(self, client, auth_headers, sample_reward):
        pending = client.get('/api/rewards?status=pending', headers=auth_headers).get_json()
        sent = client.get('/api/rewards?status=sent', headers=auth_headers).get_json()

        assert pending['count'] == 1
        assert sent['count'] == 0

    def test_invalid_status_filter(self, client, auth_headers, app):
        response = client.get('/api/rewards?status=paid', headers=auth_headers)
        assert response.status_code == 400
        assert response.get_json()['error']['code'] == 'INVALID_STATUS'


class TestGetReward:
    """Tests for GET /api/rewards/<id>."""

    def test_get_with_attempts(self, client, auth_headers, sample_reward):
        db.session.add(PaymentTransaction(
            reward_id=sample_reward.id,
            phone_number=sample_reward.customer_phone,
            amount=sample_reward.amount,
            status='failed',
            error_message='Payment request timed out - no response from Safaricom',
            attempts=1,
        ))
        db.session.commit()

        response = client.get(f'/api/rewards/{sample_reward.id}', headers=auth_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['id'] == sample_reward.id
        assert len(data['payment_transactions']) == 1
        assert data['payment_transactions'][0]['status'] == 'failed'

    def test_not_found(self, client, auth_headers, app):
        response = client.get('/api/rewards/missing', headers=auth_headers)
        assert response.status_code == 404
        assert response.get_json()['error']['code'] == 'REWARD_NOT_FOUND'


class TestDispatchRewards:
    """Tests for POST /api/rewards/dispatch."""

    @patch('shopper_rewards.api.rewards.get_payment_gateway')
    def test_dispatch(self, mock_get_gateway, client, auth_headers, sample_reward, mock_gateway):
        mock_get_gateway.return_value = mock_gateway

        response = client.post(
            '/api/rewards/dispatch',
            headers=auth_headers,
            data=json.dumps({'reward_ids': [sample_reward.id]})
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data['success'] is True
        assert data['processed'] == 1
        assert data['results'][0]['status'] == 'success'
        assert data['results'][0]['transaction_id'] == 'AG_20261018_00001'

        reward = client.get(f'/api/rewards/{sample_reward.id}', headers=auth_headers).get_json()
        assert reward['status'] == RewardStatus.SENT.value
        assert reward['payment_transactions'][0]['status'] == 'initiated'

    @patch('shopper_rewards.api.rewards.get_payment_gateway')
    def test_mixed_batch(self, mock_get_gateway, client, auth_headers, sample_reward, mock_gateway):
        mock_get_gateway.return_value = mock_gateway

        data = client.post(
            '/api/rewards/dispatch',
            headers=auth_headers,
            data=json.dumps({'reward_ids': [sample_reward.id, 'missing']})
        ).get_json()

        assert data['processed'] == 2
        assert [r['status'] for r in data['results']] == ['success', 'failed']

    @pytest.mark.parametrize('body', [{}, {'reward_ids': []}, {'reward_ids': 'abc'}])
    @patch('shopper_rewards.api.rewards.get_payment_gateway')
    def test_bad_reward_ids(self, mock_get_gateway, client, auth_headers, app, body):
        response = client.post('/api/rewards/dispatch', headers=auth_headers, data=json.dumps(body))

        assert response.status_code == 400
        mock_get_gateway.assert_not_called()

    def test_gateway_not_configured(self, client, auth_headers, sample_reward):
        response = client.post(
            '/api/rewards/dispatch',
            headers=auth_headers,
            data=json.dumps({'reward_ids': [sample_reward.id]})
        )

        assert response.status_code == 500
        assert PaymentTransaction.query.count() == 0

    def test_requires_admin_key(self, client, sample_reward):
        response = client.post(
            '/api/rewards/dispatch',
            headers={'Content-Type': 'application/json'},
            data=json.dumps({'reward_ids': [sample_reward.id]})
        )
        assert response.status_code == 401
