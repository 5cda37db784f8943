"""
Tests for the Safaricom B2C callback endpoints.
"""
import json
import pytest
from unittest.mock import patch

from sqlalchemy.exc import OperationalError

from shopper_rewards.extensions import db
from shopper_rewards.models import PaymentTransaction, Reward
from shopper_rewards.services.reward_dispatcher import RewardDispatcher


CONVERSATION_ID = 'AG_20261018_00001'


@pytest.fixture
def initiated_payment(sample_reward, mock_gateway):
    """sample_reward dispatched and waiting for its callback."""
    RewardDispatcher(mock_gateway).dispatch([sample_reward.id])
    return sample_reward


def _result_payload(result_code=0, conversation_id=CONVERSATION_ID, desc='The service request is processed successfully.'):
    return {
        'Result': {
            'ResultType': 0,
            'ResultCode': result_code,
            'ResultDesc': desc,
            'OriginatorConversationID': '12345-67890-1',
            'ConversationID': conversation_id,
            'TransactionID': 'NLJ41HAY6Q',
        }
    }


def _post(client, path, payload):
    return client.post(
        f'/webhook/safaricom/{path}',
        headers={'Content-Type': 'application/json'},
        data=json.dumps(payload)
    )


def _status(reward_id):
    db.session.expire_all()
    [transaction] = PaymentTransaction.query.filter_by(reward_id=reward_id).all()
    return transaction.status, db.session.get(Reward, reward_id).status


class TestResultCallback:
    """Tests for POST /webhook/safaricom/result."""

    def test_success(self, client, initiated_payment):
        response = _post(client, 'result', _result_payload())

        assert response.status_code == 200
        assert response.get_json() == {'ResultCode': 0, 'ResultDesc': 'Success'}
        assert _status(initiated_payment.id) == ('completed', 'sent')

    def test_failure(self, client, initiated_payment):
        response = _post(client, 'result', _result_payload(2001, desc='The initiator information is invalid.'))

        assert response.get_json()['ResultCode'] == 0
        assert _status(initiated_payment.id) == ('failed', 'failed')

    def test_flat_payload(self, client, initiated_payment):
        response = _post(client, 'result', _result_payload()['Result'])

        assert response.status_code == 200
        assert _status(initiated_payment.id) == ('completed', 'sent')

    def test_duplicate_delivery(self, client, initiated_payment):
        _post(client, 'result', _result_payload())
        response = _post(client, 'result', _result_payload(1, desc='Insufficient balance'))

        assert response.get_json() == {'ResultCode': 0, 'ResultDesc': 'Success'}
        assert _status(initiated_payment.id) == ('completed', 'sent')

    def test_unknown_conversation(self, client, app):
        response = _post(client, 'result', _result_payload(conversation_id='AG_unknown'))

        assert response.status_code == 200
        assert response.get_json()['ResultDesc'] == 'Acknowledged but transaction not found'

    def test_missing_result_code(self, client, initiated_payment):
        payload = _result_payload()
        del payload['Result']['ResultCode']

        response = _post(client, 'result', payload)

        assert response.status_code == 400
        assert _status(initiated_payment.id) == ('initiated', 'sent')

    def test_missing_conversation_id(self, client, app):
        response = _post(client, 'result', {'Result': {'ResultCode': 0}})
        assert response.status_code == 400

    def test_not_json(self, client, app):
        response = client.post('/webhook/safaricom/result', data='<xml/>', headers={'Content-Type': 'text/xml'})
        assert response.status_code == 400
        assert response.get_json() == {'ResultCode': 1, 'ResultDesc': 'Invalid callback data'}

    def test_database_error_asks_for_retry(self, client, initiated_payment):
        with patch.object(RewardDispatcher, 'handle_result', side_effect=OperationalError('UPDATE', {}, Exception('locked'))):
            response = _post(client, 'result', _result_payload())

        assert response.status_code == 500
        assert response.get_json()['ResultDesc'] == 'Temporary error, please retry'


class TestTimeoutCallback:
    """Tests for POST /webhook/safaricom/timeout."""

    def test_timeout(self, client, initiated_payment):
        response = _post(client, 'timeout', _result_payload())

        assert response.get_json() == {'ResultCode': 0, 'ResultDesc': 'Timeout handled'}
        assert _status(initiated_payment.id) == ('failed', 'failed')

    def test_timeout_after_success(self, client, initiated_payment):
        _post(client, 'result', _result_payload())
        _post(client, 'timeout', _result_payload())

        assert _status(initiated_payment.id) == ('completed', 'sent')

    def test_missing_conversation_id(self, client, app):
        response = _post(client, 'timeout', {'Result': {}})

        assert response.status_code == 200
        assert response.get_json()['ResultDesc'] == 'Acknowledged but ConversationID missing'

    def test_unknown_conversation(self, client, app):
        response = _post(client, 'timeout', {'ConversationID': 'AG_unknown'})
        assert response.get_json()['ResultDesc'] == 'Acknowledged but transaction not found'
