"""
Safaricom B2C callback endpoints.

Safaricom posts the final outcome of every accepted B2C request to the
ResultURL, or to the QueueTimeOutURL if the request expired in its queue.
Both are acknowledged with {"ResultCode": 0, "ResultDesc": ...} once the
payload is understood, including for ConversationIDs we do not know, so
Safaricom stops retrying them.
"""
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..services.reward_dispatcher import RewardDispatcher

safaricom_webhook_bp = Blueprint('safaricom_webhook', __name__)


def _ack(description: str):
    return jsonify({'ResultCode': 0, 'ResultDesc': description})


def _reject(description: str, status: int = 400):
    return jsonify({'ResultCode': 1, 'ResultDesc': description}), status


@safaricom_webhook_bp.route('/result', methods=['POST'])
def handle_result():
    """
    B2C result callback.

    Payload:
        {"Result": {"ResultCode": 0, "ResultDesc": "...", "ConversationID": "...",
                    "OriginatorConversationID": "...", "ResultParameters": {...}}}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _reject('Invalid callback data')

    result = data.get('Result') if isinstance(data.get('Result'), dict) else data
    conversation_id = result.get('ConversationID') or result.get('OriginatorConversationID')
    result_code = result.get('ResultCode')

    if not conversation_id:
        current_app.logger.warning('Safaricom result callback without ConversationID')
        return _reject('Missing ConversationID')

    if result_code is None:
        current_app.logger.warning(f'Safaricom result callback without ResultCode: {conversation_id}')
        return _reject('Missing ResultCode')

    current_app.logger.info(
        f'Safaricom result callback {conversation_id}: {result_code} {result.get("ResultDesc")}'
    )

    try:
        outcome = RewardDispatcher().handle_result(conversation_id, result_code, result.get('ResultDesc'))
    except SQLAlchemyError as e:
        current_app.logger.error(f'Error processing Safaricom result callback: {e}')
        return _reject('Temporary error, please retry', 500)

    if not outcome['found']:
        return _ack('Acknowledged but transaction not found')
    return _ack('Success')


@safaricom_webhook_bp.route('/timeout', methods=['POST'])
def handle_timeout():
    """
    B2C queue-timeout callback. The payment is treated as failed.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return _reject('Invalid callback data')

    result = data.get('Result') if isinstance(data.get('Result'), dict) else data
    conversation_id = result.get('ConversationID') or result.get('OriginatorConversationID')

    if not conversation_id:
        current_app.logger.warning('Safaricom timeout callback without ConversationID')
        return _ack('Acknowledged but ConversationID missing')

    current_app.logger.info(f'Safaricom timeout callback {conversation_id}')

    try:
        outcome = RewardDispatcher().handle_timeout(conversation_id)
    except SQLAlchemyError as e:
        current_app.logger.error(f'Error processing Safaricom timeout callback: {e}')
        return _reject('Temporary error, please retry', 500)

    if not outcome['found']:
        return _ack('Acknowledged but transaction not found')
    return _ack('Timeout handled')
