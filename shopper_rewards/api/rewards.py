"""
Rewards API endpoints (admin).

Handles:
- Reward listing with status filter
- Single reward with its payment attempts
- Dispatching selected rewards to the payment gateway
"""
from flask import Blueprint, request, jsonify

from ..extensions import db
from ..middleware import require_admin
from ..models import Reward, RewardStatus, PaymentTransaction
from ..services.reward_dispatcher import RewardDispatcher
from ..services.safaricom_service import get_payment_gateway
from ..utils.exceptions import RewardNotFoundError, ValidationError

rewards_bp = Blueprint('rewards', __name__)


@rewards_bp.route('', methods=['GET'])
@require_admin
def list_rewards():
    """
    List rewards, newest first.

    Query params:
        status: pending, sent, failed or verified
    """
    status = request.args.get('status')
    if status and status not in RewardStatus.values():
        raise ValidationError('Invalid status filter', 'status')

    query = Reward.query
    if status:
        query = query.filter_by(status=status)

    rewards = query.order_by(Reward.created_at.desc()).all()

    return jsonify({
        'rewards': [r.to_dict() for r in rewards],
        'count': len(rewards),
    })


@rewards_bp.route('/<reward_id>', methods=['GET'])
@require_admin
def get_reward(reward_id):
    """One reward plus every payment attempt made for it."""
    reward = db.session.get(Reward, reward_id)
    if not reward:
        raise RewardNotFoundError(reward_id)

    attempts = reward.payment_transactions.order_by(PaymentTransaction.created_at.desc()).all()

    return jsonify({
        **reward.to_dict(),
        'payment_transactions': [t.to_dict() for t in attempts],
    })


@rewards_bp.route('/dispatch', methods=['POST'])
@require_admin
def dispatch_rewards():
    """
    Pay out the selected rewards.

    JSON body:
        reward_ids: Non-empty list of reward ids

    Returns:
        Per-reward results; one failure does not stop the rest
    """
    data = request.get_json(silent=True) or {}
    reward_ids = data.get('reward_ids')

    # Reject bad input before gateway credentials are required
    if not isinstance(reward_ids, list) or not reward_ids:
        raise ValidationError('Reward IDs array is required and must not be empty', 'reward_ids')

    results = RewardDispatcher(get_payment_gateway()).dispatch(reward_ids)

    return jsonify({
        'success': True,
        'processed': len(reward_ids),
        'results': results,
    })
