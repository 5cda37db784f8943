"""
Feedback API endpoints.

Handles:
- Public feedback submission (redeems the QR code and creates the reward)
- Feedback listing (admin)
"""
from flask import Blueprint, request, jsonify

from ..models import Campaign, Feedback
from ..middleware import require_admin
from ..services.feedback_validation import FeedbackSubmission
from ..services.redemption_service import RedemptionService
from ..extensions import db
from ..utils.exceptions import CampaignNotFoundError

feedback_bp = Blueprint('feedback', __name__)


@feedback_bp.route('', methods=['POST'])
def submit_feedback():
    """
    Submit feedback for a scanned QR code.

    JSON body:
        campaign_id, sku_id, customer_phone: required
        token (or qr_id, or t): the code's raw token or ledger id
        location: {latitude, longitude, region}
        rating: 1-5
        customer_name, comment, custom_answers: optional

    Returns:
        201 with the created feedback and its reward summary
    """
    submission = FeedbackSubmission.from_payload(request.get_json(silent=True))
    outcome = RedemptionService().redeem(submission)

    return jsonify({
        'success': True,
        **outcome.to_dict(),
    }), 201


@feedback_bp.route('', methods=['GET'])
@require_admin
def list_feedback():
    """
    List verified feedback, newest first.

    Query params:
        campaign_id: Restrict to one campaign
    """
    campaign_id = request.args.get('campaign_id')

    query = Feedback.query
    if campaign_id:
        if not db.session.get(Campaign, campaign_id):
            raise CampaignNotFoundError(campaign_id)
        query = query.filter_by(campaign_id=campaign_id)

    feedback = query.order_by(Feedback.created_at.desc()).all()

    return jsonify({
        'feedback': [
            {
                **f.to_dict(),
                'sku': f.sku.to_dict() if f.sku else None,
                'reward': f.reward.to_dict() if f.reward else None,
            }
            for f in feedback
        ],
        'count': len(feedback),
    })
