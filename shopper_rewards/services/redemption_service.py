"""
Redemption Service.

Turns a validated feedback submission into a used QR code, a verified
feedback row and a pending reward, all in one database transaction:

1. Resolve the code (raw token or ledger id)
2. Check it belongs to the submitted campaign/SKU and is unused
3. Re-run the intake checks server-side
4. Compare-and-set the code to used
5. Insert the verified feedback
6. Insert a pending reward priced from the SKU
7. Commit

Any failure rolls the whole unit back, so a code is never left used without
its feedback and reward (and vice versa).
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Feedback, ProductSKU, Reward, RewardStatus, Sentiment
from ..utils.exceptions import (
    ConflictError,
    DuplicateSubmissionError,
    QRCodeNotFoundError,
    TokenAlreadyUsedError,
    ValidationError,
)
from .feedback_validation import FeedbackSubmission, check_duplicates, validate_submission
from .redemption_ledger import RedemptionLedger

logger = logging.getLogger(__name__)


@dataclass
class RedemptionOutcome:
    feedback: Feedback
    reward: Reward

    def to_dict(self) -> Dict[str, Any]:
        return {
            'feedback': self.feedback.to_dict(),
            'reward': {
                'id': self.reward.id,
                'amount': float(self.reward.amount),
                'description': self.reward.reward_name,
                'status': self.reward.status,
            },
        }


class RedemptionService:
    """
    The only writer of feedback and rewards.

    Usage:
        submission = FeedbackSubmission.from_payload(request.get_json())
        outcome = RedemptionService().redeem(submission)
    """

    def __init__(self, ledger: Optional[RedemptionLedger] = None):
        self.ledger = ledger or RedemptionLedger()

    def redeem(self, submission: FeedbackSubmission) -> RedemptionOutcome:
        """
        Redeem a QR code for feedback and a reward.

        Raises:
            ValidationError: Invalid submission, mismatched code or unpriced SKU
            QRCodeNotFoundError: No code for the token/id
            TokenAlreadyUsedError: Code already used, including a lost race
            DuplicateSubmissionError: Phone already has feedback for the campaign
        """
        validate_submission(submission)

        try:
            code = self.ledger.resolve(submission.identifier)
            if not code:
                raise QRCodeNotFoundError()

            if code.campaign_id != submission.campaign_id or code.sku_id != submission.sku_id:
                raise ValidationError('QR code does not match this campaign and product', 'token')

            check_duplicates(submission, code)

            if not self.ledger.mark_used(
                code.id,
                used_by=submission.customer_phone,
                location=submission.location
            ):
                # Another request consumed the code after we read it
                raise TokenAlreadyUsedError()

            feedback = Feedback(
                campaign_id=submission.campaign_id,
                sku_id=submission.sku_id,
                qr_code_id=code.id,
                customer_phone=submission.customer_phone,
                customer_name=submission.customer_name,
                rating=submission.rating,
                comment=submission.comment,
                sentiment=Sentiment.from_rating(submission.rating).value,
                custom_answers=submission.custom_answers,
                location=submission.location,
                verified=True,
            )
            db.session.add(feedback)
            db.session.flush()

            reward = self._create_reward(feedback)

            db.session.commit()

        except IntegrityError as e:
            db.session.rollback()
            logger.warning('Redemption hit a storage constraint: %s', e.orig)
            if 'customer_phone' in str(e.orig) or 'uq_feedback_campaign_phone' in str(e.orig):
                raise DuplicateSubmissionError()
            raise ConflictError('This submission conflicts with an existing redemption')

        except Exception:
            db.session.rollback()
            raise

        logger.info(
            'Redeemed QR code %s: feedback %s, reward %s (%s)',
            code.id, feedback.id, reward.id, reward.amount
        )
        return RedemptionOutcome(feedback=feedback, reward=reward)

    def _create_reward(self, feedback: Feedback) -> Reward:
        """Price the reward from the SKU record, the only source of reward amounts."""
        sku = db.session.get(ProductSKU, feedback.sku_id)
        if not sku or sku.reward_amount is None:
            raise ValidationError('No reward is configured for this product', 'sku_id')

        reward = Reward(
            feedback_id=feedback.id,
            customer_phone=feedback.customer_phone,
            amount=sku.reward_amount,
            reward_name=sku.reward_description,
            status=RewardStatus.PENDING.value,
        )
        db.session.add(reward)
        db.session.flush()
        return reward
