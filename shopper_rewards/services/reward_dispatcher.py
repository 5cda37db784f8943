"""
Reward Dispatcher.

Pays out pending rewards through a PaymentGateway and applies the gateway's
asynchronous result/timeout callbacks.

Dispatch flow per reward:
1. Write a pending PaymentTransaction and commit it (audit trail survives a crash)
2. Call the gateway exactly once
3. initiated + reward sent, or failed + reward failed

Callbacks find the transaction by the gateway's ConversationID only. Terminal
writes are conditional on the transaction still being open, so when a result
and a timeout race the first one wins and the second is a no-op.
"""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import PaymentStatus, PaymentTransaction, Reward, RewardStatus
from ..utils.exceptions import ValidationError
from .safaricom_service import PaymentGateway, PaymentRequest, PaymentResult

logger = logging.getLogger(__name__)

SKIP_STATUSES = (RewardStatus.SENT.value, RewardStatus.VERIFIED.value)

TIMEOUT_MESSAGE = 'Payment request timed out - no response from Safaricom'
EXPIRED_MESSAGE = 'No result received from the payment gateway before the cutoff'


class RewardDispatcher:
    """
    Usage:
        dispatcher = RewardDispatcher(get_payment_gateway())
        results = dispatcher.dispatch(['reward-id-1', 'reward-id-2'])
    """

    def __init__(self, gateway: Optional[PaymentGateway] = None):
        self.gateway = gateway

    # ==================== Dispatch ====================

    def dispatch(self, reward_ids: Any) -> List[Dict[str, Any]]:
        """
        Pay out the selected rewards.

        One reward failing never aborts the rest of the batch.

        Returns:
            One entry per reward id: {reward_id, status: success|failed|skipped,
            message, transaction_id?, originator_conversation_id?, error_code?}

        Raises:
            ValidationError: reward_ids is not a non-empty list of strings
        """
        if not isinstance(reward_ids, list) or not reward_ids:
            raise ValidationError('Reward IDs array is required and must not be empty', 'reward_ids')
        if not all(isinstance(rid, str) for rid in reward_ids):
            raise ValidationError('All reward IDs must be strings', 'reward_ids')

        return [self._dispatch_one(reward_id) for reward_id in reward_ids]

    def _dispatch_one(self, reward_id: str) -> Dict[str, Any]:
        reward = db.session.get(Reward, reward_id)
        if not reward:
            logger.warning('Reward not found for dispatch: %s', reward_id)
            return {'reward_id': reward_id, 'status': 'failed', 'message': 'Reward not found'}

        if reward.status in SKIP_STATUSES:
            return {'reward_id': reward_id, 'status': 'skipped', 'message': f'Reward already {reward.status}'}

        try:
            transaction = PaymentTransaction(
                reward_id=reward.id,
                phone_number=reward.customer_phone,
                amount=reward.amount,
                status=PaymentStatus.PENDING.value,
                attempts=0,
            )
            db.session.add(transaction)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error('Failed to create payment transaction for reward %s: %s', reward_id, e)
            return {'reward_id': reward_id, 'status': 'failed', 'message': 'Failed to create transaction record'}

        customer_name = reward.customer_phone
        if reward.feedback and reward.feedback.customer_name:
            customer_name = reward.feedback.customer_name

        error_detail = None
        try:
            result = self.gateway.issue_payment(PaymentRequest(
                phone_number=reward.customer_phone,
                amount=reward.amount,
                reward_id=reward.id,
                customer_name=customer_name,
            ))
        except Exception as e:
            logger.exception('Payment failed for reward %s', reward_id)
            error_detail = str(e)
            result = PaymentResult(success=False, message='Payment processing error', error_code='EXCEPTION')

        try:
            self._record_attempt(transaction, reward, result, error_detail)
        except SQLAlchemyError:
            if result.success:
                logger.error(
                    'Payment sent but not recorded for reward %s: ConversationID %s, OriginatorConversationID %s',
                    reward_id, result.transaction_id, result.originator_conversation_id
                )
                return {
                    'reward_id': reward_id,
                    'status': 'failed',
                    'message': 'Payment was sent but could not be recorded; reconcile before retrying',
                    'transaction_id': result.transaction_id,
                    'error_code': 'RECORD_FAILED',
                }
            return {
                'reward_id': reward_id,
                'status': 'failed',
                'message': 'Payment failed and could not be recorded',
                'error_code': result.error_code or 'RECORD_FAILED',
            }

        entry = {
            'reward_id': reward_id,
            'status': 'success' if result.success else 'failed',
            'message': result.message,
        }
        if result.success:
            entry['transaction_id'] = result.transaction_id
            entry['originator_conversation_id'] = result.originator_conversation_id
        elif result.error_code:
            entry['error_code'] = result.error_code
        return entry

    def _record_attempt(
        self,
        transaction: PaymentTransaction,
        reward: Reward,
        result: PaymentResult,
        error_detail: Optional[str] = None
    ) -> None:
        now = datetime.utcnow()
        transaction_id = transaction.id

        transaction.attempts = (transaction.attempts or 0) + 1
        transaction.last_attempt_at = now
        transaction.transaction_id = result.transaction_id
        transaction.originator_conversation_id = result.originator_conversation_id

        if result.success:
            transaction.status = PaymentStatus.INITIATED.value
            reward.status = RewardStatus.SENT.value
            reward.sent_at = now
        else:
            transaction.status = PaymentStatus.FAILED.value
            transaction.error_message = error_detail or result.message
            transaction.result_code = result.error_code
            reward.status = RewardStatus.FAILED.value

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Failed to record payment attempt for transaction %s', transaction_id)
            raise

    # ==================== Callbacks ====================

    def handle_result(
        self,
        conversation_id: str,
        result_code: Any,
        result_desc: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Apply a result callback. ResultCode 0 is success.

        Returns:
            {found, applied, status}
        """
        succeeded = str(result_code).strip() == '0'
        status = PaymentStatus.COMPLETED.value if succeeded else PaymentStatus.FAILED.value
        error_message = None if succeeded else (result_desc or 'Payment failed')

        return self._finish(conversation_id, status, str(result_code), error_message)

    def handle_timeout(self, conversation_id: str) -> Dict[str, Any]:
        """Apply a queue-timeout callback: the payment failed."""
        return self._finish(conversation_id, PaymentStatus.FAILED.value, None, TIMEOUT_MESSAGE)

    def _find_transaction(self, conversation_id: str) -> Optional[PaymentTransaction]:
        """By ConversationID, falling back to OriginatorConversationID."""
        if not conversation_id:
            return None
        return (
            PaymentTransaction.query.filter_by(transaction_id=conversation_id).first()
            or PaymentTransaction.query.filter_by(originator_conversation_id=conversation_id).first()
        )

    def _finish(
        self,
        conversation_id: str,
        status: str,
        result_code: Optional[str],
        error_message: Optional[str]
    ) -> Dict[str, Any]:
        transaction = self._find_transaction(conversation_id)
        if not transaction:
            logger.warning('No payment transaction for ConversationID %s', conversation_id)
            return {'found': False, 'applied': False, 'status': None}

        try:
            applied = self._apply_terminal(transaction, status, result_code, error_message)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        if applied:
            logger.info('Payment %s -> %s', conversation_id, status)
        else:
            logger.info('Payment %s already %s, ignoring %s', conversation_id, transaction.status, status)

        return {'found': True, 'applied': applied, 'status': status if applied else transaction.status}

    def _apply_terminal(
        self,
        transaction: PaymentTransaction,
        status: str,
        result_code: Optional[str],
        error_message: Optional[str]
    ) -> bool:
        """
        Move an open transaction to a terminal status and mirror it onto the reward.
        Does not commit.

        Returns:
            False if the transaction was already terminal
        """
        values = {PaymentTransaction.status: status}
        if result_code is not None:
            values[PaymentTransaction.result_code] = result_code
        if error_message is not None:
            values[PaymentTransaction.error_message] = error_message

        updated = PaymentTransaction.query.filter(
            PaymentTransaction.id == transaction.id,
            PaymentTransaction.status.in_(PaymentStatus.open_states())
        ).update(values, synchronize_session=False)

        if updated != 1:
            db.session.refresh(transaction)
            return False

        if transaction.reward_id:
            if status == PaymentStatus.COMPLETED.value:
                reward_values = {Reward.status: RewardStatus.SENT.value, Reward.sent_at: datetime.utcnow()}
            else:
                reward_values = {Reward.status: RewardStatus.FAILED.value}

            Reward.query.filter(
                Reward.id == transaction.reward_id,
                Reward.status != RewardStatus.VERIFIED.value
            ).update(reward_values, synchronize_session=False)

        db.session.expire(transaction)
        return True

    # ==================== Maintenance ====================

    def expire_stale(self, older_than: timedelta) -> int:
        """
        Fail transactions that have sat open longer than `older_than` with no
        callback, along with their rewards.

        Returns:
            Number of transactions expired
        """
        cutoff = datetime.utcnow() - older_than
        stale = PaymentTransaction.query.filter(
            PaymentTransaction.status.in_(PaymentStatus.open_states()),
            PaymentTransaction.created_at < cutoff
        ).all()

        expired = 0
        try:
            for transaction in stale:
                if self._apply_terminal(transaction, PaymentStatus.FAILED.value, None, EXPIRED_MESSAGE):
                    expired += 1
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        if expired:
            logger.info('Expired %d stale payment transactions (cutoff %s)', expired, cutoff.isoformat())
        return expired
