"""
Redemption ledger queries.

All reads and writes against the qr_codes table go through here. The one
mutation that matters, flipping is_used, is a single conditional UPDATE so
that two concurrent redemptions of the same code cannot both succeed:

    UPDATE qr_codes SET is_used = true, used_at = ..., ...
     WHERE id = :id AND is_used = false

Exactly one caller sees a row count of 1. No locks are held in-process.
"""
from datetime import datetime
from typing import Optional, List, Dict, Any

from sqlalchemy import func

from ..extensions import db
from ..models import QRCode
from ..utils.tokens import TokenKind, classify, hash_token


class RedemptionLedger:
    """Single source of truth for issued codes and their used/unused state."""

    def resolve(self, identifier: str) -> Optional[QRCode]:
        """
        Find a code by raw token or by ledger id.

        Args:
            identifier: Raw token from the QR URL, or a ledger UUID

        Returns:
            QRCode or None
        """
        if not identifier:
            return None

        identifier = identifier.strip()
        if classify(identifier) is TokenKind.RAW_TOKEN:
            return QRCode.query.filter_by(token_hash=hash_token(identifier)).first()
        return db.session.get(QRCode, identifier)

    def mark_used(
        self,
        qr_code_id: str,
        used_by: Optional[str] = None,
        location: Optional[Dict[str, Any]] = None
    ) -> bool:
        """
        Compare-and-set is_used from False to True.

        Does not commit; the caller owns the transaction boundary.

        Returns:
            True if this call performed the transition, False if the code was
            already used (or does not exist)
        """
        values = {
            QRCode.is_used: True,
            QRCode.used_at: datetime.utcnow(),
        }
        if used_by is not None:
            values[QRCode.used_by] = used_by
        if location is not None:
            values[QRCode.location] = location

        updated = QRCode.query.filter(
            QRCode.id == qr_code_id,
            QRCode.is_used.is_(False)
        ).update(values, synchronize_session=False)

        return updated == 1

    def insert_batch(self, rows: List[Dict[str, Any]]) -> List[Dict[str, str]]:
        """
        Persist a batch of unused codes and commit it.

        Returns:
            [{id, url}] for the inserted codes

        Raises:
            SQLAlchemyError: The batch was rolled back
        """
        codes = [QRCode(is_used=False, **row) for row in rows]
        try:
            db.session.add_all(codes)
            db.session.flush()
            inserted = [{'id': code.id, 'url': code.url} for code in codes]
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return inserted

    def next_batch_number(self, campaign_id: str) -> int:
        """First batch tag after every tag the campaign has used (0 is preview)."""
        highest = db.session.query(func.max(QRCode.batch_number)).filter(
            QRCode.campaign_id == campaign_id
        ).scalar()
        return (highest or 0) + 1

    def list_codes(self, campaign_id: str, is_used: Optional[bool] = None):
        """Query for a campaign's codes, newest first."""
        query = QRCode.query.filter_by(campaign_id=campaign_id)
        if is_used is not None:
            query = query.filter(QRCode.is_used.is_(is_used))
        return query.order_by(QRCode.created_at.desc(), QRCode.id)

    def stats(self, campaign_id: str) -> Dict[str, Any]:
        """Used/unused counts plus breakdowns by redemption region and SKU."""
        total = QRCode.query.filter_by(campaign_id=campaign_id).count()
        used = QRCode.query.filter_by(campaign_id=campaign_id, is_used=True).count()

        by_sku = dict(
            db.session.query(QRCode.sku_id, func.count(QRCode.id))
            .filter(QRCode.campaign_id == campaign_id)
            .group_by(QRCode.sku_id)
            .all()
        )

        by_region: Dict[str, int] = {}
        used_locations = db.session.query(QRCode.location).filter(
            QRCode.campaign_id == campaign_id,
            QRCode.is_used.is_(True)
        )
        for (location,) in used_locations:
            if not isinstance(location, dict):
                continue
            region = location.get('region')
            if region and isinstance(region, str):
                by_region[region] = by_region.get(region, 0) + 1

        return {
            'campaign_id': campaign_id,
            'total': total,
            'used': used,
            'unused': total - used,
            'by_region': by_region,
            'by_sku': by_sku,
        }
