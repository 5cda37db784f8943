"""
QR Code Service.

Issues redemption codes for a campaign and renders their images:
- Campaign-wide generation, split evenly across every linked SKU
- Batched inserts so one failed batch never aborts the run
- Preview codes (one per SKU, batch tag 0) for admin spot-checks
- On-demand PNG rendering from the stored URL (images are never stored)
- Ledger stats and single-use verification outside the feedback flow

Usage:
    service = QRService()
    results = service.generate_for_campaign(campaign_id, 'https://shop.example.com')
"""
import base64
import io
import logging
from dataclasses import dataclass, field, asdict
from typing import List, Dict, Any, Optional, Tuple

import qrcode
from flask import current_app
from qrcode.constants import ERROR_CORRECT_H
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Campaign, QRCode
from ..utils.exceptions import (
    CampaignNotFoundError,
    QRCodeNotFoundError,
    QRGenerationError,
    ValidationError,
)
from ..utils.tokens import TokenKind, classify, generate_token
from .redemption_ledger import RedemptionLedger

logger = logging.getLogger(__name__)

PREVIEW_BATCH_NUMBER = 0

# Rendering: ~300px PNG, high error correction so printed codes survive smudges
QR_BOX_SIZE = 10
QR_BORDER = 2
QR_DARK = '#1a1a1a'
QR_LIGHT = '#ffffff'


@dataclass
class QRGenerationResult:
    """Outcome of generating codes for one SKU."""
    sku_id: str
    batch_number: int
    total_generated: int = 0
    errors: List[str] = field(default_factory=list)
    qr_codes: List[Dict[str, str]] = field(default_factory=list)  # [{id, url}]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_scan_url(base_url: str, campaign_id: str, sku_id: str, raw_token: str) -> str:
    """The URL printed inside the QR image."""
    return f'{base_url.rstrip("/")}/feedback?campaign={campaign_id}&s={sku_id}&t={raw_token}&qr=true'


def render_qr_image(url: str) -> bytes:
    """Render a scannable PNG for a redemption URL."""
    qr = qrcode.QRCode(
        version=None,
        error_correction=ERROR_CORRECT_H,
        box_size=QR_BOX_SIZE,
        border=QR_BORDER,
    )
    qr.add_data(url)
    qr.make(fit=True)

    img = qr.make_image(fill_color=QR_DARK, back_color=QR_LIGHT)
    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()


def render_qr_data_url(url: str) -> str:
    """PNG as a data: URL, for embedding straight into admin pages."""
    encoded = base64.b64encode(render_qr_image(url)).decode()
    return f'data:image/png;base64,{encoded}'


class QRService:
    """Service for issuing, rendering and checking redemption codes."""

    def __init__(self, ledger: Optional[RedemptionLedger] = None):
        self.ledger = ledger or RedemptionLedger()

    # ==================== Generation ====================

    def _campaign_variants(self, campaign_id: str):
        campaign = db.session.get(Campaign, campaign_id)
        if not campaign:
            raise CampaignNotFoundError(campaign_id)

        if not campaign.products:
            raise ValidationError(
                'No products linked to campaign. Please add products to the campaign first.',
                'products'
            )

        variants = campaign.variants()
        if not variants:
            raise ValidationError('No SKUs found in products. Please add SKUs to products first.', 'skus')

        return campaign, variants

    def generate_for_campaign(self, campaign_id: str, base_url: str) -> List[QRGenerationResult]:
        """
        Generate the campaign's full allocation of codes.

        QR_TOTAL_CODES is split evenly (floor, minimum 1) across every SKU of
        every product linked to the campaign. Each SKU gets its own batch tag.

        Args:
            campaign_id: Campaign to issue codes for
            base_url: Origin the scan URLs point at

        Returns:
            One QRGenerationResult per SKU (partial failures listed in errors)

        Raises:
            CampaignNotFoundError: Unknown campaign
            ValidationError: No linked products or no SKUs
            QRGenerationError: Not a single code could be persisted
        """
        campaign, variants = self._campaign_variants(campaign_id)

        total_codes = current_app.config.get('QR_TOTAL_CODES', 1680)
        codes_per_variant = max(1, total_codes // len(variants))
        batch_number = self.ledger.next_batch_number(campaign_id)

        logger.info(
            'Generating QR codes for campaign %s: %d SKUs x %d codes',
            campaign_id, len(variants), codes_per_variant
        )

        results = []
        for sku in variants:
            result = self.generate_for_sku(sku.id, campaign.id, base_url, batch_number, codes_per_variant)
            logger.info(
                'SKU %s: generated %d, errors %d',
                sku.id, result.total_generated, len(result.errors)
            )
            results.append(result)
            batch_number += 1

        if sum(r.total_generated for r in results) == 0:
            raise QRGenerationError('Failed to generate QR codes', results)

        return results

    def generate_for_sku(
        self,
        sku_id: str,
        campaign_id: str,
        base_url: str,
        batch_number: int,
        count: int
    ) -> QRGenerationResult:
        """
        Generate `count` codes for one SKU in fixed-size batches.

        Each batch is its own transaction. A failed batch is recorded in
        result.errors and generation moves on to the next one.
        """
        batch_size = current_app.config.get('QR_BATCH_SIZE', 100)
        result = QRGenerationResult(sku_id=sku_id, batch_number=batch_number)

        for offset in range(0, count, batch_size):
            chunk = min(batch_size, count - offset)
            rows = []
            for _ in range(chunk):
                raw_token, token_hash = generate_token()
                rows.append({
                    'sku_id': sku_id,
                    'campaign_id': campaign_id,
                    'url': build_scan_url(base_url, campaign_id, sku_id, raw_token),
                    'token_hash': token_hash,
                    'batch_number': batch_number,
                })

            batch_index = offset // batch_size + 1
            try:
                inserted = self.ledger.insert_batch(rows)
            except SQLAlchemyError as e:
                logger.error('Failed to insert QR batch %d for SKU %s: %s', batch_index, sku_id, e)
                result.errors.append(f'Failed to insert batch {batch_index} ({chunk} codes)')
                continue

            result.total_generated += len(inserted)
            result.qr_codes.extend(inserted)

        return result

    def generate_preview(self, campaign_id: str, base_url: str) -> Tuple[List[Dict[str, Any]], List[str]]:
        """
        Persist one code per SKU under the preview batch tag and return it
        with its rendered image.

        Returns:
            (previews, errors): one preview per persisted SKU, one error string per failed SKU

        Raises:
            QRGenerationError: No preview code could be persisted
        """
        _, variants = self._campaign_variants(campaign_id)

        previews = []
        errors = []
        for sku in variants:
            raw_token, token_hash = generate_token()
            url = build_scan_url(base_url, campaign_id, sku.id, raw_token)
            try:
                code = self.ledger.insert_batch([{
                    'sku_id': sku.id,
                    'campaign_id': campaign_id,
                    'url': url,
                    'token_hash': token_hash,
                    'batch_number': PREVIEW_BATCH_NUMBER,
                }])[0]
            except SQLAlchemyError as e:
                logger.error('Failed to persist preview QR code for SKU %s: %s', sku.id, e)
                errors.append(f'Failed to create preview for SKU {sku.id}')
                continue

            previews.append({
                'id': code['id'],
                'sku_id': sku.id,
                'sku_name': sku.display_name,
                'url': url,
                'qr_code': render_qr_data_url(url),
            })

        if not previews:
            raise QRGenerationError('Failed to generate preview QR codes', errors)

        return previews, errors

    # ==================== Lookup & rendering ====================

    def get_code(self, qr_id: str) -> QRCode:
        """Look up a code by ledger id (raw tokens are not accepted here)."""
        if not qr_id or classify(qr_id) is not TokenKind.OPAQUE_ID:
            raise QRCodeNotFoundError()
        code = db.session.get(QRCode, qr_id)
        if not code:
            raise QRCodeNotFoundError()
        return code

    def get_image(self, qr_id: str) -> bytes:
        """Redraw a code's PNG from its stored URL."""
        return render_qr_image(self.get_code(qr_id).url)

    def get_stats(self, campaign_id: str) -> Dict[str, Any]:
        if not db.session.get(Campaign, campaign_id):
            raise CampaignNotFoundError(campaign_id)
        return self.ledger.stats(campaign_id)

    # ==================== Verification ====================

    def verify(self, identifier: str, location: Optional[Dict[str, Any]] = None) -> bool:
        """
        Single-use scan validation outside the feedback flow.

        Consumes the code with the same compare-and-set the redemption
        transaction uses.

        Returns:
            True if this call consumed an unused code
        """
        code = self.ledger.resolve(identifier)
        if not code or code.is_used:
            return False

        try:
            consumed = self.ledger.mark_used(code.id, location=location)
            if consumed:
                db.session.commit()
            else:
                db.session.rollback()
        except SQLAlchemyError:
            db.session.rollback()
            raise

        return consumed
