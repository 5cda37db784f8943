"""
QR code API endpoints.

Handles:
- Campaign-wide generation and preview codes (admin)
- Standalone single-use verification (public)
- Ledger stats, listing, lookup, image rendering and CSV export (admin)
"""
import csv
import io
from datetime import datetime
from urllib.parse import urlparse

from flask import Blueprint, Response, request, jsonify

from ..extensions import db
from ..middleware import require_admin
from ..models import Campaign
from ..services.feedback_validation import clean_location
from ..services.qr_service import QRService
from ..services.redemption_ledger import RedemptionLedger
from ..utils.exceptions import CampaignNotFoundError, ValidationError

qr_codes_bp = Blueprint('qr_codes', __name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _require_campaign_id(value) -> str:
    if not value or not isinstance(value, str):
        raise ValidationError('Campaign ID is required', 'campaign_id')
    return value


def _origin(url) -> str:
    """scheme://host[:port] of an absolute http(s) URL, or ValidationError."""
    if not isinstance(url, str):
        raise ValidationError('base_url must be an absolute http(s) URL', 'base_url')
    parsed = urlparse(url.strip())
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ValidationError('base_url must be an absolute http(s) URL', 'base_url')
    return f'{parsed.scheme}://{parsed.netloc}{parsed.path.rstrip("/")}'


def _parse_bool(value):
    if value is None or value == '':
        return None
    lowered = value.lower()
    if lowered in ('true', '1', 'yes'):
        return True
    if lowered in ('false', '0', 'no'):
        return False
    raise ValidationError('is_used must be true or false', 'is_used')


@qr_codes_bp.route('/generate', methods=['POST'])
@require_admin
def generate_qr_codes():
    """
    Generate the campaign's QR codes.

    JSON body:
        campaign_id: Campaign to generate for
        base_url: Origin the scan URLs should point at

    Returns:
        201 with one result per SKU; failed batches are listed in each result's errors
    """
    data = _json_body()
    campaign_id = _require_campaign_id(data.get('campaign_id'))
    if not data.get('base_url'):
        raise ValidationError('Missing required fields: campaign_id and base_url', 'base_url')
    base_url = _origin(data['base_url'])

    results = QRService().generate_for_campaign(campaign_id, base_url)

    return jsonify({
        'success': True,
        'results': [r.to_dict() for r in results],
        'total_generated': sum(r.total_generated for r in results),
        'has_errors': any(r.errors for r in results),
    }), 201


@qr_codes_bp.route('/preview', methods=['POST'])
@require_admin
def preview_qr_codes():
    """
    Create one preview code per SKU and return it with its image.

    JSON body:
        campaign_id: Campaign to preview
        base_url: Origin for the scan URLs (or url, whose origin is used)
    """
    data = _json_body()
    campaign_id = _require_campaign_id(data.get('campaign_id'))

    if data.get('base_url'):
        base_url = _origin(data['base_url'])
    elif data.get('url'):
        parsed = urlparse(str(data['url']))
        if parsed.scheme not in ('http', 'https') or not parsed.netloc:
            raise ValidationError('base_url could not be determined', 'base_url')
        base_url = f'{parsed.scheme}://{parsed.netloc}'
    else:
        raise ValidationError('Missing required fields for preview', 'base_url')

    previews, errors = QRService().generate_preview(campaign_id, base_url)

    return jsonify({
        'qr_code': previews[0]['qr_code'],
        'results': previews,
        'errors': errors,
    }), 201


@qr_codes_bp.route('/verify', methods=['POST'])
def verify_qr_code():
    """
    Single-use scan check outside the feedback flow.

    A valid unused code is consumed by this call.

    JSON body:
        token (or t, or qr_id): Raw token or ledger id
        location: Optional {latitude, longitude, region} stored with the scan
    """
    data = _json_body()
    identifier = data.get('token') or data.get('t') or data.get('qr_id')
    if not identifier or not isinstance(identifier, str):
        raise ValidationError('QR token or ID is required', 'token')

    location = data.get('location')
    if location is not None:
        location = clean_location(location)

    is_valid = QRService().verify(identifier, location)
    return jsonify({'is_valid': is_valid})


@qr_codes_bp.route('/stats', methods=['GET'])
@require_admin
def qr_code_stats():
    """Used/unused counts plus per-region and per-SKU breakdowns."""
    campaign_id = _require_campaign_id(request.args.get('campaign_id'))
    return jsonify(QRService().get_stats(campaign_id))


@qr_codes_bp.route('', methods=['GET'])
@require_admin
def list_qr_codes():
    """
    Paginated listing of a campaign's codes.

    Query params:
        campaign_id: Required
        page: Page number (default 1)
        per_page: Page size (default 50, max 1000)
        is_used: Filter by redemption state (true/false)
    """
    campaign_id = _require_campaign_id(request.args.get('campaign_id'))
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', DEFAULT_PAGE_SIZE, type=int)
    is_used = _parse_bool(request.args.get('is_used'))

    if page < 1 or per_page < 1 or per_page > MAX_PAGE_SIZE:
        raise ValidationError('Invalid page or per_page parameters')

    if not db.session.get(Campaign, campaign_id):
        raise CampaignNotFoundError(campaign_id)

    pagination = RedemptionLedger().list_codes(campaign_id, is_used).paginate(
        page=page, per_page=per_page, error_out=False
    )

    return jsonify({
        'qr_codes': [code.to_dict() for code in pagination.items],
        'total': pagination.total,
        'page': page,
        'per_page': per_page,
        'pages': pagination.pages,
        'has_more': page < pagination.pages,
    })


@qr_codes_bp.route('/<qr_id>', methods=['GET'])
@require_admin
def get_qr_code(qr_id):
    """One code by ledger id."""
    code = QRService().get_code(qr_id)
    return jsonify({
        **code.to_dict(),
        'used_by': code.used_by,
        'sku': code.sku.to_dict() if code.sku else None,
    })


@qr_codes_bp.route('/<qr_id>/image', methods=['GET'])
@require_admin
def get_qr_code_image(qr_id):
    """PNG redrawn from the code's stored URL."""
    png = QRService().get_image(qr_id)
    return Response(
        png,
        mimetype='image/png',
        headers={'Content-Disposition': f'inline; filename=qr-{qr_id}.png'}
    )


@qr_codes_bp.route('/export/csv', methods=['GET'])
@require_admin
def export_qr_codes_csv():
    """
    Export a campaign's codes as CSV.

    Query params:
        campaign_id: Required
        is_used: Optional filter (true/false)
    """
    campaign_id = _require_campaign_id(request.args.get('campaign_id'))
    is_used = _parse_bool(request.args.get('is_used'))

    if not db.session.get(Campaign, campaign_id):
        raise CampaignNotFoundError(campaign_id)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(['QR ID', 'URL', 'SKU ID', 'Batch', 'Status', 'Used At', 'Region', 'Created At'])

    for code in RedemptionLedger().list_codes(campaign_id, is_used):
        writer.writerow([
            code.id,
            code.url,
            code.sku_id or '',
            code.batch_number,
            'Used' if code.is_used else 'Unused',
            code.used_at.isoformat() if code.used_at else '',
            (code.location or {}).get('region', ''),
            code.created_at.isoformat() if code.created_at else '',
        ])

    filename = f'qr-codes-{campaign_id}-{datetime.utcnow().strftime("%Y%m%d%H%M%S")}.csv'
    output.seek(0)
    return Response(
        output.getvalue(),
        mimetype='text/csv',
        headers={
            'Content-Disposition': f'attachment; filename={filename}',
            'Content-Type': 'text/csv; charset=utf-8'
        }
    )
