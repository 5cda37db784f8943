"""
Feedback intake validation.

Every check here is pure or read-only: nothing in this module writes to the
database. The redemption transaction calls the same checks again after it
has resolved the QR code, so a client that skips this layer gains nothing.
"""
import math
import re
from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Dict, List, Optional

from flask import current_app

from ..models import Feedback, QRCode
from ..utils.exceptions import (
    DuplicateSubmissionError,
    TokenAlreadyUsedError,
    ValidationError,
)

# Kenyan mobile numbers: +254 or 0, then 7 or 1, then 8 digits
PHONE_PATTERN = re.compile(r'^(\+254|0)(7|1)\d{8}$')

MIN_RATING = 1
MAX_RATING = 5
MAX_NAME_LENGTH = 100
MAX_COMMENT_LENGTH = 2000

DEFAULT_BOUNDS = {
    'north': -1.1864,
    'south': -1.4564,
    'east': 37.0833,
    'west': 36.6667,
}
DEFAULT_REGION = 'nairobi'

TOKEN_FIELDS = ('token', 'qr_id', 't')

_SCALAR_TYPES = (str, int, float, bool, type(None))


def normalize_phone(phone: Any) -> Optional[str]:
    """
    Canonical +254XXXXXXXXX form of a Kenyan mobile number.

    Returns None if the number does not match the accepted pattern.
    """
    if not isinstance(phone, str):
        return None
    compact = re.sub(r'\s', '', phone)
    match = PHONE_PATTERN.match(compact)
    if not match:
        return None
    return '+254' + compact[len(match.group(1)):]


def validate_phone_number(phone: Any) -> str:
    canonical = normalize_phone(phone)
    if canonical is None:
        raise ValidationError('Invalid phone number format', 'customer_phone')
    return canonical


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def clean_location(location: Any) -> Dict[str, Any]:
    """
    Keep only {latitude, longitude, region} of a location mapping.

    Raises:
        ValidationError: Not a mapping, non-numeric coordinates or a non-string region
    """
    if (
        not isinstance(location, dict)
        or not _is_number(location.get('latitude'))
        or not _is_number(location.get('longitude'))
        or not isinstance(location.get('region'), str)
    ):
        raise ValidationError('Invalid location', 'location')

    return {
        'latitude': location['latitude'],
        'longitude': location['longitude'],
        'region': location['region'],
    }


def is_location_valid(
    location: Any,
    bounds: Optional[Dict[str, float]] = None,
    region: Optional[str] = None
) -> bool:
    """
    Check a {latitude, longitude, region} mapping against the serviceable area.

    The bounding box is inclusive on every edge and the region label must
    contain the expected metro name, case-insensitively.
    """
    if not isinstance(location, dict):
        return False

    bounds = bounds or DEFAULT_BOUNDS
    region = (region or DEFAULT_REGION).lower()

    latitude = location.get('latitude')
    longitude = location.get('longitude')
    label = location.get('region')

    if not _is_number(latitude) or not _is_number(longitude) or not isinstance(label, str):
        return False

    return (
        bounds['south'] <= latitude <= bounds['north']
        and bounds['west'] <= longitude <= bounds['east']
        and region in label.lower()
    )


def validate_location(location: Any) -> Dict[str, Any]:
    location = clean_location(location)
    config = current_app.config
    if not is_location_valid(location, config.get('GEOFENCE_BOUNDS'), config.get('GEOFENCE_REGION')):
        raise ValidationError('Invalid location', 'location')
    return location


def validate_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError('Rating must be between 1 and 5', 'rating')
    if rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationError('Rating must be between 1 and 5', 'rating')
    return rating


def _validate_text(value: Any, name: str, max_length: int) -> Optional[str]:
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{name} must be a string', name)
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f'{name} must be at most {max_length} characters', name)
    return value or None


def validate_custom_answers(answers: Any) -> Dict[str, Any]:
    """
    Custom answers are an open mapping of string keys to primitive values
    (str, int, float, bool, null) or flat lists of them.
    """
    if answers is None:
        return {}
    if not isinstance(answers, dict):
        raise ValidationError('custom_answers must be an object', 'custom_answers')

    for key, value in answers.items():
        if not isinstance(key, str):
            raise ValidationError('custom_answers keys must be strings', 'custom_answers')
        if isinstance(value, list):
            if not all(isinstance(item, _SCALAR_TYPES) for item in value):
                raise ValidationError(f'Unsupported value for custom answer "{key}"', 'custom_answers')
        elif not isinstance(value, _SCALAR_TYPES):
            raise ValidationError(f'Unsupported value for custom answer "{key}"', 'custom_answers')

    return dict(answers)


def _present(value: Any) -> bool:
    return value is not None and value != '' and value != {}


def missing_fields(data: Dict[str, Any]) -> List[str]:
    """Names of required submission fields that are absent or empty."""
    missing = [name for name in ('campaign_id', 'sku_id', 'customer_phone') if not _present(data.get(name))]
    if not any(_present(data.get(name)) for name in TOKEN_FIELDS):
        missing.append('token')
    if not _present(data.get('location')):
        missing.append('location')
    return missing


@dataclass
class FeedbackSubmission:
    """A feedback payload that has passed every stateless check."""
    campaign_id: str
    sku_id: str
    customer_phone: str
    identifier: str
    location: Dict[str, Any]
    rating: int
    customer_name: Optional[str] = None
    comment: Optional[str] = None
    custom_answers: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Any) -> 'FeedbackSubmission':
        """
        Build a submission from a request body.

        Raises:
            ValidationError: Missing fields or any invalid value
        """
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object')

        if missing_fields(data):
            raise ValidationError('Missing required fields')

        identifier = next(data[name] for name in TOKEN_FIELDS if _present(data.get(name)))
        if not isinstance(identifier, str):
            raise ValidationError('QR token must be a string', 'token')

        for name in ('campaign_id', 'sku_id'):
            if not isinstance(data[name], str):
                raise ValidationError(f'{name} must be a string', name)

        submission = cls(
            campaign_id=data['campaign_id'],
            sku_id=data['sku_id'],
            customer_phone=data['customer_phone'],
            identifier=identifier.strip(),
            location=data['location'],
            rating=data.get('rating'),
            customer_name=data.get('customer_name'),
            comment=data.get('comment'),
            custom_answers=data.get('custom_answers'),
        )
        return validate_submission(submission)


def validate_submission(submission: FeedbackSubmission) -> FeedbackSubmission:
    """Run the stateless checks and normalize the submission in place."""
    submission.customer_phone = validate_phone_number(submission.customer_phone)
    submission.location = validate_location(submission.location)
    submission.rating = validate_rating(submission.rating)
    submission.customer_name = _validate_text(submission.customer_name, 'customer_name', MAX_NAME_LENGTH)
    submission.comment = _validate_text(submission.comment, 'comment', MAX_COMMENT_LENGTH)
    submission.custom_answers = validate_custom_answers(submission.custom_answers)
    return submission


def check_duplicates(submission: FeedbackSubmission, code: Optional[QRCode]) -> None:
    """
    Reject a submission whose code is already used, or whose phone number
    already has feedback for this campaign (under any code).

    Raises:
        TokenAlreadyUsedError
        DuplicateSubmissionError
    """
    if code is not None and code.is_used:
        raise TokenAlreadyUsedError()

    existing = Feedback.query.filter_by(
        campaign_id=submission.campaign_id,
        customer_phone=submission.customer_phone
    ).first()
    if existing:
        raise DuplicateSubmissionError()
