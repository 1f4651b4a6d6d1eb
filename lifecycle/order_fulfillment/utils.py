"""
Small helpers shared by the fulfillment services.
"""

import datetime
import uuid

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

from .exceptions import NotFoundException, ValidationException


def coerce_datetime(value, field: str = 'date'):
    """Turn a datetime, date or ISO string into an aware datetime. ``None`` passes through."""
    if value is None or value == '':
        return None
    if isinstance(value, str):
        parsed = parse_datetime(value)
        if parsed is None:
            parsed_date = parse_date(value)
            if parsed_date is None:
                raise ValidationException(f"Invalid {field}: {value}", {field: value})
            parsed = datetime.datetime.combine(parsed_date, datetime.time.min)
        value = parsed
    elif isinstance(value, datetime.date) and not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, datetime.time.min)
    if timezone.is_naive(value):
        value = timezone.make_aware(value)
    return value


def coerce_date(value, field: str = 'date'):
    """Turn a date, datetime or ISO string into a date. ``None`` passes through."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    parsed = parse_date(str(value))
    if parsed is None:
        parsed_datetime = parse_datetime(str(value))
        if parsed_datetime is None:
            raise ValidationException(f"Invalid {field}: {value}", {field: value})
        parsed = parsed_datetime.date()
    return parsed


def parse_uuid(value):
    """Return ``value`` as a UUID, or ``None`` when it is not one."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def get_scoped(queryset, entity_type: str, object_id, org_id, lock: bool = False):
    """
    Fetch one row by ``(id, org_id)``.

    Raises:
        NotFoundException: If the id is malformed or no row matches within the organization
    """
    pk = parse_uuid(object_id)
    org_pk = parse_uuid(org_id)
    if pk is None or org_pk is None:
        raise NotFoundException(entity_type, object_id)
    if lock:
        queryset = queryset.select_for_update()
    instance = queryset.filter(id=pk, org_id=org_pk).first()
    if instance is None:
        raise NotFoundException(entity_type, object_id)
    return instance
