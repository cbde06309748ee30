from datetime import date, datetime

from services.errors import ValidationError

TIME_LABEL_MAX_LENGTH = 40


def normalize_booking_date(value) -> date:
    """
    Reduce a booking date to its calendar day.

    Accepts date/datetime objects, "YYYY-MM-DD" and ISO 8601 datetimes
    ("2024-06-01T10:00:00Z", "2024-06-01T00:00:00.000+02:00"). The day is
    taken as written; no timezone conversion happens.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("date is required")

    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD or an ISO 8601 datetime", date=value)


def normalize_time_label(value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("time is required")
    label = value.strip()
    if len(label) > TIME_LABEL_MAX_LENGTH:
        raise ValidationError(f"time must be at most {TIME_LABEL_MAX_LENGTH} characters")
    return label


def slot_key(day, time_label: str) -> str:
    # e.g. "2024-06-01-10:00"
    return f"{normalize_booking_date(day).isoformat()}-{time_label}"
