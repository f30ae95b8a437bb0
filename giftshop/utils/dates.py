# giftshop/utils/dates.py
from datetime import date, datetime

from giftshop.domain.errors import ValidationError

_FORMATS = ("%Y-%m-%d", "%d/%m/%Y")


def normalize_date(value) -> date:
    """Sprowadza date z formularza admina (yyyy-MM-dd, dd/MM/yyyy, ISO date-time) do `date`."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Niepoprawna data: {value!r}")

    raw = value.strip()
    for fmt in _FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValidationError(f"Niepoprawna data: {value!r}") from None
