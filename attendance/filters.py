from dataclasses import dataclass
from datetime import date
from typing import Optional

from rest_framework.exceptions import ValidationError


@dataclass(frozen=True)
class DateRange:
    """Inclusive bounds over a date column; a missing bound is open."""
    gte: Optional[date] = None
    lte: Optional[date] = None

    def as_lookups(self, field='date'):
        lookups = {}
        if self.gte is not None:
            lookups[f'{field}__gte'] = self.gte
        if self.lte is not None:
            lookups[f'{field}__lte'] = self.lte
        return lookups

    def contains(self, day):
        if self.gte is not None and day < self.gte:
            return False
        if self.lte is not None and day > self.lte:
            return False
        return True


def parse_date(value, param):
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError({param: f"Invalid date format: {value}. Use YYYY-MM-DD"})


def date_range_filter(start_date=None, end_date=None):
    """
    Build the date predicate for list endpoints.

    Neither bound gives an unbounded range, both give an inclusive range,
    and a single bound gives ``>= start`` or ``<= end``.
    """
    gte = parse_date(start_date, 'startDate') if start_date else None
    lte = parse_date(end_date, 'endDate') if end_date else None
    return DateRange(gte=gte, lte=lte)


def date_range_from_request(request):
    params = request.query_params
    return date_range_filter(params.get('startDate'), params.get('endDate'))
