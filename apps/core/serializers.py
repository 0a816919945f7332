"""
Core Serializers for the Commission Engine

Query parameter serializers shared by the hierarchy, payouts and commission
endpoints. Response bodies are built by the selectors.
"""
from django.utils import timezone
from rest_framework import serializers

from .dates import DateRange

PERIOD_CHOICES = ['day', 'week', 'month', 'mtd', 'ytd']


class DateRangeParamsSerializer(serializers.Serializer):
    """
    Reporting window from query params.

    Either start_date and end_date, or a period (day, week, month, mtd, ytd)
    anchored on ``date`` (default today). ``date_range`` in validated_data is
    None when neither is given.
    """
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    period = serializers.ChoiceField(choices=PERIOD_CHOICES, required=False)
    date = serializers.DateField(required=False)

    def validate(self, attrs):
        start = attrs.get('start_date')
        end = attrs.get('end_date')
        period = attrs.get('period')

        if (start is None) != (end is None):
            raise serializers.ValidationError('start_date and end_date must be given together')
        if start is not None and period:
            raise serializers.ValidationError('Use either start_date/end_date or period, not both')

        if start is not None:
            if end < start:
                raise serializers.ValidationError({'end_date': ['end_date is before start_date']})
            attrs['date_range'] = DateRange(start, end)
        elif period:
            anchor = attrs.get('date') or timezone.localdate()
            attrs['date_range'] = {
                'day': DateRange.for_day,
                'week': DateRange.for_week,
                'month': DateRange.for_month,
                'mtd': DateRange.month_to_date,
                'ytd': DateRange.year_to_date,
            }[period](anchor)
        else:
            attrs['date_range'] = None
        return attrs


class WeekParamsSerializer(serializers.Serializer):
    """Any date inside the requested week; defaults to the current week."""
    week_start = serializers.DateField(required=False)


def validated_params(serializer_class, request) -> dict:
    """Validate request.query_params, raising DRF ValidationError on bad input."""
    serializer = serializer_class(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    return serializer.validated_data
