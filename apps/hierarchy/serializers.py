"""
Hierarchy Serializers
"""
from rest_framework import serializers

from apps.core.constants import parse_level
from apps.core.serializers import DateRangeParamsSerializer


class DescendantsParamsSerializer(serializers.Serializer):
    strict = serializers.BooleanField(required=False, default=False)


class SearchParamsSerializer(DateRangeParamsSerializer):
    """Downline search filters on top of the reporting window."""
    q = serializers.CharField(required=False, allow_blank=True, default='')
    level = serializers.CharField(required=False, allow_blank=True, default='')
    limit = serializers.IntegerField(required=False, min_value=1)

    def validate_level(self, value):
        if value and parse_level(value) is None:
            raise serializers.ValidationError(f'Unknown commission level: {value}')
        return value
