"""
Commission Serializers
"""
from decimal import Decimal

from rest_framework import serializers

from apps.core.constants import INSURANCE_TYPES


class PreviewRequestSerializer(serializers.Serializer):
    """Input for a what-if split preview."""
    agent_id = serializers.UUIDField()
    annual_premium = serializers.DecimalField(
        max_digits=15, decimal_places=2, min_value=Decimal('0.01')
    )
    insurance_type = serializers.ChoiceField(choices=INSURANCE_TYPES, default='LIFE')
    carrier_id = serializers.UUIDField(required=False, allow_null=True)


class SplitModeSerializer(serializers.Serializer):
    mode = serializers.ChoiceField(choices=['split', 'resplit'], default='split')
