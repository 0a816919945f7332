"""
Commissions API Views

Provides commission split endpoints:
- POST /api/commissions/deals/<deal_id>/splits - Split (or re-split) a deal
- GET /api/commissions/deals/<deal_id>/splits - Persisted splits for a deal
- GET /api/commissions/deals/<deal_id>/reconcile - Reconcile a deal's splits
- POST /api/commissions/preview - What-if split preview
- GET /api/commissions/report - Company commission report
"""
import logging

from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.dates import DateRange
from apps.core.serializers import DateRangeParamsSerializer, validated_params

from .selectors import company_commission_report, get_deal_splits, reconcile_deal_splits
from .serializers import PreviewRequestSerializer, SplitModeSerializer
from .services import preview_splits, resplit_deal, split_deal

logger = logging.getLogger(__name__)


class DealSplitsView(APIView):
    """
    GET /api/commissions/deals/<deal_id>/splits
    POST /api/commissions/deals/<deal_id>/splits

    POST computes and stores the deal's splits, replacing any existing rows.
    Pass ?mode=resplit after a premium, type or carrier edit to keep the
    original beneficiaries and percents and only refresh the pool.
    """

    def get(self, request, deal_id):
        return Response(get_deal_splits(deal_id))

    def post(self, request, deal_id):
        mode = validated_params(SplitModeSerializer, request)['mode']
        if mode == 'resplit':
            result = resplit_deal(deal_id)
        else:
            result = split_deal(deal_id)
        return Response(result.as_dict(), status=status.HTTP_201_CREATED)


class DealReconcileView(APIView):
    """
    GET /api/commissions/deals/<deal_id>/reconcile

    Returns 200 with a summary when the deal's splits reconcile, 409 with the
    list of problems when they do not.
    """

    def get(self, request, deal_id):
        return Response(reconcile_deal_splits(deal_id))


class SplitPreviewView(APIView):
    """
    POST /api/commissions/preview

    Body:
        agent_id: Writing agent
        annual_premium: Premium of the prospective deal
        insurance_type: LIFE or HEALTH (default LIFE)
        carrier_id: Optional carrier
    """

    def post(self, request):
        serializer = PreviewRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        preview = preview_splits(
            agent_id=data['agent_id'],
            annual_premium=data['annual_premium'],
            insurance_type=data['insurance_type'],
            carrier_id=data.get('carrier_id'),
        )
        return Response(preview.as_dict())


class CommissionReportView(APIView):
    """
    GET /api/commissions/report

    Query params:
        start_date, end_date: Reporting window (YYYY-MM-DD)
        period: day, week, month, mtd or ytd anchored on date (default mtd)
    """

    def get(self, request):
        params = validated_params(DateRangeParamsSerializer, request)
        date_range = params['date_range'] or DateRange.month_to_date(timezone.localdate())
        return Response(company_commission_report(date_range))
