"""
Integration Tests for Commission Splits

Covers split_deal / resplit_deal / preview_splits / reconciliation against a
real database, and the /api/commissions endpoints.
"""
from datetime import date
from decimal import Decimal

import pytest

from apps.commissions.selectors import company_commission_report, get_deal_splits, reconcile_deal_splits
from apps.commissions.services import preview_splits, resolve_fyc_rate, resplit_deal, split_deal
from apps.core.dates import DateRange
from apps.core.exceptions import (
    CycleDetectedError,
    EngineError,
    InactiveAgentError,
    InconsistentSplitError,
    UnknownDealError,
)
from apps.core.models import CommissionSplit
from tests.factories import (
    CarrierFactory,
    CarrierRateFactory,
    CommissionSplitFactory,
    DealFactory,
    UserFactory,
)


def rows_for(deal):
    return list(
        CommissionSplit.objects
        .filter(deal=deal)
        .order_by('-beneficiary_level')
        .values_list('beneficiary_id', 'role', 'percent', 'amount')
    )


@pytest.mark.django_db
class TestSplitDeal:
    """split_deal persists the creation-time split set."""

    def test_reference_scenario_is_persisted(self, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('10000.00'))

        result = split_deal(deal.id)

        assert result.kind == 'persisted'
        assert rows_for(deal) == [
            (owner.id, 'OVERRIDE_LEVEL_2', 30, Decimal('3000.00')),
            (manager.id, 'OVERRIDE_LEVEL_1', 30, Decimal('3000.00')),
            (agent.id, 'AGENT', 70, Decimal('7000.00')),
        ]
        split = CommissionSplit.objects.get(deal=deal, beneficiary=agent)
        assert split.pool_amount == Decimal('10000.00')
        assert split.fyc_rate == Decimal('1.0')
        assert split.beneficiary_level == 70

    def test_splitting_twice_replaces_rows(self, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('4321.00'))

        split_deal(deal.id)
        first = rows_for(deal)
        again = split_deal(deal.id)

        assert rows_for(deal) == first
        assert CommissionSplit.objects.filter(deal=deal).count() == 3
        assert again.replaced == 3

    def test_owner_selling_personally_gets_one_split(self, owner):
        deal = DealFactory(agent=owner, annual_premium=Decimal('1000.00'))

        split_deal(deal.id)

        assert rows_for(deal) == [(owner.id, 'AGENT', 130, Decimal('1300.00'))]

    def test_inactive_agent_writes_nothing(self, manager):
        agent = UserFactory(commission_level=70, upline=manager, status='ON_LEAVE')
        deal = DealFactory(agent=agent)

        with pytest.raises(InactiveAgentError):
            split_deal(deal.id)

        assert not CommissionSplit.objects.filter(deal=deal).exists()

    def test_failed_split_keeps_previous_rows(self, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('1000.00'))
        split_deal(deal.id)
        before = rows_for(deal)

        agent.status = 'TERMINATED'
        agent.save()
        with pytest.raises(InactiveAgentError):
            split_deal(deal.id)

        assert rows_for(deal) == before

    def test_upline_cycle_is_rejected(self):
        a = UserFactory(commission_level=100)
        b = UserFactory(commission_level=110, upline=a)
        a.upline = b
        a.save()
        writer = UserFactory(commission_level=70, upline=a)
        deal = DealFactory(agent=writer)

        with pytest.raises(CycleDetectedError):
            split_deal(deal.id)

        assert not CommissionSplit.objects.filter(deal=deal).exists()

    def test_unknown_deal(self, user_id):
        with pytest.raises(UnknownDealError):
            split_deal(user_id)

    def test_upline_depth_is_capped(self, settings):
        settings.COMMISSION_MAX_UPLINE_DEPTH = 2
        top = UserFactory(commission_level=130)
        middle = UserFactory(commission_level=80, upline=top)
        near = UserFactory(commission_level=80, upline=middle)
        writer = UserFactory(commission_level=70, upline=near)
        deal = DealFactory(agent=writer, annual_premium=Decimal('100.00'))

        split_deal(deal.id)

        # the owner is three hops up and out of reach
        assert {row[0] for row in rows_for(deal)} == {writer.id, near.id}

    def test_house_policy_writes_a_house_split(self, settings, agent, manager):
        house = UserFactory(first_name='House', commission_level=130)
        manager.upline = None
        manager.save()
        settings.COMMISSION_UNCLAIMED_POLICY = 'house'
        settings.COMMISSION_HOUSE_ACCOUNT_ID = str(house.id)
        deal = DealFactory(agent=agent, annual_premium=Decimal('1000.00'))

        split_deal(deal.id)

        house_row = CommissionSplit.objects.get(deal=deal, role='HOUSE')
        assert house_row.beneficiary_id == house.id
        assert house_row.percent == 30
        assert house_row.amount == Decimal('300.00')

    def test_house_account_with_its_own_split_is_a_policy_error(self, settings, agent, manager):
        manager.upline = None
        manager.save()
        settings.COMMISSION_UNCLAIMED_POLICY = 'house'
        settings.COMMISSION_HOUSE_ACCOUNT_ID = str(manager.id)
        deal = DealFactory(agent=agent, annual_premium=Decimal('1000.00'))

        with pytest.raises(EngineError) as excinfo:
            split_deal(deal.id)

        assert excinfo.value.code == 'bad_policy'
        assert not CommissionSplit.objects.filter(deal=deal).exists()

    def test_missing_house_account_is_a_policy_error(self, settings, agent, user_id):
        settings.COMMISSION_UNCLAIMED_POLICY = 'house'
        settings.COMMISSION_HOUSE_ACCOUNT_ID = str(user_id)
        deal = DealFactory(agent=agent, annual_premium=Decimal('1000.00'))

        with pytest.raises(EngineError) as excinfo:
            split_deal(deal.id)

        assert excinfo.value.code == 'bad_policy'
        assert not CommissionSplit.objects.filter(deal=deal).exists()

    def test_house_row_is_listed_last(self, settings, agent, manager):
        house = UserFactory(first_name='House', commission_level=130)
        manager.upline = None
        manager.save()
        settings.COMMISSION_UNCLAIMED_POLICY = 'house'
        settings.COMMISSION_HOUSE_ACCOUNT_ID = str(house.id)
        deal = DealFactory(agent=agent, annual_premium=Decimal('1000.00'))
        split_deal(deal.id)

        splits = get_deal_splits(deal.id)['splits']

        assert [split['role'] for split in splits] == ['AGENT', 'OVERRIDE_LEVEL_1', 'HOUSE']


@pytest.mark.django_db
class TestRates:

    def test_default_health_rate(self, agent):
        assert resolve_fyc_rate(agent.id, None, 'HEALTH') == Decimal('0.5')

    def test_carrier_rate_by_insurance_type(self, agent):
        carrier = CarrierFactory(life_fyc=Decimal('0.9000'), health_fyc=Decimal('0.4000'))

        assert resolve_fyc_rate(agent.id, carrier.id, 'LIFE') == Decimal('0.9')
        assert resolve_fyc_rate(agent.id, carrier.id, 'HEALTH') == Decimal('0.4')

    def test_agent_carrier_rate_overrides_carrier(self, agent, manager, owner):
        carrier = CarrierFactory(life_fyc=Decimal('0.9000'))
        CarrierRateFactory(agent=agent, carrier=carrier, agent_rate=Decimal('0.7500'))
        deal = DealFactory(agent=agent, carrier=carrier, annual_premium=Decimal('10000.00'))

        result = split_deal(deal.id)

        assert result.result.pool == Decimal('7500.00')
        assert CommissionSplit.objects.get(deal=deal, beneficiary=agent).amount == Decimal('5250.00')

    def test_carrier_rate_for_another_agent_is_ignored(self, agent, manager):
        carrier = CarrierFactory(life_fyc=Decimal('0.9000'))
        CarrierRateFactory(agent=manager, carrier=carrier, agent_rate=Decimal('0.5000'))

        assert resolve_fyc_rate(agent.id, carrier.id, 'LIFE') == Decimal('0.9')


@pytest.mark.django_db
class TestResplitDeal:

    def test_resplit_reprices_with_snapshot_levels(self, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('10000.00'))
        split_deal(deal.id)

        # promotion after the deal was written must not change its economics
        agent.commission_level = 90
        agent.save()
        deal.annual_premium = Decimal('20000.00')
        deal.save()

        resplit_deal(deal.id)

        assert rows_for(deal) == [
            (owner.id, 'OVERRIDE_LEVEL_2', 30, Decimal('6000.00')),
            (manager.id, 'OVERRIDE_LEVEL_1', 30, Decimal('6000.00')),
            (agent.id, 'AGENT', 70, Decimal('14000.00')),
        ]

    def test_resplit_picks_up_insurance_type_change(self, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('10000.00'))
        split_deal(deal.id)
        deal.insurance_type = 'HEALTH'
        deal.save()

        result = resplit_deal(deal.id)

        assert result.result.pool == Decimal('5000.00')
        assert sum(row[3] for row in rows_for(deal)) == Decimal('6500.00')

    def test_resplit_without_rows_splits_from_scratch(self, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('100.00'))

        resplit_deal(deal.id)

        assert len(rows_for(deal)) == 3

    def test_level_change_leaves_past_splits_alone(self, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('10000.00'))
        split_deal(deal.id)
        before = rows_for(deal)

        manager.commission_level = 120
        manager.save()

        assert rows_for(deal) == before


@pytest.mark.django_db
class TestPreview:

    def test_preview_uses_current_levels_and_writes_nothing(self, agent, manager, owner):
        manager.commission_level = 120
        manager.save()

        preview = preview_splits(agent.id, Decimal('10000.00'), 'LIFE')

        assert preview.kind == 'preview'
        assert [line.percent for line in preview.result.lines] == [70, 50, 10]
        assert not CommissionSplit.objects.exists()


@pytest.mark.django_db
class TestReconciliation:

    def test_fresh_splits_reconcile(self, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('3333.33'))
        split_deal(deal.id)

        summary = reconcile_deal_splits(deal.id)

        assert summary['consistent'] is True
        assert summary['total_percent'] == 130

    def test_tampered_amount_is_reported(self, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('1000.00'))
        split_deal(deal.id)
        CommissionSplit.objects.filter(deal=deal, beneficiary=manager).update(amount=Decimal('999.00'))

        with pytest.raises(InconsistentSplitError) as exc_info:
            reconcile_deal_splits(deal.id)

        assert any('OVERRIDE_LEVEL_1' in problem for problem in exc_info.value.problems)

    def test_premium_edit_without_resplit_is_reported(self, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('1000.00'))
        split_deal(deal.id)
        deal.annual_premium = Decimal('2000.00')
        deal.save()

        with pytest.raises(InconsistentSplitError):
            reconcile_deal_splits(deal.id)

        resplit_deal(deal.id)
        assert reconcile_deal_splits(deal.id)['consistent'] is True

    def test_deal_without_splits_is_inconsistent(self, agent):
        deal = DealFactory(agent=agent)

        with pytest.raises(InconsistentSplitError):
            reconcile_deal_splits(deal.id)

    def test_percent_above_cap_is_reported(self, agent):
        deal = DealFactory(agent=agent, annual_premium=Decimal('100.00'))
        CommissionSplitFactory(deal=deal)
        CommissionSplitFactory(
            deal=deal, beneficiary=UserFactory(commission_level=130),
            role='OVERRIDE_LEVEL_1', percent=70, beneficiary_level=130,
        )

        with pytest.raises(InconsistentSplitError) as exc_info:
            reconcile_deal_splits(deal.id)

        assert any('above 130' in problem for problem in exc_info.value.problems)


@pytest.mark.django_db
class TestCompanyReport:

    def test_tiers_tie_out_with_split_amounts(self, agent, manager, owner):
        day = date(2025, 4, 15)
        ba = UserFactory(commission_level=80, upline=owner)
        deals = [
            DealFactory(agent=agent, annual_premium=Decimal('10000.00'), deposit_date=day),
            DealFactory(agent=manager, annual_premium=Decimal('1234.56'), deposit_date=day),
            DealFactory(agent=ba, annual_premium=Decimal('777.77'), deposit_date=day, insurance_type='HEALTH'),
            DealFactory(agent=owner, annual_premium=Decimal('500.00'), deposit_date=day),
        ]
        for deal in deals:
            split_deal(deal.id)
        outside = DealFactory(agent=agent, annual_premium=Decimal('999.00'), deposit_date=date(2025, 5, 2))
        split_deal(outside.id)

        report = company_commission_report(DateRange.for_month(day))
        totals = report['company_totals']

        expected_total = sum(
            CommissionSplit.objects.filter(deal_id__in=[deal.id for deal in deals]).values_list('amount', flat=True),
            Decimal('0.00'),
        )
        tier_sum = sum(
            Decimal(totals[key])
            for key in ('agent_commissions', 'manager_overrides', 'owner_overrides', 'house_amount')
        )
        assert totals['total_deals'] == 4
        assert Decimal(totals['total_paid']) == expected_total
        assert tier_sum == expected_total
        assert Decimal(totals['unclaimed_amount']) == Decimal('0.00')

    def test_owner_breakdown_separates_manager_and_agent_sales(self, agent, manager, owner):
        day = date(2025, 4, 15)
        split_deal(DealFactory(agent=agent, annual_premium=Decimal('1000.00'), deposit_date=day).id)
        split_deal(DealFactory(agent=manager, annual_premium=Decimal('1000.00'), deposit_date=day).id)

        report = company_commission_report(DateRange.for_day(day))

        # owner earns 30% of the agent's deal and 30% of the manager's deal
        assert report['owner_breakdown'] == {
            'from_managers': '300.00',
            'from_direct_agents': '300.00',
            'total_overrides': '600.00',
        }
        assert report['company_totals']['manager_overrides'] == '300.00'
        assert report['pool_shares']['agent'] == '85.00'

    def test_unclaimed_amount_without_an_owner(self):
        top = UserFactory(commission_level=100)
        writer = UserFactory(commission_level=70, upline=top)
        day = date(2025, 4, 15)
        split_deal(DealFactory(agent=writer, annual_premium=Decimal('1000.00'), deposit_date=day).id)

        report = company_commission_report(DateRange.for_day(day))

        assert report['company_totals']['unclaimed_amount'] == '300.00'
        assert report['pool_shares']['unclaimed'] == '30.00'

    def test_totals_split_premium_by_insurance_type(self, agent):
        day = date(2025, 4, 15)
        DealFactory(agent=agent, annual_premium=Decimal('1000.00'), deposit_date=day)
        DealFactory(agent=agent, annual_premium=Decimal('500.00'), deposit_date=day, insurance_type='HEALTH')
        DealFactory(agent=agent, annual_premium=Decimal('100.01'), deposit_date=day, insurance_type='HEALTH')

        totals = company_commission_report(DateRange.for_day(day))['company_totals']

        assert totals['total_premium'] == '1600.01'
        assert totals['life_premium'] == '1000.00'
        assert totals['health_premium'] == '600.01'
        assert (totals['life_deals'], totals['health_deals']) == (1, 2)
        # 1600.01 / 3 = 533.336...
        assert totals['avg_deal_size'] == '533.34'

    def test_empty_window_has_zero_average(self):
        totals = company_commission_report(DateRange.for_day(date(2025, 4, 15)))['company_totals']

        assert totals['avg_deal_size'] == '0.00'
        assert (totals['life_deals'], totals['health_deals']) == (0, 0)


@pytest.mark.django_db
class TestCommissionsAPI:

    def test_post_splits(self, api_client, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('10000.00'))

        response = api_client.post(f'/api/commissions/deals/{deal.id}/splits')

        assert response.status_code == 201
        data = response.json()
        assert data['kind'] == 'persisted'
        assert data['total_percent'] == 130
        assert data['total_amount'] == '13000.00'
        assert [split['amount'] for split in data['splits']] == ['7000.00', '3000.00', '3000.00']

    def test_get_splits(self, api_client, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('10000.00'))
        split_deal(deal.id)

        response = api_client.get(f'/api/commissions/deals/{deal.id}/splits')

        assert response.status_code == 200
        assert [split['role'] for split in response.json()['splits']] == ['AGENT', 'OVERRIDE_LEVEL_1', 'OVERRIDE_LEVEL_2']
        assert response.json()['splits'][0]['beneficiary_name'] == 'Xena Agent'

    def test_resplit_mode(self, api_client, agent, manager, owner):
        deal = DealFactory(agent=agent, annual_premium=Decimal('10000.00'))
        split_deal(deal.id)
        deal.annual_premium = Decimal('5000.00')
        deal.save()

        response = api_client.post(f'/api/commissions/deals/{deal.id}/splits?mode=resplit')

        assert response.status_code == 201
        assert response.json()['total_amount'] == '6500.00'

    def test_inactive_agent_is_a_conflict(self, api_client, manager):
        agent = UserFactory(commission_level=70, upline=manager, status='INACTIVE')
        deal = DealFactory(agent=agent)

        response = api_client.post(f'/api/commissions/deals/{deal.id}/splits')

        assert response.status_code == 409
        assert response.json()['error'] == 'InactiveAgentError'
        assert response.json()['code'] == 'inactive_agent'

    def test_house_policy_clash_is_a_bad_request(self, api_client, settings, agent, manager):
        manager.upline = None
        manager.save()
        settings.COMMISSION_UNCLAIMED_POLICY = 'house'
        settings.COMMISSION_HOUSE_ACCOUNT_ID = str(agent.id)
        deal = DealFactory(agent=agent)

        response = api_client.post(f'/api/commissions/deals/{deal.id}/splits')

        assert response.status_code == 400
        assert response.json()['code'] == 'bad_policy'

    def test_unknown_deal_is_not_found(self, api_client, user_id):
        response = api_client.get(f'/api/commissions/deals/{user_id}/splits')

        assert response.status_code == 404

    def test_reconcile_conflict(self, api_client, agent):
        deal = DealFactory(agent=agent)

        response = api_client.get(f'/api/commissions/deals/{deal.id}/reconcile')

        assert response.status_code == 409
        assert response.json()['details']['problems'] == ['deal has no commission splits']

    def test_preview(self, api_client, agent, manager, owner):
        response = api_client.post(
            '/api/commissions/preview',
            {'agent_id': str(agent.id), 'annual_premium': '10000.00', 'insurance_type': 'HEALTH'},
            format='json',
        )

        assert response.status_code == 200
        data = response.json()
        assert data['kind'] == 'preview'
        assert data['pool'] == '5000.00'
        assert not CommissionSplit.objects.exists()

    def test_preview_validation(self, api_client, agent):
        response = api_client.post(
            '/api/commissions/preview',
            {'agent_id': str(agent.id), 'annual_premium': '-5'},
            format='json',
        )

        assert response.status_code == 400
        assert 'annual_premium' in response.json()['details']

    def test_report(self, api_client, agent, manager, owner):
        split_deal(DealFactory(agent=agent, annual_premium=Decimal('100.00'), deposit_date=date(2025, 2, 3)).id)

        response = api_client.get('/api/commissions/report?start_date=2025-02-01&end_date=2025-02-28')

        assert response.status_code == 200
        assert response.json()['company_totals']['total_paid'] == '130.00'

    def test_report_rejects_half_range(self, api_client):
        response = api_client.get('/api/commissions/report?start_date=2025-02-01')

        assert response.status_code == 400
