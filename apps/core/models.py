"""
Core Models for the Commission Engine

These are UNMANAGED models that map to existing PostgreSQL tables owned by the
production tracker. They do NOT create migrations - Django reads from existing
tables. The engine only ever writes CommissionSplit rows.
"""
import uuid

from django.db import models
from django.utils import timezone

from apps.core.constants import RANK_LABELS, rank_label
from apps.core.managers import (
    CommissionSplitManager,
    DealManager,
    UserManager,
)


class User(models.Model):
    """
    An agent in the recruiting tree.
    Maps to: public.users
    """
    LEVEL_CHOICES = [(level, label) for level, label in RANK_LABELS.items()]

    STATUS_CHOICES = [
        ('ACTIVE', 'Active'),
        ('INACTIVE', 'Inactive'),
        ('ON_LEAVE', 'On Leave'),
        ('TERMINATED', 'Terminated'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    email = models.CharField(max_length=255, null=True, blank=True)
    first_name = models.CharField(max_length=255, null=True, blank=True)
    last_name = models.CharField(max_length=255, null=True, blank=True)
    commission_level = models.IntegerField(choices=LEVEL_CHOICES, default=70)
    upline = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='downlines'
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='ACTIVE')
    created_at = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    class Meta:
        managed = False
        db_table = 'users'

    def __str__(self):
        return f"{self.first_name} {self.last_name}" if self.first_name else str(self.email)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def rank(self) -> str:
        return rank_label(self.commission_level)

    @property
    def is_active(self) -> bool:
        return self.status == 'ACTIVE'


class Carrier(models.Model):
    """
    Represents an insurance carrier.
    Maps to: public.carriers

    life_fyc / health_fyc are carrier-wide first-year commission rates used
    when an agent has no personal rate with the carrier.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    name = models.CharField(max_length=255)
    life_fyc = models.DecimalField(max_digits=6, decimal_places=4, null=True, blank=True)
    health_fyc = models.DecimalField(max_digits=6, decimal_places=4, null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        managed = False
        db_table = 'carriers'

    def __str__(self):
        return self.name

    def fyc_for(self, insurance_type: str):
        if insurance_type == 'HEALTH':
            return self.health_fyc
        return self.life_fyc


class CarrierRate(models.Model):
    """
    Per agent and carrier FYC override.
    Maps to: public.carrier_rates
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    agent = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='carrier_rates'
    )
    carrier = models.ForeignKey(
        Carrier,
        on_delete=models.CASCADE,
        related_name='agent_rates'
    )
    agent_rate = models.DecimalField(max_digits=6, decimal_places=4)
    manager_rate = models.DecimalField(max_digits=6, decimal_places=4, null=True, blank=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        managed = False
        db_table = 'carrier_rates'
        unique_together = [('agent', 'carrier')]

    def __str__(self):
        return f"{self.agent_id} @ {self.carrier_id}: {self.agent_rate}"


class Deal(models.Model):
    """
    A policy sale written by an agent.
    Maps to: public.deals
    """
    INSURANCE_TYPE_CHOICES = [
        ('LIFE', 'Life'),
        ('HEALTH', 'Health'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    agent = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='deals'
    )
    carrier = models.ForeignKey(
        Carrier,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='deals'
    )
    client_name = models.CharField(max_length=255, null=True, blank=True)
    policy_number = models.CharField(max_length=100, null=True, blank=True)
    annual_premium = models.DecimalField(max_digits=15, decimal_places=2)
    insurance_type = models.CharField(
        max_length=10, choices=INSURANCE_TYPE_CHOICES, default='LIFE'
    )
    application_date = models.DateField(null=True, blank=True)
    effective_date = models.DateField(null=True, blank=True)
    deposit_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    objects = DealManager()

    class Meta:
        managed = False
        db_table = 'deals'

    def __str__(self):
        return f"Deal {self.policy_number or self.id}"


class CommissionSplit(models.Model):
    """
    One beneficiary's share of a deal's commission pool.
    Maps to: public.commission_splits

    percent is a share of the pool (premium x fyc_rate), not of premium, so the
    rows for one deal can add up to 130% of the pool. beneficiary_level,
    fyc_rate and pool_amount snapshot the inputs at split time; later level or
    rate changes never touch existing rows.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4)
    deal = models.ForeignKey(
        Deal,
        on_delete=models.CASCADE,
        related_name='splits'
    )
    beneficiary = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='commission_splits'
    )
    role = models.CharField(max_length=30)
    percent = models.IntegerField()
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    beneficiary_level = models.IntegerField()
    fyc_rate = models.DecimalField(max_digits=6, decimal_places=4)
    pool_amount = models.DecimalField(max_digits=15, decimal_places=2)
    created_at = models.DateTimeField(default=timezone.now)

    objects = CommissionSplitManager()

    class Meta:
        managed = False
        db_table = 'commission_splits'
        unique_together = [('deal', 'beneficiary')]

    def __str__(self):
        return f"{self.role} {self.percent}% of deal {self.deal_id}"
