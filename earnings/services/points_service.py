"""
Points Service - loyalty points ledger and tier membership for trainers.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..models import (
    AwardType,
    PointTransaction,
    Tier,
    TrainerAward,
    TrainerPointsAccount,
    TransactionType,
)

logger = logging.getLogger(__name__)

TIER_ORDER = [Tier.BRONZE, Tier.SILVER, Tier.GOLD, Tier.PLATINUM]

TIER_THRESHOLDS = {
    Tier.BRONZE: 0,
    Tier.SILVER: 5000,
    Tier.GOLD: 15000,
    Tier.PLATINUM: 35000,
}

TIER_BENEFITS = {
    Tier.BRONZE: {
        'commission_bonus': Decimal('0'),
        'priority_support': False,
        'featured_listing': False,
        'exclusive_products': False,
    },
    Tier.SILVER: {
        'commission_bonus': Decimal('0.02'),
        'priority_support': True,
        'featured_listing': False,
        'exclusive_products': False,
    },
    Tier.GOLD: {
        'commission_bonus': Decimal('0.05'),
        'priority_support': True,
        'featured_listing': True,
        'exclusive_products': False,
    },
    Tier.PLATINUM: {
        'commission_bonus': Decimal('0.10'),
        'priority_support': True,
        'featured_listing': True,
        'exclusive_products': True,
    },
}


@dataclass
class PointsAward:
    transaction: PointTransaction
    balance_before: int
    balance_after: int
    previous_tier: str
    new_tier: str

    @property
    def tier_changed(self) -> bool:
        return self.previous_tier != self.new_tier


class PointsService:
    """Service class for loyalty points and tiers."""

    # ==================== Tiers ====================

    @staticmethod
    def calculate_tier(lifetime_points: int) -> str:
        """Highest tier whose threshold has been reached."""
        tier = Tier.BRONZE
        for candidate in TIER_ORDER:
            if lifetime_points >= TIER_THRESHOLDS[candidate]:
                tier = candidate
        return tier

    @staticmethod
    def get_next_tier_info(tier: str, lifetime_points: int) -> Dict[str, Any]:
        index = TIER_ORDER.index(tier)
        if index == len(TIER_ORDER) - 1:
            return {'next_tier': None, 'points_needed': 0, 'progress': 100}

        next_tier = TIER_ORDER[index + 1]
        current_threshold = TIER_THRESHOLDS[tier]
        next_threshold = TIER_THRESHOLDS[next_tier]
        progress = (lifetime_points - current_threshold) / (next_threshold - current_threshold) * 100
        return {
            'next_tier': next_tier,
            'points_needed': max(0, next_threshold - lifetime_points),
            'progress': min(100, max(0, progress)),
        }

    @staticmethod
    def get_tier_benefits(tier: str) -> Dict[str, Any]:
        return dict(TIER_BENEFITS[tier])

    # ==================== Accounts ====================

    @staticmethod
    def get_account(trainer_id: int) -> Optional[TrainerPointsAccount]:
        try:
            return TrainerPointsAccount.objects.get(trainer_id=trainer_id)
        except TrainerPointsAccount.DoesNotExist:
            return None

    @staticmethod
    def get_or_create_account(trainer_id: int) -> TrainerPointsAccount:
        account, created = TrainerPointsAccount.objects.get_or_create(trainer_id=trainer_id)
        if created:
            logger.info("Created points account for trainer %s", trainer_id)
        return account

    # ==================== Awarding ====================

    @staticmethod
    def award(
        trainer_id: int,
        points: int,
        transaction_type: str,
        reference_type: str = '',
        reference_id: Any = '',
        description: str = '',
        revenue: Optional[Decimal] = None,
        allow_negative: bool = True,
    ) -> PointsAward:
        """
        Append a signed points transaction and update the trainer's account.

        The account row is locked for the duration of the write so concurrent
        awards to one trainer chain their balances in order. Only positive points
        count towards lifetime and year-to-date totals. With ``allow_negative``
        off, a debit that would take the balance below zero is refused while the
        lock is held.
        """
        if transaction_type not in TransactionType.values:
            raise ValidationError(f"Unknown transaction type '{transaction_type}'.")
        points = int(points)
        if points == 0:
            raise ValidationError("Points must be non-zero.")

        with transaction.atomic():
            PointsService.get_or_create_account(trainer_id)
            account = TrainerPointsAccount.objects.select_for_update().get(trainer_id=trainer_id)

            now = timezone.now()
            year = timezone.localtime(now).year
            if account.ytd_year != year:
                account.ytd_year = year
                account.year_to_date_points = 0
                account.year_to_date_revenue = Decimal('0.00')

            balance_before = account.total_points
            balance_after = balance_before + points
            if balance_after < 0 and not allow_negative:
                raise ValidationError("Insufficient points balance.")
            previous_tier = account.current_tier

            account.total_points = balance_after
            if points > 0:
                account.lifetime_points += points
                account.year_to_date_points += points
            if revenue:
                account.year_to_date_revenue += Decimal(revenue)
            account.current_tier = PointsService.calculate_tier(account.lifetime_points)
            account.tier_calculated_at = now
            account.save()

            entry = PointTransaction.objects.create(
                trainer_id=trainer_id,
                transaction_type=transaction_type,
                points=points,
                reference_type=reference_type,
                reference_id=str(reference_id) if reference_id not in (None, '') else '',
                description=description,
                balance_before=balance_before,
                balance_after=balance_after,
                created_at=now,
            )

            result = PointsAward(
                transaction=entry,
                balance_before=balance_before,
                balance_after=balance_after,
                previous_tier=previous_tier,
                new_tier=account.current_tier,
            )
            if TIER_ORDER.index(result.new_tier) > TIER_ORDER.index(previous_tier):
                PointsService._record_tier_achieved(trainer_id, result.new_tier)

        logger.info(
            "Trainer %s %+d points (%s): %s -> %s",
            trainer_id, points, transaction_type, balance_before, balance_after,
        )
        return result

    @staticmethod
    def _record_tier_achieved(trainer_id: int, tier: str) -> None:
        award, created = TrainerAward.objects.get_or_create(
            trainer_id=trainer_id,
            award_type=AwardType.TIER_ACHIEVED,
            milestone=TIER_THRESHOLDS[tier],
            defaults={
                'award_name': f"{Tier(tier).label} Tier",
                'description': f"Reached {Tier(tier).label} tier",
                'badge_icon': 'medal',
                'metadata': {'tier': tier},
            },
        )
        if created:
            logger.info("Trainer %s reached %s tier", trainer_id, tier)

    @staticmethod
    def adjust(trainer_id: int, points: int, manager_id: int, reason: str) -> PointsAward:
        """Manual correction by a manager."""
        if not reason:
            raise ValidationError("A reason is required for a points adjustment.")
        return PointsService.award(
            trainer_id, points, TransactionType.ADJUSTMENT,
            reference_type='manager', reference_id=manager_id, description=reason,
        )

    @staticmethod
    def redeem(trainer_id: int, points: int, description: str = '') -> PointsAward:
        if points <= 0:
            raise ValidationError("Redeemed points must be positive.")
        return PointsService.award(
            trainer_id, -points, TransactionType.REDEMPTION,
            description=description, allow_negative=False,
        )

    # ==================== Queries ====================

    @staticmethod
    def get_summary(trainer_id: int) -> Dict[str, Any]:
        account = PointsService.get_or_create_account(trainer_id)
        return {
            'trainer_id': trainer_id,
            'total_points': account.total_points,
            'lifetime_points': account.lifetime_points,
            'current_tier': account.current_tier,
            'year_to_date_points': account.year_to_date_points,
            'year_to_date_revenue': account.year_to_date_revenue,
            'benefits': PointsService.get_tier_benefits(account.current_tier),
            'next_tier': PointsService.get_next_tier_info(
                account.current_tier, account.lifetime_points
            ),
        }

    @staticmethod
    def get_transactions(trainer_id: int, limit: int = 50, offset: int = 0) -> List[PointTransaction]:
        qs = PointTransaction.objects.filter(trainer_id=trainer_id).order_by('-created_at', '-id')
        return list(qs[offset:offset + limit])

    @staticmethod
    def get_awards(trainer_id: int) -> List[TrainerAward]:
        return list(TrainerAward.objects.filter(trainer_id=trainer_id).order_by('-earned_at', '-id'))
