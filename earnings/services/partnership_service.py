"""
Partnership Service - local-business advertising packages sold by trainers.
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from .. import periods
from ..models import (
    AdEarning,
    AdPartnership,
    PackageTier,
    PartnershipStatus,
    TransactionType,
)
from .commission_service import to_money
from .points_service import PointsService
from .results import TransitionResult

logger = logging.getLogger(__name__)

BILLING_PERIOD = timedelta(days=30)
RENEWAL_POINTS = 250


@dataclass(frozen=True)
class PackageTerms:
    """Package pricing copied onto a partnership when it is created."""

    monthly_fee: Decimal
    commission_rate: Decimal
    bonus_points: int

    @property
    def commission(self) -> Decimal:
        return to_money(self.monthly_fee * self.commission_rate)


PACKAGE_CONFIG = {
    PackageTier.BRONZE: PackageTerms(Decimal('99.00'), Decimal('0.15'), 500),
    PackageTier.SILVER: PackageTerms(Decimal('249.00'), Decimal('0.18'), 1000),
    PackageTier.GOLD: PackageTerms(Decimal('499.00'), Decimal('0.20'), 2000),
    PackageTier.PLATINUM: PackageTerms(Decimal('999.00'), Decimal('0.25'), 5000),
}


class PartnershipService:
    """Service class for ad partnerships and their earnings."""

    # ==================== Partnerships ====================

    @staticmethod
    def get_terms(package_tier: str) -> PackageTerms:
        try:
            return PACKAGE_CONFIG[package_tier]
        except KeyError:
            raise ValidationError(f"Unknown package tier '{package_tier}'.")

    @staticmethod
    def get_partnership(partnership_id: int) -> Optional[AdPartnership]:
        try:
            return AdPartnership.objects.get(pk=partnership_id)
        except AdPartnership.DoesNotExist:
            return None

    @staticmethod
    def get_partnerships(
        trainer_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> List[AdPartnership]:
        qs = AdPartnership.objects.all()
        if trainer_id:
            qs = qs.filter(trainer_id=trainer_id)
        if status:
            qs = qs.filter(status=status)
        return list(qs.order_by('-created_at'))

    @staticmethod
    def get_pending_approvals() -> List[AdPartnership]:
        return list(
            AdPartnership.objects.filter(status=PartnershipStatus.PENDING).order_by('created_at')
        )

    @staticmethod
    def create_partnership(
        trainer_id: int,
        business_id: int,
        package_tier: str,
        business_name: str = '',
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        notes: str = '',
    ) -> Tuple[Optional[AdPartnership], Optional[str]]:
        """Create a pending partnership with the package terms frozen onto it."""
        try:
            terms = PartnershipService.get_terms(package_tier)
            start_date = start_date or timezone.localdate()
            end_date = end_date or start_date + BILLING_PERIOD
            if end_date < start_date:
                raise ValidationError("Partnership end date must not precede its start.")
        except ValidationError as e:
            return None, '; '.join(e.messages)

        partnership = AdPartnership.objects.create(
            trainer_id=trainer_id,
            business_id=business_id,
            business_name=business_name,
            package_tier=package_tier,
            monthly_fee=terms.monthly_fee,
            trainer_commission_rate=terms.commission_rate,
            bonus_points_awarded=terms.bonus_points,
            status=PartnershipStatus.PENDING,
            start_date=start_date,
            end_date=end_date,
            renewal_date=end_date,
            auto_renew=True,
            notes=notes,
        )
        logger.info(
            "Partnership %s created: trainer %s, business %s, %s package",
            partnership.pk, trainer_id, business_id, package_tier,
        )
        return partnership, None

    @staticmethod
    def _move(partnership_id: int, sources, target: str, **fields) -> TransitionResult:
        updated = AdPartnership.objects.filter(
            pk=partnership_id, status__in=list(sources),
        ).update(status=target, updated_at=timezone.now(), **fields)
        if not updated:
            current = AdPartnership.objects.filter(pk=partnership_id).values_list(
                'status', flat=True
            ).first()
            logger.warning("Partnership %s not moved to %s (status %s)", partnership_id, target, current)
            return TransitionResult.rejected(current)
        return TransitionResult(
            applied=True, status=target, record=AdPartnership.objects.get(pk=partnership_id)
        )

    @staticmethod
    def approve(partnership_id: int, approver_id: int) -> TransitionResult:
        """
        Activate a pending partnership.

        Books the first billing period's earning and grants the package's bonus
        points to the trainer. The partnership's dates move to that first period so
        renewals continue from where billing actually started.
        """
        partnership = PartnershipService.get_partnership(partnership_id)
        if partnership is None:
            return TransitionResult.rejected()
        period_start = max(partnership.start_date, timezone.localdate())
        period_end = period_start + BILLING_PERIOD
        with transaction.atomic():
            result = PartnershipService._move(
                partnership_id, [PartnershipStatus.PENDING], PartnershipStatus.ACTIVE,
                approved_by_id=approver_id, approved_at=timezone.now(),
                start_date=period_start, end_date=period_end, renewal_date=period_end,
            )
            if not result:
                return result
            partnership = result.record
            PartnershipService._book_period(partnership, period_start)
            if partnership.bonus_points_awarded:
                PointsService.award(
                    partnership.trainer_id, partnership.bonus_points_awarded,
                    TransactionType.AD_PARTNERSHIP_SALE,
                    reference_type='ad_partnership', reference_id=partnership.pk,
                    description=f"Ad partnership: {partnership.business_name or partnership.business_id}",
                )
        logger.info("Partnership %s approved by %s", partnership_id, approver_id)
        return result

    @staticmethod
    def _book_period(
        partnership: AdPartnership,
        period_start: date,
        bonus_points: Optional[int] = None,
    ) -> AdEarning:
        return AdEarning.objects.create(
            trainer_id=partnership.trainer_id,
            partnership=partnership,
            business_id=partnership.business_id,
            business_name=partnership.business_name,
            period_start=period_start,
            period_end=period_start + BILLING_PERIOD,
            monthly_fee=partnership.monthly_fee,
            commission_rate=partnership.trainer_commission_rate,
            commission_earned=to_money(partnership.monthly_commission),
            bonus_points=partnership.bonus_points_awarded if bonus_points is None else bonus_points,
            status='pending',
        )

    @staticmethod
    def reject(partnership_id: int) -> TransitionResult:
        return PartnershipService._move(
            partnership_id, [PartnershipStatus.PENDING], PartnershipStatus.CANCELLED
        )

    @staticmethod
    def pause(partnership_id: int) -> TransitionResult:
        return PartnershipService._move(
            partnership_id, [PartnershipStatus.ACTIVE], PartnershipStatus.PAUSED
        )

    @staticmethod
    def resume(partnership_id: int) -> TransitionResult:
        return PartnershipService._move(
            partnership_id, [PartnershipStatus.PAUSED], PartnershipStatus.ACTIVE
        )

    @staticmethod
    def cancel(partnership_id: int) -> TransitionResult:
        return PartnershipService._move(
            partnership_id,
            [PartnershipStatus.PENDING, PartnershipStatus.ACTIVE, PartnershipStatus.PAUSED],
            PartnershipStatus.CANCELLED,
            auto_renew=False,
        )

    # ==================== Renewals ====================

    @staticmethod
    def process_renewals(as_of: Optional[date] = None) -> int:
        """Roll every due auto-renewing partnership into its next billing period."""
        as_of = as_of or timezone.localdate()
        due = AdPartnership.objects.filter(
            status=PartnershipStatus.ACTIVE, auto_renew=True, renewal_date__lte=as_of,
        )
        renewed = 0
        for partnership in due:
            with transaction.atomic():
                next_end = partnership.end_date + BILLING_PERIOD
                updated = AdPartnership.objects.filter(
                    pk=partnership.pk,
                    status=PartnershipStatus.ACTIVE,
                    renewal_date=partnership.renewal_date,
                ).update(end_date=next_end, renewal_date=next_end, updated_at=timezone.now())
                if not updated:
                    continue
                PartnershipService._book_period(partnership, partnership.end_date, RENEWAL_POINTS)
                PointsService.award(
                    partnership.trainer_id, RENEWAL_POINTS,
                    TransactionType.AD_PARTNERSHIP_RENEWAL,
                    reference_type='ad_partnership', reference_id=partnership.pk,
                    description=f"Partnership renewal: {partnership.business_name or partnership.business_id}",
                )
            renewed += 1
        if renewed:
            logger.info("Renewed %d ad partnerships", renewed)
        return renewed

    # ==================== Earnings ====================

    @staticmethod
    def get_earnings(
        trainer_id: int,
        period: str = 'all',
        status: Optional[str] = None,
    ) -> List[AdEarning]:
        start, end = periods.period_bounds(period)
        qs = AdEarning.objects.filter(trainer_id=trainer_id)
        if start is not None:
            qs = qs.filter(created_at__gte=start, created_at__lte=end)
        if status:
            qs = qs.filter(status=status)
        return list(qs.order_by('-period_start', '-id'))

    @staticmethod
    def get_summary(trainer_id: int) -> Dict[str, Any]:
        totals = AdEarning.objects.filter(trainer_id=trainer_id).aggregate(
            total_earnings=Sum('commission_earned'),
            total_bonus_points=Sum('bonus_points'),
            pending_earnings=Sum('commission_earned', filter=Q(status='pending')),
        )
        active = AdPartnership.objects.filter(
            trainer_id=trainer_id, status=PartnershipStatus.ACTIVE,
        ).aggregate(count=Count('id'))
        return {
            'total_earnings': totals['total_earnings'] or Decimal('0'),
            'total_bonus_points': totals['total_bonus_points'] or 0,
            'active_partnerships': active['count'] or 0,
            'pending_earnings': totals['pending_earnings'] or Decimal('0'),
        }
