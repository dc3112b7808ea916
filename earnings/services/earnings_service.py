"""
Earnings Service - per-order trainer earnings ledger, summaries and breakdowns.
"""
import logging
from collections import OrderedDict
from datetime import datetime
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Count, Sum
from django.utils import timezone

from .. import periods
from ..models import (
    EarningAdjustment,
    EarningLineItem,
    EarningRecord,
    EarningStatus,
    LineItemType,
    ServiceDelivery,
    TransactionType,
)
from .commission_service import CommissionService, to_money
from .points_service import PointsService
from .results import TransitionResult

logger = logging.getLogger(__name__)

NEW_CLIENT_BONUS = 100
CLIENT_RETENTION_BONUS = 50


def _window(qs, start: Optional[datetime], end: Optional[datetime], field: str = 'created_at'):
    if start is not None:
        qs = qs.filter(**{f'{field}__gte': start})
    if end is not None:
        qs = qs.filter(**{f'{field}__lte': end})
    return qs


class EarningsService:
    """Service class for the trainer earnings ledger."""

    # ==================== Recording ====================

    @staticmethod
    def get_earning(order_id: str) -> Optional[EarningRecord]:
        return EarningRecord.objects.filter(order_id=order_id).first()

    @staticmethod
    def record_order_earnings(
        order_id: str,
        trainer_id: int,
        line_items: List[dict],
        order_total: Decimal,
        bundle_id: str = '',
        bundle_title: str = '',
        client_id: Optional[int] = None,
        client_name: str = '',
        as_of: Optional[datetime] = None,
    ) -> Tuple[EarningRecord, bool]:
        """
        Record the trainer's earnings for a paid order, once.

        Returns ``(record, created)``. A second call for the same order returns the
        existing record untouched. Loyalty points for the sale are awarded in the
        same database transaction as the record.
        """
        existing = EarningsService.get_earning(order_id)
        if existing is not None:
            logger.info("Earnings for order %s already recorded; skipping", order_id)
            return existing, False

        order_total = Decimal(order_total)
        if order_total < 0:
            raise ValidationError("Order total must not be negative.")
        bundle = CommissionService.price_bundle(line_items, as_of)

        try:
            with transaction.atomic():
                prior_orders = 0
                if client_id is not None:
                    prior_orders = EarningRecord.objects.filter(
                        trainer_id=trainer_id, client_id=client_id,
                    ).count()

                record = EarningRecord.objects.create(
                    order_id=order_id,
                    trainer_id=trainer_id,
                    bundle_id=bundle_id or '',
                    bundle_title=bundle_title or '',
                    client_id=client_id,
                    client_name=client_name or '',
                    product_commission=to_money(bundle.product_commission),
                    service_revenue=to_money(bundle.service_revenue),
                    order_total=to_money(order_total),
                    status=EarningStatus.PENDING,
                )
                EarningLineItem.objects.bulk_create([
                    EarningLineItem(
                        earning=record,
                        item_type=line.item_type,
                        product_id=line.product_id,
                        name=line.name,
                        quantity=line.quantity,
                        unit_price=line.unit_price,
                        base_rate=line.resolution.base_rate if line.resolution else Decimal('0'),
                        bonus_rate=line.resolution.bonus_rate if line.resolution else Decimal('0'),
                        total_rate=line.resolution.total_rate if line.resolution else Decimal('0'),
                        amount=line.amount,
                    )
                    for line in bundle.lines
                ])
                EarningsService._award_order_points(record, prior_orders)
        except IntegrityError:
            record = EarningsService.get_earning(order_id)
            if record is None:
                raise
            logger.info("Earnings for order %s recorded concurrently; skipping", order_id)
            return record, False

        logger.info(
            "Recorded earnings for order %s: trainer %s earns %s",
            order_id, trainer_id, record.total_earnings,
        )
        return record, True

    @staticmethod
    def _award_order_points(record: EarningRecord, prior_orders: int) -> None:
        sale_points = int(record.order_total.to_integral_value(rounding=ROUND_FLOOR))
        if sale_points > 0:
            PointsService.award(
                record.trainer_id, sale_points, TransactionType.BUNDLE_SALE,
                reference_type='order', reference_id=record.order_id,
                description=f"Bundle sale: {record.bundle_title or record.order_id}",
                revenue=record.order_total,
            )
        if record.client_id is None:
            return
        if prior_orders == 0:
            PointsService.award(
                record.trainer_id, NEW_CLIENT_BONUS, TransactionType.NEW_CLIENT_BONUS,
                reference_type='client', reference_id=record.client_id,
                description=f"New client: {record.client_name or record.client_id}",
            )
        else:
            PointsService.award(
                record.trainer_id, CLIENT_RETENTION_BONUS, TransactionType.CLIENT_RETENTION,
                reference_type='client', reference_id=record.client_id,
                description=f"Returning client: {record.client_name or record.client_id}",
            )

    # ==================== Status ====================

    @staticmethod
    def _advance(record_id: int, source: str, target: str, **fields) -> TransitionResult:
        updated = EarningRecord.objects.filter(pk=record_id, status=source).update(
            status=target, updated_at=timezone.now(), **fields
        )
        if not updated:
            current = EarningRecord.objects.filter(pk=record_id).values_list('status', flat=True).first()
            logger.warning("Earning %s not moved to %s (status %s)", record_id, target, current)
            return TransitionResult.rejected(current)
        return TransitionResult(applied=True, status=target, record=EarningRecord.objects.get(pk=record_id))

    @staticmethod
    def confirm_earning(record_id: int) -> TransitionResult:
        return EarningsService._advance(
            record_id, EarningStatus.PENDING, EarningStatus.CONFIRMED, confirmed_at=timezone.now()
        )

    @staticmethod
    def mark_earning_paid(record_id: int) -> TransitionResult:
        return EarningsService._advance(
            record_id, EarningStatus.CONFIRMED, EarningStatus.PAID, paid_at=timezone.now()
        )

    # ==================== Adjustments ====================

    @staticmethod
    def create_adjustment(
        trainer_id: int,
        adjustment_type: str,
        amount: Decimal,
        reason: str,
        earning: Optional[EarningRecord] = None,
        delivery=None,
        created_by_id: Optional[int] = None,
    ) -> Tuple[Optional[EarningAdjustment], Optional[str]]:
        adjustment = EarningAdjustment(
            trainer_id=trainer_id,
            adjustment_type=adjustment_type,
            amount=to_money(amount),
            reason=reason,
            earning=earning,
            delivery=delivery,
            created_by_id=created_by_id,
        )
        try:
            adjustment.full_clean()
        except ValidationError as e:
            return None, '; '.join(e.messages)
        adjustment.save()
        logger.info(
            "Adjustment of %s (%s) for trainer %s", adjustment.amount, adjustment_type, trainer_id
        )
        return adjustment, None

    @staticmethod
    def get_adjustments(trainer_id: int) -> List[EarningAdjustment]:
        return list(EarningAdjustment.objects.filter(trainer_id=trainer_id).order_by('-created_at'))

    # ==================== Reports ====================

    @staticmethod
    def _totals(trainer_id: int, start, end) -> Dict[str, Any]:
        totals = _window(EarningRecord.objects.filter(trainer_id=trainer_id), start, end).aggregate(
            total_earnings=Sum('total_earnings'),
            product_commissions=Sum('product_commission'),
            service_revenue=Sum('service_revenue'),
            bundles_sold=Count('id'),
        )
        adjustments = _window(
            EarningAdjustment.objects.filter(trainer_id=trainer_id), start, end
        ).aggregate(total=Sum('amount'))
        return {
            'total_earnings': totals['total_earnings'] or Decimal('0'),
            'product_commissions': totals['product_commissions'] or Decimal('0'),
            'service_revenue': totals['service_revenue'] or Decimal('0'),
            'bundles_sold': totals['bundles_sold'] or 0,
            'adjustments': adjustments['total'] or Decimal('0'),
        }

    @staticmethod
    def get_summary(
        trainer_id: int,
        period: str = 'month',
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Earnings totals for a period with a comparison to the preceding one."""
        (cur_start, cur_end), (prev_start, prev_end) = periods.resolve_bounds(period, start, end, now)
        summary = {
            'period': 'custom' if start is not None else period,
            'start': cur_start,
            'end': cur_end,
            'total_earnings': Decimal('0'),
            'product_commissions': Decimal('0'),
            'service_revenue': Decimal('0'),
            'bundles_sold': 0,
            'adjustments': Decimal('0'),
            'comparison': None,
        }
        try:
            summary.update(EarningsService._totals(trainer_id, cur_start, cur_end))
            if prev_start is not None:
                previous = EarningsService._totals(trainer_id, prev_start, prev_end)['total_earnings']
                summary['comparison'] = {
                    'previous': previous,
                    'change': periods.percentage_change(summary['total_earnings'], previous),
                }
        except DatabaseError:
            logger.exception("Earnings summary unavailable for trainer %s", trainer_id)
        return summary

    @staticmethod
    def get_breakdown(
        trainer_id: int,
        period: str = 'month',
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Earnings grouped by service, by product and by day."""
        (start, end), _ = periods.resolve_bounds(period, start, end, now)
        breakdown = {'by_service': [], 'by_product': [], 'revenue_by_day': []}
        try:
            breakdown['by_service'] = EarningsService._by_service(trainer_id, start, end)
            breakdown['by_product'] = EarningsService._by_product(trainer_id, start, end)
            breakdown['revenue_by_day'] = EarningsService._by_day(trainer_id, start, end)
        except DatabaseError:
            logger.exception("Earnings breakdown unavailable for trainer %s", trainer_id)
        return breakdown

    @staticmethod
    def _by_service(trainer_id: int, start, end) -> List[Dict[str, Any]]:
        groups = OrderedDict()
        qs = _window(ServiceDelivery.objects.filter(trainer_id=trainer_id), start, end)
        for delivery in qs:
            name = delivery.service_name or delivery.service_type
            group = groups.setdefault(name, {'name': name, 'quantity': 0, 'revenue': Decimal('0')})
            group['quantity'] += delivery.total_quantity
            group['revenue'] += delivery.revenue

        total = sum((g['revenue'] for g in groups.values()), Decimal('0'))
        rows = sorted(groups.values(), key=lambda g: g['revenue'], reverse=True)
        for row in rows:
            row['percentage'] = float(row['revenue'] / total * 100) if total else 0.0
        return rows

    @staticmethod
    def _by_product(trainer_id: int, start, end) -> List[Dict[str, Any]]:
        qs = EarningLineItem.objects.filter(
            earning__trainer_id=trainer_id, item_type=LineItemType.PRODUCT,
        )
        qs = _window(qs, start, end, field='earning__created_at')
        groups = OrderedDict()
        for line in qs:
            key = line.product_id or line.name
            group = groups.setdefault(key, {
                'product_id': line.product_id,
                'name': line.name,
                'quantity': 0,
                'revenue': Decimal('0'),
                'commission': Decimal('0'),
            })
            group['quantity'] += line.quantity
            group['revenue'] += line.revenue
            group['commission'] += line.amount

        total = sum((g['commission'] for g in groups.values()), Decimal('0'))
        rows = sorted(groups.values(), key=lambda g: g['commission'], reverse=True)
        for row in rows:
            row['percentage'] = float(row['commission'] / total * 100) if total else 0.0
        return rows

    @staticmethod
    def _by_day(trainer_id: int, start, end) -> List[Dict[str, Any]]:
        days = {}
        qs = _window(EarningRecord.objects.filter(trainer_id=trainer_id), start, end)
        for record in qs:
            day = timezone.localtime(record.created_at).date()
            row = days.setdefault(day, {
                'date': day,
                'products': Decimal('0'),
                'services': Decimal('0'),
                'total': Decimal('0'),
            })
            row['products'] += record.product_commission
            row['services'] += record.service_revenue
            row['total'] += record.total_earnings
        return [days[day] for day in sorted(days)]

    @staticmethod
    def get_history(trainer_id: int, limit: int = 50) -> List[EarningRecord]:
        return list(
            EarningRecord.objects.filter(trainer_id=trainer_id).order_by('-created_at', '-id')[:limit]
        )
