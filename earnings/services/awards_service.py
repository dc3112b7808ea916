"""
Awards Service - monthly achievement badges and lifetime milestones.

Re-running a month is safe: every award has a unique identity (per milestone,
or per calendar month) and points are only granted when the award row is new.
"""
import calendar
import logging
from typing import Any, Dict, List, Optional, Tuple

from django.db import transaction
from django.db.models import Count, Q, Sum

from .. import periods
from ..models import AwardType, Order, ServiceDelivery, TrainerAward, TransactionType
from .points_service import PointsService

logger = logging.getLogger(__name__)

TOP_SELLER_POINTS = 500
PERFECT_DELIVERY_POINTS = 250
RETENTION_MASTER_POINTS = 300

PERFECT_DELIVERY_MIN_SERVICES = 5
RETENTION_MIN_CLIENTS = 3
RETENTION_MIN_RATE = 0.8

CLIENT_MILESTONES = [10, 25, 50, 100]
REVENUE_MILESTONES = [1000, 5000, 10000, 25000, 50000]


def _paid_orders():
    return Order.objects.filter(payment_status='paid')


class AwardsService:
    """Service class for trainer awards."""

    @staticmethod
    def _grant(
        trainer_id: int,
        award_type: str,
        name: str,
        description: str,
        badge_icon: str,
        points: int,
        metadata: Dict[str, Any],
        milestone: Optional[int] = None,
        period: Optional[Tuple[int, int]] = None,
    ) -> bool:
        """Create the award once and grant its points. Returns True when new."""
        lookup = {'trainer_id': trainer_id, 'award_type': award_type}
        if milestone is not None:
            lookup['milestone'] = milestone
        else:
            lookup['period_year'], lookup['period_month'] = period

        with transaction.atomic():
            award, created = TrainerAward.objects.get_or_create(**lookup, defaults={
                'award_name': name,
                'description': description,
                'badge_icon': badge_icon,
                'points_awarded': points,
                'metadata': metadata,
            })
            if created and points:
                PointsService.award(
                    trainer_id, points, TransactionType.TIER_BONUS,
                    reference_type='award', reference_id=award.pk, description=name,
                )
        if created:
            logger.info("Trainer %s earned %s", trainer_id, name)
        return created

    # ==================== Monthly awards ====================

    @staticmethod
    def process_monthly_awards(year: int, month: int) -> int:
        """Evaluate every award for a calendar month. Returns the number created."""
        start, end = periods.month_bounds(year, month)
        label = f"{calendar.month_name[month]} {year}"

        created = 0
        created += AwardsService._award_top_seller(year, month, label, start, end)
        created += AwardsService._award_perfect_delivery(year, month, label, start, end)
        created += AwardsService._award_retention_master(year, month, label, start, end)
        created += AwardsService._award_client_milestones(year, month)
        created += AwardsService._award_revenue_milestones(year, month)

        logger.info("Monthly awards for %s: %d created", label, created)
        return created

    @staticmethod
    def _award_top_seller(year, month, label, start, end) -> int:
        top = (
            _paid_orders().filter(paid_at__gte=start, paid_at__lte=end)
            .values('trainer_id')
            .annotate(revenue=Sum('total_amount'))
            .order_by('-revenue', 'trainer_id')
            .first()
        )
        if not top or not top['revenue']:
            return 0
        return int(AwardsService._grant(
            top['trainer_id'], AwardType.MONTHLY_TOP_SELLER,
            name=f"Top Seller - {label}",
            description=f"Highest revenue in {label}: £{top['revenue']}",
            badge_icon='trophy',
            points=TOP_SELLER_POINTS,
            metadata={'month': month, 'year': year, 'revenue': str(top['revenue'])},
            period=(year, month),
        ))

    @staticmethod
    def _award_perfect_delivery(year, month, label, start, end) -> int:
        rows = (
            ServiceDelivery.objects.filter(created_at__gte=start, created_at__lte=end)
            .values('trainer_id')
            .annotate(
                total=Count('id'),
                completed=Count('id', filter=Q(status='completed')),
            )
            .order_by('trainer_id')
        )
        created = 0
        for row in rows:
            if row['total'] < PERFECT_DELIVERY_MIN_SERVICES or row['completed'] != row['total']:
                continue
            created += AwardsService._grant(
                row['trainer_id'], AwardType.PERFECT_DELIVERY,
                name=f"Perfect Delivery - {label}",
                description=f"Completed all {row['total']} service deliveries in {label}",
                badge_icon='check-circle',
                points=PERFECT_DELIVERY_POINTS,
                metadata={'month': month, 'year': year, 'deliveries': row['total']},
                period=(year, month),
            )
        return created

    @staticmethod
    def _award_retention_master(year, month, label, start, end) -> int:
        clients_by_trainer = {}
        window = _paid_orders().filter(
            paid_at__gte=start, paid_at__lte=end, client_id__isnull=False,
        ).values_list('trainer_id', 'client_id').distinct()
        for trainer_id, client_id in window:
            clients_by_trainer.setdefault(trainer_id, set()).add(client_id)

        created = 0
        for trainer_id in sorted(clients_by_trainer):
            clients = clients_by_trainer[trainer_id]
            if len(clients) < RETENTION_MIN_CLIENTS:
                continue
            returning = (
                _paid_orders().filter(trainer_id=trainer_id, client_id__in=clients)
                .values('client_id')
                .annotate(orders=Count('id'))
                .filter(orders__gt=1)
                .count()
            )
            rate = returning / len(clients)
            if rate < RETENTION_MIN_RATE:
                continue
            created += AwardsService._grant(
                trainer_id, AwardType.RETENTION_MASTER,
                name=f"Retention Master - {label}",
                description=f"{round(rate * 100)}% of clients returned in {label}",
                badge_icon='heart',
                points=RETENTION_MASTER_POINTS,
                metadata={'month': month, 'year': year, 'retention_rate': round(rate * 100)},
                period=(year, month),
            )
        return created

    # ==================== Lifetime milestones ====================

    @staticmethod
    def _award_client_milestones(year, month) -> int:
        rows = (
            _paid_orders().filter(client_id__isnull=False)
            .values('trainer_id')
            .annotate(clients=Count('client_id', distinct=True))
            .order_by('trainer_id')
        )
        created = 0
        for row in rows:
            for milestone in CLIENT_MILESTONES:
                if row['clients'] < milestone:
                    break
                created += AwardsService._grant(
                    row['trainer_id'], AwardType.CLIENT_MILESTONE,
                    name=f"{milestone} Clients Milestone",
                    description=f"Served {milestone} clients",
                    badge_icon='users',
                    points=milestone * 10,
                    metadata={'milestone': milestone, 'month': month, 'year': year},
                    milestone=milestone,
                )
        return created

    @staticmethod
    def _award_revenue_milestones(year, month) -> int:
        rows = (
            _paid_orders().values('trainer_id')
            .annotate(revenue=Sum('total_amount'))
            .order_by('trainer_id')
        )
        created = 0
        for row in rows:
            revenue = row['revenue'] or 0
            for milestone in REVENUE_MILESTONES:
                if revenue < milestone:
                    break
                created += AwardsService._grant(
                    row['trainer_id'], AwardType.REVENUE_MILESTONE,
                    name=f"£{milestone // 1000}k Revenue Milestone",
                    description=f"Reached £{milestone:,} in lifetime sales",
                    badge_icon='pound',
                    points=milestone // 10,
                    metadata={'milestone': milestone, 'month': month, 'year': year},
                    milestone=milestone,
                )
        return created

    # ==================== Reports ====================

    @staticmethod
    def get_monthly_summary(year: int, month: int) -> Dict[str, Any]:
        """Awards granted by the run for a month."""
        awards: List[TrainerAward] = list(
            TrainerAward.objects.filter(
                Q(period_year=year, period_month=month)
                | Q(metadata__year=year, metadata__month=month)
            ).order_by('award_type', 'trainer_id')
        )
        by_type = {}
        for award in awards:
            by_type[award.award_type] = by_type.get(award.award_type, 0) + 1
        return {
            'year': year,
            'month': month,
            'awards': awards,
            'by_type': by_type,
            'total_awards': len(awards),
            'total_points': sum(award.points_awarded for award in awards),
        }
