"""
Delivery Service - trainer-to-client product handoff workflow.

Every transition is a single conditional UPDATE guarded by the current state and
the acting party, so concurrent actors race at the database and exactly one
wins. Losers get a rejected ``TransitionResult``, never an exception.
"""
import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Count, F
from django.utils import timezone

from .. import module
from ..models import (
    DeliveryMethod,
    DeliveryStatus,
    EarningLineItem,
    LineItemType,
    Order,
    PlatformSettings,
    ProductDelivery,
    RescheduleStatus,
    ResolutionType,
    ServiceDelivery,
)
from ..notifications import notify_delivery_reminder
from .commission_service import to_money
from .earnings_service import EarningsService
from .results import TransitionResult

logger = logging.getLogger(__name__)

DELIVERY_TRANSITIONS = {
    DeliveryStatus.PENDING: frozenset({DeliveryStatus.READY, DeliveryStatus.DELIVERED}),
    DeliveryStatus.READY: frozenset({DeliveryStatus.DELIVERED}),
    DeliveryStatus.DELIVERED: frozenset({DeliveryStatus.CONFIRMED, DeliveryStatus.DISPUTED}),
    DeliveryStatus.DISPUTED: frozenset({DeliveryStatus.DELIVERED, DeliveryStatus.CONFIRMED}),
    DeliveryStatus.CONFIRMED: frozenset(),
}

OPEN_STATUSES = (DeliveryStatus.PENDING, DeliveryStatus.READY)
RESCHEDULABLE = (RescheduleStatus.NONE, RescheduleStatus.REJECTED)
REMINDER_WINDOW = tuple(timedelta(hours=h) for h in module.SETTINGS['reminder_window_hours'])


def can_transition(current: str, target: str) -> bool:
    return target in DELIVERY_TRANSITIONS[current]


def sources_for(target: str) -> FrozenSet[str]:
    """States from which ``target`` may be reached."""
    return frozenset(s for s, targets in DELIVERY_TRANSITIONS.items() if target in targets)


class DeliveryService:
    """Service class for the product delivery workflow."""

    # ==================== Creation ====================

    @staticmethod
    def create_deliveries(
        order: Order,
        line_items: Iterable,
        scheduled_date: Optional[datetime] = None,
    ) -> List[ProductDelivery]:
        """One pending delivery per order line needing trainer handoff."""
        if scheduled_date is None:
            lead_days = PlatformSettings.get_settings().default_delivery_lead_days
            scheduled_date = timezone.now() + timedelta(days=lead_days)

        deliveries = [
            ProductDelivery.objects.create(
                order=order,
                order_item=item,
                trainer_id=order.trainer_id,
                client_id=order.client_id,
                product_name=item.name,
                quantity=item.quantity,
                scheduled_date=scheduled_date,
            )
            for item in line_items
        ]
        if deliveries:
            logger.info("Created %d deliveries for order %s", len(deliveries), order.order_id)
        return deliveries

    # ==================== Transitions ====================

    @staticmethod
    def _transition(
        delivery_id: int,
        target: str,
        sources: Iterable[str],
        owner: Dict[str, Any],
        **fields
    ) -> TransitionResult:
        updated = ProductDelivery.objects.filter(
            pk=delivery_id, status__in=list(sources), **owner
        ).update(status=target, updated_at=timezone.now(), **fields)
        if not updated:
            return DeliveryService._rejected(delivery_id, owner, target)
        delivery = ProductDelivery.objects.get(pk=delivery_id)
        logger.info("Delivery %s -> %s", delivery_id, target)
        return TransitionResult(applied=True, status=target, record=delivery)

    @staticmethod
    def _rejected(delivery_id: int, owner: Dict[str, Any], attempted: str) -> TransitionResult:
        current = ProductDelivery.objects.filter(pk=delivery_id, **owner).values_list(
            'status', flat=True
        ).first()
        logger.warning(
            "Delivery %s: %s rejected (status %s, actor %s)", delivery_id, attempted, current, owner
        )
        return TransitionResult.rejected(current)

    @staticmethod
    def mark_ready(delivery_id: int, trainer_id: int) -> TransitionResult:
        return DeliveryService._transition(
            delivery_id, DeliveryStatus.READY,
            sources_for(DeliveryStatus.READY),
            {'trainer_id': trainer_id},
        )

    @staticmethod
    def mark_delivered(
        delivery_id: int,
        trainer_id: int,
        notes: str = '',
        method: str = '',
        tracking_number: str = '',
    ) -> TransitionResult:
        if method and method not in DeliveryMethod.values:
            raise ValidationError(f"Unknown delivery method '{method}'.")
        return DeliveryService._transition(
            delivery_id, DeliveryStatus.DELIVERED,
            sources_for(DeliveryStatus.DELIVERED) - {DeliveryStatus.DISPUTED},
            {'trainer_id': trainer_id},
            delivered_at=timezone.now(),
            trainer_notes=notes or '',
            delivery_method=method or '',
            tracking_number=tracking_number or '',
        )

    @staticmethod
    def redeliver(
        delivery_id: int,
        trainer_id: int,
        notes: str = '',
        method: str = '',
        tracking_number: str = '',
    ) -> TransitionResult:
        """Hand a disputed item over again; the client confirms or disputes afresh."""
        if method and method not in DeliveryMethod.values:
            raise ValidationError(f"Unknown delivery method '{method}'.")
        return DeliveryService._transition(
            delivery_id, DeliveryStatus.DELIVERED,
            {DeliveryStatus.DISPUTED},
            {'trainer_id': trainer_id},
            delivered_at=timezone.now(),
            trainer_notes=notes or '',
            delivery_method=method or '',
            tracking_number=tracking_number or '',
        )

    @staticmethod
    def confirm_receipt(delivery_id: int, client_id: int, notes: str = '') -> TransitionResult:
        return DeliveryService._transition(
            delivery_id, DeliveryStatus.CONFIRMED,
            sources_for(DeliveryStatus.CONFIRMED) - {DeliveryStatus.DISPUTED},
            {'client_id': client_id},
            confirmed_at=timezone.now(),
            client_notes=notes or '',
        )

    @staticmethod
    def report_issue(delivery_id: int, client_id: int, notes: str) -> TransitionResult:
        """
        Client disputes a delivered item.

        The applied result carries the delivery (product name, trainer) so the
        caller can alert the trainer and managers.
        """
        return DeliveryService._transition(
            delivery_id, DeliveryStatus.DISPUTED,
            sources_for(DeliveryStatus.DISPUTED),
            {'client_id': client_id},
            client_notes=notes,
        )

    @staticmethod
    def resolve_dispute(
        delivery_id: int,
        manager_id: int,
        resolution_type: str,
        notes: str = '',
    ) -> TransitionResult:
        """
        Close a dispute. Resolved deliveries are ``confirmed`` with resolution details.

        A full refund also books a negative refund adjustment for the commission
        earned on the delivered quantity.
        """
        if resolution_type not in ResolutionType.values:
            raise ValidationError(f"Unknown resolution type '{resolution_type}'.")

        with transaction.atomic():
            result = DeliveryService._transition(
                delivery_id, DeliveryStatus.CONFIRMED,
                {DeliveryStatus.DISPUTED},
                {},
                resolved_at=timezone.now(),
                resolved_by_id=manager_id,
                resolution_type=resolution_type,
                resolution_notes=notes or '',
            )
            if result and resolution_type == ResolutionType.REFUND:
                DeliveryService._book_refund(result.record, manager_id)
        return result

    @staticmethod
    def _book_refund(delivery: ProductDelivery, manager_id: int) -> None:
        item = delivery.order_item
        if item is None or not item.product_id:
            return
        line = EarningLineItem.objects.filter(
            earning__order_id=delivery.order.order_id,
            item_type=LineItemType.PRODUCT,
            product_id=item.product_id,
        ).select_related('earning').first()
        if line is None or not line.quantity:
            return

        commission = to_money(line.amount * Decimal(delivery.quantity) / Decimal(line.quantity))
        EarningsService.create_adjustment(
            trainer_id=delivery.trainer_id,
            adjustment_type='refund_adjustment',
            amount=-commission,
            reason=f"Refund for disputed delivery of {delivery.product_name}",
            earning=line.earning,
            delivery=delivery,
            created_by_id=manager_id,
        )

    @staticmethod
    def schedule(delivery_id: int, trainer_id: int, scheduled_date: datetime) -> TransitionResult:
        updated = ProductDelivery.objects.filter(
            pk=delivery_id, trainer_id=trainer_id, status__in=OPEN_STATUSES,
        ).update(scheduled_date=scheduled_date, updated_at=timezone.now())
        if not updated:
            return DeliveryService._rejected(delivery_id, {'trainer_id': trainer_id}, 'schedule')
        delivery = ProductDelivery.objects.get(pk=delivery_id)
        return TransitionResult(applied=True, status=delivery.status, record=delivery)

    # ==================== Reschedule negotiation ====================

    @staticmethod
    def _reschedule(
        delivery_id: int,
        owner: Dict[str, Any],
        sources: Iterable[str],
        target: str,
        extra_filters: Optional[Dict[str, Any]] = None,
        **fields
    ) -> TransitionResult:
        filters = dict(extra_filters or {})
        updated = ProductDelivery.objects.filter(
            pk=delivery_id, reschedule_status__in=list(sources), **owner, **filters
        ).update(reschedule_status=target, updated_at=timezone.now(), **fields)
        if not updated:
            current = ProductDelivery.objects.filter(pk=delivery_id, **owner).values_list(
                'reschedule_status', flat=True
            ).first()
            logger.warning(
                "Delivery %s: reschedule %s rejected (reschedule status %s)",
                delivery_id, target, current,
            )
            return TransitionResult.rejected(current)
        delivery = ProductDelivery.objects.get(pk=delivery_id)
        return TransitionResult(applied=True, status=target, record=delivery)

    @staticmethod
    def request_reschedule(
        delivery_id: int,
        client_id: int,
        proposed_date: datetime,
        reason: str,
    ) -> TransitionResult:
        """Client proposes a new date. Only one request may be outstanding."""
        return DeliveryService._reschedule(
            delivery_id, {'client_id': client_id},
            RESCHEDULABLE, RescheduleStatus.PENDING,
            extra_filters={'status__in': OPEN_STATUSES},
            reschedule_requested_at=timezone.now(),
            reschedule_requested_date=proposed_date,
            reschedule_reason=reason,
            reschedule_response_at=None,
            reschedule_response_note='',
        )

    @staticmethod
    def approve_reschedule(delivery_id: int, trainer_id: int, note: str = '') -> TransitionResult:
        return DeliveryService._reschedule(
            delivery_id, {'trainer_id': trainer_id},
            [RescheduleStatus.PENDING], RescheduleStatus.APPROVED,
            scheduled_date=F('reschedule_requested_date'),
            reschedule_response_at=timezone.now(),
            reschedule_response_note=note or '',
        )

    @staticmethod
    def reject_reschedule(delivery_id: int, trainer_id: int, note: str = '') -> TransitionResult:
        return DeliveryService._reschedule(
            delivery_id, {'trainer_id': trainer_id},
            [RescheduleStatus.PENDING], RescheduleStatus.REJECTED,
            reschedule_response_at=timezone.now(),
            reschedule_response_note=note or '',
        )

    # ==================== Queries ====================

    @staticmethod
    def get_delivery(delivery_id: int) -> Optional[ProductDelivery]:
        try:
            return ProductDelivery.objects.select_related('order', 'order_item').get(pk=delivery_id)
        except ProductDelivery.DoesNotExist:
            return None

    @staticmethod
    def get_pending_for_trainer(trainer_id: int) -> List[ProductDelivery]:
        return list(
            ProductDelivery.objects.filter(trainer_id=trainer_id, status__in=OPEN_STATUSES)
            .order_by('scheduled_date', 'id')
        )

    @staticmethod
    def get_for_trainer(
        trainer_id: int,
        status: Optional[str] = None,
        client_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ProductDelivery]:
        qs = ProductDelivery.objects.filter(trainer_id=trainer_id)
        if status:
            qs = qs.filter(status=status)
        if client_id:
            qs = qs.filter(client_id=client_id)
        if start:
            qs = qs.filter(scheduled_date__gte=start)
        if end:
            qs = qs.filter(scheduled_date__lte=end)
        return list(qs.order_by('-scheduled_date', '-id'))

    @staticmethod
    def get_for_client(client_id: int, status: Optional[str] = None) -> List[ProductDelivery]:
        qs = ProductDelivery.objects.filter(client_id=client_id)
        if status:
            qs = qs.filter(status=status)
        return list(qs.order_by('-scheduled_date', '-id'))

    @staticmethod
    def get_all(
        status: Optional[str] = None,
        trainer_id: Optional[int] = None,
        client_id: Optional[int] = None,
    ) -> List[ProductDelivery]:
        """Manager view over every delivery."""
        qs = ProductDelivery.objects.all()
        if status:
            qs = qs.filter(status=status)
        if trainer_id:
            qs = qs.filter(trainer_id=trainer_id)
        if client_id:
            qs = qs.filter(client_id=client_id)
        return list(qs.order_by('-scheduled_date', '-id'))

    @staticmethod
    def get_disputed() -> List[ProductDelivery]:
        return list(
            ProductDelivery.objects.filter(status=DeliveryStatus.DISPUTED).order_by('updated_at')
        )

    @staticmethod
    def get_stats(trainer_id: int) -> Dict[str, int]:
        counts = dict(
            ProductDelivery.objects.filter(trainer_id=trainer_id)
            .order_by()
            .values_list('status')
            .annotate(count=Count('id'))
        )
        stats = {status: counts.get(status, 0) for status in DeliveryStatus.values}
        stats['total'] = sum(counts.values())
        return stats

    @staticmethod
    def get_reschedule_requests(trainer_id: int) -> List[ProductDelivery]:
        return list(
            ProductDelivery.objects.filter(
                trainer_id=trainer_id, reschedule_status=RescheduleStatus.PENDING,
            ).order_by('reschedule_requested_at')
        )

    # ==================== Reminders ====================

    @staticmethod
    def send_delivery_reminders(now: Optional[datetime] = None) -> Dict[str, Any]:
        """Text clients whose delivery is scheduled roughly a day from now."""
        results = {'checked': 0, 'sent': 0, 'failed': 0, 'details': []}
        if not PlatformSettings.get_settings().send_delivery_reminders:
            logger.info("Delivery reminders disabled; skipping")
            return results

        now = now or timezone.now()
        due = ProductDelivery.objects.filter(
            status__in=OPEN_STATUSES,
            scheduled_date__gte=now + REMINDER_WINDOW[0],
            scheduled_date__lte=now + REMINDER_WINDOW[1],
        ).order_by('scheduled_date', 'id')

        for delivery in due:
            results['checked'] += 1
            sent = notify_delivery_reminder(delivery)
            results['sent' if sent else 'failed'] += 1
            results['details'].append({'delivery_id': delivery.pk, 'sent': sent})

        logger.info(
            "Delivery reminders: %d checked, %d sent, %d failed",
            results['checked'], results['sent'], results['failed'],
        )
        return results

    # ==================== Service sessions ====================

    @staticmethod
    def create_service_deliveries(order: Order, line_items: Iterable) -> List[ServiceDelivery]:
        return [
            ServiceDelivery.objects.create(
                order=order,
                trainer_id=order.trainer_id,
                client_id=order.client_id,
                service_name=item.name,
                service_type=item.product_id,
                total_quantity=item.quantity,
                price_per_unit=item.unit_price,
            )
            for item in line_items
        ]

    @staticmethod
    def record_session(service_delivery_id: int, trainer_id: int, quantity: int = 1) -> TransitionResult:
        """Count delivered sessions; completes the service once all are delivered."""
        if quantity <= 0:
            raise ValidationError("Session quantity must be positive.")

        with transaction.atomic():
            updated = ServiceDelivery.objects.filter(
                pk=service_delivery_id,
                trainer_id=trainer_id,
                delivered_quantity__lte=F('total_quantity') - quantity,
            ).exclude(status='completed').update(
                delivered_quantity=F('delivered_quantity') + quantity,
                status='in_progress',
                updated_at=timezone.now(),
            )
            if not updated:
                current = ServiceDelivery.objects.filter(
                    pk=service_delivery_id, trainer_id=trainer_id,
                ).values_list('status', flat=True).first()
                return TransitionResult.rejected(current)

            ServiceDelivery.objects.filter(
                pk=service_delivery_id, delivered_quantity=F('total_quantity'),
            ).update(status='completed', completed_at=timezone.now())

        service = ServiceDelivery.objects.get(pk=service_delivery_id)
        return TransitionResult(applied=True, status=service.status, record=service)
