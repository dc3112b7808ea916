"""
Order Service - intake of order and payment events from the commerce platform.
"""
import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from ..models import CatalogProduct, EarningRecord, LineItemType, Order, OrderLineItem
from .delivery_service import DeliveryService
from .earnings_service import EarningsService

logger = logging.getLogger(__name__)


class OrderService:
    """Service class for order events."""

    @staticmethod
    def get_order(order_id: str) -> Optional[Order]:
        try:
            return Order.objects.prefetch_related('line_items').get(order_id=order_id)
        except Order.DoesNotExist:
            return None

    @staticmethod
    @transaction.atomic
    def record_order(
        order_id: str,
        trainer_id: int,
        line_items: List[dict],
        total_amount: Decimal,
        client_id: Optional[int] = None,
        client_name: str = '',
        bundle_id: str = '',
        bundle_title: str = '',
    ) -> Tuple[Order, bool]:
        """Store an incoming order once. Returns ``(order, created)``."""
        existing = OrderService.get_order(order_id)
        if existing is not None:
            return existing, False

        for item in line_items:
            if item.get('type') not in LineItemType.values:
                raise ValidationError(f"Unknown line item type '{item.get('type')}'.")
            if Decimal(item['unit_price']) < 0 or int(item.get('quantity', 1)) < 0:
                raise ValidationError("Line item price and quantity must not be negative.")

        order = Order.objects.create(
            order_id=order_id,
            trainer_id=trainer_id,
            client_id=client_id,
            client_name=client_name,
            bundle_id=bundle_id,
            bundle_title=bundle_title,
            total_amount=Decimal(total_amount),
        )
        OrderLineItem.objects.bulk_create([
            OrderLineItem(
                order=order,
                item_type=item['type'],
                product_id=str(item.get('product_id') or ''),
                name=item.get('name', ''),
                quantity=int(item.get('quantity', 1)),
                unit_price=Decimal(item['unit_price']),
            )
            for item in line_items
        ])
        logger.info("Recorded order %s for trainer %s", order_id, trainer_id)
        return order, True

    @staticmethod
    def mark_paid(order_id: str) -> Optional[EarningRecord]:
        """
        Handle payment confirmation for a recorded order.

        Books the trainer's earnings and creates the service and product
        deliveries. Duplicate confirmations return the existing earning record.
        """
        order = OrderService.get_order(order_id)
        if order is None:
            logger.warning("Payment confirmed for unknown order %s", order_id)
            return None

        with transaction.atomic():
            now = timezone.now()
            updated = Order.objects.filter(pk=order.pk, payment_status='pending').update(
                payment_status='paid', paid_at=now, updated_at=now,
            )
            if not updated:
                logger.info("Order %s already %s; skipping", order_id, order.payment_status)
                return EarningsService.get_earning(order_id)

            items = list(order.line_items.all())
            record, _ = EarningsService.record_order_earnings(
                order_id=order.order_id,
                trainer_id=order.trainer_id,
                line_items=[
                    {
                        'type': item.item_type,
                        'product_id': item.product_id,
                        'name': item.name,
                        'quantity': item.quantity,
                        'unit_price': item.unit_price,
                        'order_item_id': item.pk,
                    }
                    for item in items
                ],
                order_total=order.total_amount,
                bundle_id=order.bundle_id,
                bundle_title=order.bundle_title,
                client_id=order.client_id,
                client_name=order.client_name,
            )

            services = [item for item in items if item.item_type == LineItemType.SERVICE]
            DeliveryService.create_service_deliveries(order, services)

            if order.client_id is not None:
                DeliveryService.create_deliveries(order, OrderService._needs_trainer_delivery(items))
        return record

    @staticmethod
    def _needs_trainer_delivery(items: List[OrderLineItem]) -> List[OrderLineItem]:
        products = [item for item in items if item.item_type == LineItemType.PRODUCT]
        self_fulfilled = set(
            CatalogProduct.objects.filter(
                product_id__in=[item.product_id for item in products],
                requires_trainer_delivery=False,
            ).values_list('product_id', flat=True)
        )
        return [item for item in products if item.product_id not in self_fulfilled]
