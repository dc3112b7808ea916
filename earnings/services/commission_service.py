"""
Commission Service - resolves trainer commission rates and prices bundles.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db.models import Q
from django.utils import timezone

from ..models import LineItemType, PlatformSettings, ProductPromotion

logger = logging.getLogger(__name__)

MONEY = Decimal('0.01')


def to_money(value) -> Decimal:
    return Decimal(value).quantize(MONEY, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CommissionResolution:
    product_id: str
    price: Decimal
    base_rate: Decimal
    bonus_rate: Decimal
    total_rate: Decimal
    effective_commission: Decimal


@dataclass
class PricedLine:
    item_type: str
    name: str
    quantity: int
    unit_price: Decimal
    amount: Decimal
    product_id: str = ''
    order_item_id: Optional[int] = None
    resolution: Optional[CommissionResolution] = None


@dataclass
class BundleCommission:
    lines: List[PricedLine] = field(default_factory=list)
    product_commission: Decimal = Decimal('0.00')
    service_revenue: Decimal = Decimal('0.00')

    @property
    def total_earnings(self) -> Decimal:
        return self.product_commission + self.service_revenue


class CommissionService:
    """Service class for commission rate resolution."""

    # ==================== Settings ====================

    @staticmethod
    def get_settings() -> PlatformSettings:
        """Get or create the singleton platform settings."""
        return PlatformSettings.get_settings()

    @staticmethod
    def update_settings(**kwargs) -> Tuple[bool, Optional[str]]:
        """Update platform settings."""
        settings = CommissionService.get_settings()
        for key, value in kwargs.items():
            if hasattr(settings, key):
                setattr(settings, key, value)
        try:
            settings.full_clean()
        except ValidationError as e:
            return False, '; '.join(e.messages)
        settings.save()
        logger.info("Platform settings updated: %s", ', '.join(sorted(kwargs)))
        return True, None

    @staticmethod
    def get_base_rate() -> Decimal:
        return CommissionService.get_settings().base_commission_rate

    # ==================== Promotions ====================

    @staticmethod
    def get_promotions(product_id: Optional[str] = None) -> List[ProductPromotion]:
        """Get promotions, optionally for one product."""
        qs = ProductPromotion.objects.all()
        if product_id:
            qs = qs.filter(product_id=product_id)
        return list(qs.order_by('product_id', 'valid_from', 'id'))

    @staticmethod
    def get_promotion(promotion_id: int) -> Optional[ProductPromotion]:
        try:
            return ProductPromotion.objects.get(pk=promotion_id)
        except ProductPromotion.DoesNotExist:
            return None

    @staticmethod
    def create_promotion(
        product_id: str,
        bonus_rate: Decimal,
        valid_from: Optional[datetime] = None,
        valid_until: Optional[datetime] = None,
        description: str = '',
    ) -> Tuple[Optional[ProductPromotion], Optional[str]]:
        """Create a promotion. Overlapping promotions for a product are refused."""
        promotion = ProductPromotion(
            product_id=product_id,
            bonus_rate=bonus_rate,
            valid_from=valid_from,
            valid_until=valid_until,
            description=description,
        )
        try:
            promotion.full_clean()
        except ValidationError as e:
            return None, '; '.join(e.messages)
        promotion.save()
        return promotion, None

    @staticmethod
    def update_promotion(promotion: ProductPromotion, **kwargs) -> Tuple[bool, Optional[str]]:
        for key, value in kwargs.items():
            if hasattr(promotion, key):
                setattr(promotion, key, value)
        try:
            promotion.full_clean()
        except ValidationError as e:
            return False, '; '.join(e.messages)
        promotion.save()
        return True, None

    @staticmethod
    def delete_promotion(promotion: ProductPromotion) -> bool:
        promotion.delete()
        return True

    @staticmethod
    def _active_promotions(
        product_ids: Iterable[str],
        as_of: datetime,
    ) -> Dict[str, ProductPromotion]:
        """Active promotion per product. Several matches for one product is a data error."""
        qs = ProductPromotion.objects.filter(
            Q(valid_from__isnull=True) | Q(valid_from__lte=as_of),
            Q(valid_until__isnull=True) | Q(valid_until__gte=as_of),
            product_id__in=list(product_ids),
        ).order_by('product_id', 'valid_from', 'id')

        active = {}
        for promotion in qs:
            if promotion.product_id in active:
                logger.warning(
                    "Overlapping promotions for product %s at %s (kept #%s, ignored #%s)",
                    promotion.product_id, as_of.isoformat(),
                    active[promotion.product_id].pk, promotion.pk,
                )
                continue
            active[promotion.product_id] = promotion
        return active

    @staticmethod
    def get_active_promotion(
        product_id: str,
        as_of: Optional[datetime] = None,
    ) -> Optional[ProductPromotion]:
        as_of = as_of or timezone.now()
        return CommissionService._active_promotions([product_id], as_of).get(product_id)

    # ==================== Resolution ====================

    @staticmethod
    def _resolution(product_id, price, base_rate, promotion) -> CommissionResolution:
        price = Decimal(price)
        if price < 0:
            raise ValidationError(f"Price for product {product_id} must not be negative.")
        bonus_rate = promotion.bonus_rate if promotion else Decimal('0')
        total_rate = base_rate + bonus_rate
        return CommissionResolution(
            product_id=product_id,
            price=price,
            base_rate=base_rate,
            bonus_rate=bonus_rate,
            total_rate=total_rate,
            effective_commission=to_money(price * total_rate),
        )

    @staticmethod
    def resolve(
        product_id: str,
        price: Decimal,
        as_of: Optional[datetime] = None,
    ) -> CommissionResolution:
        """Commission for selling ``product_id`` at ``price`` at the given moment."""
        as_of = as_of or timezone.now()
        base_rate = CommissionService.get_base_rate()
        promotion = CommissionService.get_active_promotion(product_id, as_of)
        return CommissionService._resolution(product_id, price, base_rate, promotion)

    @staticmethod
    def resolve_many(
        product_ids: List[str],
        prices: List[Decimal],
        as_of: Optional[datetime] = None,
    ) -> List[CommissionResolution]:
        """One resolution per product, in input order."""
        if len(product_ids) != len(prices):
            raise ValidationError("Product and price lists must have the same length.")
        as_of = as_of or timezone.now()
        base_rate = CommissionService.get_base_rate()
        promotions = CommissionService._active_promotions(set(product_ids), as_of)
        return [
            CommissionService._resolution(pid, price, base_rate, promotions.get(pid))
            for pid, price in zip(product_ids, prices)
        ]

    @staticmethod
    def price_bundle(
        line_items: List[dict],
        as_of: Optional[datetime] = None,
    ) -> BundleCommission:
        """
        Price every line of a bundle.

        Product lines earn ``unit_price * quantity * rate``, each rounded to pence.
        Service lines are kept in full by the trainer. Each line is a dict with
        ``type``, ``name``, ``quantity``, ``unit_price`` and, for products,
        ``product_id``; an optional ``order_item_id`` is carried through.
        """
        products = []
        for item in line_items:
            item_type = item.get('type')
            if item_type not in LineItemType.values:
                raise ValidationError(f"Unknown line item type '{item_type}'.")
            if int(item.get('quantity', 1)) < 0:
                raise ValidationError("Line item quantity must not be negative.")
            if item_type == LineItemType.PRODUCT:
                products.append(item)

        resolutions = iter(CommissionService.resolve_many(
            [str(item.get('product_id', '')) for item in products],
            [Decimal(item['unit_price']) * int(item.get('quantity', 1)) for item in products],
            as_of,
        ))

        bundle = BundleCommission()
        for item in line_items:
            quantity = int(item.get('quantity', 1))
            unit_price = Decimal(item['unit_price'])
            line = PricedLine(
                item_type=item['type'],
                name=item.get('name', ''),
                quantity=quantity,
                unit_price=unit_price,
                amount=Decimal('0.00'),
                product_id=str(item.get('product_id') or ''),
                order_item_id=item.get('order_item_id'),
            )
            if line.item_type == LineItemType.PRODUCT:
                line.resolution = next(resolutions)
                line.amount = line.resolution.effective_commission
                bundle.product_commission += line.amount
            else:
                if unit_price < 0:
                    raise ValidationError(f"Price for service '{line.name}' must not be negative.")
                line.amount = to_money(unit_price * quantity)
                bundle.service_revenue += line.amount
            bundle.lines.append(line)
        return bundle
