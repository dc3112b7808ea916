"""
Tests for commission rate resolution and bundle pricing.
"""
import pytest
from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.utils import timezone


@pytest.mark.django_db
class TestResolve:
    """Tests for CommissionService.resolve."""

    def test_base_rate_only(self, platform_settings):
        """Without a promotion the base rate applies."""
        from earnings.services import CommissionService

        result = CommissionService.resolve('prod-rack', Decimal('699.95'))
        assert result.base_rate == Decimal('0.1000')
        assert result.bonus_rate == Decimal('0')
        assert result.effective_commission == Decimal('70.00')

    def test_promotion_adds_bonus(self, platform_settings, promotion):
        """An active promotion stacks on the base rate and rounds half up."""
        from earnings.services import CommissionService

        result = CommissionService.resolve('prod-protein', Decimal('24.95'))
        assert result.total_rate == Decimal('0.3000')
        assert result.effective_commission == Decimal('7.49')

    def test_expired_promotion_ignored(self, platform_settings, promotion):
        """Resolution at a moment outside the window uses the base rate."""
        from earnings.services import CommissionService

        result = CommissionService.resolve(
            'prod-protein', Decimal('24.95'), as_of=timezone.now() + timedelta(days=60)
        )
        assert result.bonus_rate == Decimal('0')
        assert result.effective_commission == Decimal('2.50')

    def test_base_rate_change_applies(self, platform_settings):
        """The rate in force at resolution time is used."""
        from earnings.services import CommissionService

        ok, error = CommissionService.update_settings(base_commission_rate=Decimal('0.1500'))
        assert ok and error is None
        assert CommissionService.resolve('p', Decimal('100')).effective_commission == Decimal('15.00')

    def test_invalid_rate_refused(self, platform_settings):
        from earnings.services import CommissionService

        ok, error = CommissionService.update_settings(base_commission_rate=Decimal('1.5'))
        assert ok is False
        assert error

    def test_negative_price_rejected(self, platform_settings):
        from earnings.services import CommissionService

        with pytest.raises(ValidationError):
            CommissionService.resolve('p', Decimal('-1'))

    def test_resolve_many_keeps_order(self, platform_settings, promotion):
        """Batch resolution returns one result per input, in order."""
        from earnings.services import CommissionService

        results = CommissionService.resolve_many(
            ['prod-rack', 'prod-protein'], [Decimal('699.95'), Decimal('24.95')]
        )
        assert [r.product_id for r in results] == ['prod-rack', 'prod-protein']
        assert [r.effective_commission for r in results] == [Decimal('70.00'), Decimal('7.49')]

    def test_resolve_many_length_mismatch(self, platform_settings):
        from earnings.services import CommissionService

        with pytest.raises(ValidationError):
            CommissionService.resolve_many(['a', 'b'], [Decimal('1')])


@pytest.mark.django_db
class TestPromotions:
    """Tests for promotion management."""

    def test_create_promotion(self, db):
        from earnings.services import CommissionService

        promo, error = CommissionService.create_promotion('prod-bands', Decimal('0.05'))
        assert error is None
        assert CommissionService.get_promotion(promo.pk) == promo

    def test_overlapping_promotion_refused(self, promotion):
        """Only one promotion per product may be active at a time."""
        from earnings.services import CommissionService

        promo, error = CommissionService.create_promotion(
            promotion.product_id, Decimal('0.10'), valid_from=timezone.now()
        )
        assert promo is None
        assert 'overlaps' in error

    def test_get_promotion_not_found(self, db):
        from earnings.services import CommissionService

        assert CommissionService.get_promotion(99999) is None


@pytest.mark.django_db
class TestPriceBundle:
    """Tests for whole-bundle pricing."""

    def test_products_and_services(self, platform_settings, promotion, bundle_items):
        """Product lines earn commission, service lines are kept in full."""
        from earnings.services import CommissionService

        bundle = CommissionService.price_bundle(bundle_items)
        assert bundle.product_commission == Decimal('77.49')
        assert bundle.service_revenue == Decimal('75.00')
        assert bundle.total_earnings == Decimal('152.49')
        assert [line.amount for line in bundle.lines] == [
            Decimal('7.49'), Decimal('70.00'), Decimal('75.00')
        ]

    def test_quantity_multiplies_price(self, platform_settings):
        from earnings.services import CommissionService

        bundle = CommissionService.price_bundle([
            {'type': 'product', 'product_id': 'p', 'name': 'Bands', 'quantity': 3,
             'unit_price': Decimal('10.00')},
        ])
        assert bundle.product_commission == Decimal('3.00')

    def test_unknown_line_type(self, platform_settings):
        from earnings.services import CommissionService

        with pytest.raises(ValidationError):
            CommissionService.price_bundle([{'type': 'gift', 'name': 'x', 'unit_price': 1}])
