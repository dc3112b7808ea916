"""
Tests for trainer earnings models.
"""
import pytest
from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError
from django.utils import timezone


@pytest.mark.django_db
class TestPlatformSettings:
    """Tests for the settings singleton."""

    def test_get_settings_creates_defaults(self):
        """Settings are created on first access with the module defaults."""
        from earnings.models import PlatformSettings

        settings = PlatformSettings.get_settings()
        assert settings.pk == 1
        assert settings.base_commission_rate == Decimal('0.1000')
        assert settings.default_delivery_lead_days == 7
        assert settings.send_delivery_reminders is True

    def test_get_settings_returns_same_row(self, platform_settings):
        """Repeated access returns the singleton."""
        from earnings.models import PlatformSettings

        platform_settings.base_commission_rate = Decimal('0.1200')
        platform_settings.save()
        assert PlatformSettings.get_settings().base_commission_rate == Decimal('0.1200')
        assert PlatformSettings.objects.count() == 1


@pytest.mark.django_db
class TestProductPromotion:
    """Tests for promotion windows."""

    def test_is_active_at(self, promotion):
        """A promotion is active inside its window only."""
        now = timezone.now()
        assert promotion.is_active_at(now)
        assert not promotion.is_active_at(now - timedelta(days=2))
        assert not promotion.is_active_at(now + timedelta(days=31))

    def test_open_ended_promotion(self, db):
        """Missing bounds are unbounded."""
        from earnings.models import ProductPromotion

        promo = ProductPromotion(product_id='p', bonus_rate=Decimal('0.05'))
        assert promo.is_active_at(timezone.now() - timedelta(days=3650))

    def test_clean_rejects_inverted_window(self, db):
        """End before start is invalid."""
        from earnings.models import ProductPromotion

        now = timezone.now()
        promo = ProductPromotion(
            product_id='p', bonus_rate=Decimal('0.05'),
            valid_from=now, valid_until=now - timedelta(days=1),
        )
        with pytest.raises(ValidationError):
            promo.full_clean()

    def test_clean_rejects_overlap(self, promotion):
        """Two promotions for one product may not overlap."""
        from earnings.models import ProductPromotion

        clash = ProductPromotion(
            product_id=promotion.product_id, bonus_rate=Decimal('0.10'),
            valid_from=promotion.valid_from + timedelta(days=5),
        )
        with pytest.raises(ValidationError):
            clash.full_clean()

    def test_adjacent_promotion_allowed(self, promotion):
        """A promotion starting after the current one ends is fine."""
        from earnings.models import ProductPromotion

        later = ProductPromotion(
            product_id=promotion.product_id, bonus_rate=Decimal('0.10'),
            valid_from=promotion.valid_until + timedelta(seconds=1),
            valid_until=promotion.valid_until + timedelta(days=10),
        )
        later.full_clean()


@pytest.mark.django_db
class TestEarningRecord:
    """Tests for the earnings ledger row."""

    def test_total_is_sum_of_parts(self, db):
        """Saving recomputes the total from its components."""
        from earnings.models import EarningRecord

        record = EarningRecord.objects.create(
            order_id='ORD-X', trainer_id=1,
            product_commission=Decimal('7.49'),
            service_revenue=Decimal('75.00'),
            total_earnings=Decimal('0'),
            order_total=Decimal('99.95'),
        )
        record.refresh_from_db()
        assert record.total_earnings == Decimal('82.49')
        assert record.status == 'pending'

    def test_order_id_unique(self, db):
        """One record per order."""
        from earnings.models import EarningRecord

        fields = dict(
            trainer_id=1, product_commission=Decimal('1.00'),
            service_revenue=Decimal('0'), order_total=Decimal('10.00'),
        )
        EarningRecord.objects.create(order_id='ORD-DUP', **fields)
        with pytest.raises(IntegrityError):
            EarningRecord.objects.create(order_id='ORD-DUP', **fields)


@pytest.mark.django_db
class TestTrainerAward:
    """Tests for award identity constraints."""

    def test_milestone_unique_per_trainer(self, db):
        """The same milestone cannot be awarded twice."""
        from earnings.models import TrainerAward

        TrainerAward.objects.create(
            trainer_id=1, award_type='client_milestone', award_name='10 Clients', milestone=10
        )
        with pytest.raises(IntegrityError):
            TrainerAward.objects.create(
                trainer_id=1, award_type='client_milestone', award_name='10 Clients', milestone=10
            )

    def test_monthly_award_unique_per_period(self, db):
        """A monthly award exists once per month."""
        from earnings.models import TrainerAward

        TrainerAward.objects.create(
            trainer_id=1, award_type='monthly_top_seller', award_name='Top',
            period_year=2024, period_month=3,
        )
        TrainerAward.objects.create(
            trainer_id=1, award_type='monthly_top_seller', award_name='Top',
            period_year=2024, period_month=4,
        )
        with pytest.raises(IntegrityError):
            TrainerAward.objects.create(
                trainer_id=1, award_type='monthly_top_seller', award_name='Top',
                period_year=2024, period_month=3,
            )


@pytest.mark.django_db
class TestDerivedAmounts:
    """Tests for computed model properties."""

    def test_partnership_monthly_commission(self, partnership):
        """Gold package pays 20% of the fee."""
        assert partnership.monthly_commission == Decimal('99.8000')

    def test_order_line_total(self, order):
        """Line total is price times quantity."""
        line = order.line_items.get(product_id='prod-rack')
        assert line.line_total == Decimal('699.95')

    def test_user_contact_manager_roles(self, contacts):
        """Managers and coordinators count as managers."""
        assert contacts['manager'].is_manager
        assert not contacts['trainer'].is_manager
