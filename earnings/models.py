"""Trainer earnings module models."""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from . import module


class TimeStampedModel(models.Model):
    created_at = models.DateTimeField(_("Created At"), default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(_("Updated At"), auto_now=True)

    class Meta:
        abstract = True


# =============================================================================
# Enumerations
# =============================================================================

class Tier(models.TextChoices):
    BRONZE = 'bronze', _("Bronze")
    SILVER = 'silver', _("Silver")
    GOLD = 'gold', _("Gold")
    PLATINUM = 'platinum', _("Platinum")


class TransactionType(models.TextChoices):
    BUNDLE_SALE = 'bundle_sale', _("Bundle Sale")
    NEW_CLIENT_BONUS = 'new_client_bonus', _("New Client Bonus")
    CLIENT_RETENTION = 'client_retention', _("Client Retention")
    AD_PARTNERSHIP_SALE = 'ad_partnership_sale', _("Ad Partnership Sale")
    AD_PARTNERSHIP_RENEWAL = 'ad_partnership_renewal', _("Ad Partnership Renewal")
    UPSELL_BONUS = 'upsell_bonus', _("Upsell Bonus")
    MONTHLY_TARGET = 'monthly_target', _("Monthly Target")
    TIER_BONUS = 'tier_bonus', _("Tier Bonus")
    REFERRAL_BONUS = 'referral_bonus', _("Referral Bonus")
    REDEMPTION = 'redemption', _("Redemption")
    ADJUSTMENT = 'adjustment', _("Adjustment")
    EXPIRATION = 'expiration', _("Expiration")


class DeliveryStatus(models.TextChoices):
    PENDING = 'pending', _("Pending")
    READY = 'ready', _("Ready")
    DELIVERED = 'delivered', _("Delivered")
    CONFIRMED = 'confirmed', _("Confirmed")
    DISPUTED = 'disputed', _("Disputed")


class RescheduleStatus(models.TextChoices):
    NONE = 'none', _("None")
    PENDING = 'pending', _("Pending")
    APPROVED = 'approved', _("Approved")
    REJECTED = 'rejected', _("Rejected")


class ResolutionType(models.TextChoices):
    REFUND = 'refund', _("Refund")
    REDELIVER = 'redeliver', _("Redeliver")
    PARTIAL_REFUND = 'partial_refund', _("Partial Refund")
    CLOSED = 'closed', _("Closed")


class DeliveryMethod(models.TextChoices):
    IN_PERSON = 'in_person', _("In Person")
    LOCKER = 'locker', _("Locker")
    FRONT_DESK = 'front_desk', _("Front Desk")
    SHIPPED = 'shipped', _("Shipped")


class EarningStatus(models.TextChoices):
    PENDING = 'pending', _("Pending")
    CONFIRMED = 'confirmed', _("Confirmed")
    PAID = 'paid', _("Paid")


class PackageTier(models.TextChoices):
    BRONZE = 'bronze', _("Bronze")
    SILVER = 'silver', _("Silver")
    GOLD = 'gold', _("Gold")
    PLATINUM = 'platinum', _("Platinum")


class PartnershipStatus(models.TextChoices):
    PENDING = 'pending', _("Pending")
    ACTIVE = 'active', _("Active")
    PAUSED = 'paused', _("Paused")
    CANCELLED = 'cancelled', _("Cancelled")
    EXPIRED = 'expired', _("Expired")


class AwardType(models.TextChoices):
    TIER_ACHIEVED = 'tier_achieved', _("Tier Achieved")
    MONTHLY_TOP_SELLER = 'monthly_top_seller', _("Monthly Top Seller")
    CLIENT_MILESTONE = 'client_milestone', _("Client Milestone")
    REVENUE_MILESTONE = 'revenue_milestone', _("Revenue Milestone")
    PERFECT_DELIVERY = 'perfect_delivery', _("Perfect Delivery")
    FIVE_STAR_REVIEWS = 'five_star_reviews', _("Five Star Reviews")
    AD_CHAMPION = 'ad_champion', _("Ad Champion")
    RETENTION_MASTER = 'retention_master', _("Retention Master")


class LineItemType(models.TextChoices):
    PRODUCT = 'product', _("Product")
    SERVICE = 'service', _("Service")


# =============================================================================
# Settings
# =============================================================================

class PlatformSettings(TimeStampedModel):
    """Platform-wide earnings settings (singleton)."""

    base_commission_rate = models.DecimalField(
        _("Base Commission Rate"), max_digits=5, decimal_places=4,
        default=Decimal('0.1000'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('1'))],
        help_text=_("Fraction of the product price paid to the trainer (0.10 = 10%)")
    )
    default_delivery_lead_days = models.PositiveSmallIntegerField(
        _("Delivery Lead Time (days)"), default=7,
        help_text=_("Days between payment and the initially scheduled delivery date")
    )

    # Notifications
    notify_disputes = models.BooleanField(_("Notify Managers of Disputes"), default=True)
    notify_resolutions = models.BooleanField(_("Notify Clients of Resolutions"), default=True)
    send_delivery_reminders = models.BooleanField(_("Send Delivery Reminders"), default=True)

    class Meta:
        db_table = 'earnings_settings'
        verbose_name = _("Platform Settings")
        verbose_name_plural = _("Platform Settings")

    def __str__(self):
        return f"Platform Settings (base rate {self.base_commission_rate})"

    @classmethod
    def get_settings(cls):
        defaults = module.SETTINGS
        settings, _ = cls.objects.get_or_create(pk=1, defaults={
            'base_commission_rate': Decimal(str(defaults['base_commission_rate'])),
            'default_delivery_lead_days': defaults['default_delivery_lead_days'],
        })
        return settings


# =============================================================================
# Directory and catalog mirrors
# =============================================================================

class UserContact(TimeStampedModel):
    """Contact details for a platform user, mirrored from the user directory."""

    ROLE_CHOICES = [
        ('trainer', _("Trainer")),
        ('client', _("Client")),
        ('manager', _("Manager")),
        ('coordinator', _("Coordinator")),
    ]

    user_id = models.PositiveIntegerField(_("User ID"), unique=True)
    role = models.CharField(_("Role"), max_length=20, choices=ROLE_CHOICES, default='client')
    name = models.CharField(_("Name"), max_length=200, blank=True)
    phone = models.CharField(_("Phone"), max_length=32, blank=True)

    class Meta:
        db_table = 'earnings_user_contact'
        verbose_name = _("User Contact")
        verbose_name_plural = _("User Contacts")
        ordering = ['name']

    def __str__(self):
        return f"{self.name or self.user_id} ({self.get_role_display()})"

    @property
    def is_manager(self):
        return self.role in ('manager', 'coordinator')


class CatalogProduct(TimeStampedModel):
    """Catalog entry mirrored from the commerce platform."""

    product_id = models.CharField(_("Product ID"), max_length=64, unique=True)
    title = models.CharField(_("Title"), max_length=255)
    price = models.DecimalField(_("Price"), max_digits=10, decimal_places=2, default=Decimal('0.00'))
    requires_trainer_delivery = models.BooleanField(_("Requires Trainer Delivery"), default=True)

    class Meta:
        db_table = 'earnings_catalog_product'
        verbose_name = _("Catalog Product")
        verbose_name_plural = _("Catalog Products")
        ordering = ['title']

    def __str__(self):
        return self.title


# =============================================================================
# Commission promotions
# =============================================================================

class ProductPromotion(TimeStampedModel):
    """Time-boxed bonus commission rate for a single product."""

    product_id = models.CharField(_("Product ID"), max_length=64, db_index=True)
    bonus_rate = models.DecimalField(
        _("Bonus Rate"), max_digits=5, decimal_places=4,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('1'))],
        help_text=_("Added on top of the base rate (0.20 = +20%)")
    )
    valid_from = models.DateTimeField(_("Valid From"), null=True, blank=True)
    valid_until = models.DateTimeField(_("Valid Until"), null=True, blank=True)
    description = models.CharField(_("Description"), max_length=255, blank=True)

    class Meta:
        db_table = 'earnings_product_promotion'
        verbose_name = _("Product Promotion")
        verbose_name_plural = _("Product Promotions")
        ordering = ['product_id', 'valid_from', 'id']

    def __str__(self):
        return f"{self.product_id}: +{self.bonus_rate}"

    def is_active_at(self, moment):
        if self.valid_from and moment < self.valid_from:
            return False
        if self.valid_until and moment > self.valid_until:
            return False
        return True

    def overlapping(self):
        """Other promotions for the same product whose interval intersects this one."""
        qs = ProductPromotion.objects.filter(product_id=self.product_id).exclude(pk=self.pk)
        if self.valid_until:
            qs = qs.filter(Q(valid_from__isnull=True) | Q(valid_from__lte=self.valid_until))
        if self.valid_from:
            qs = qs.filter(Q(valid_until__isnull=True) | Q(valid_until__gte=self.valid_from))
        return qs

    def clean(self):
        if self.valid_from and self.valid_until and self.valid_until < self.valid_from:
            raise ValidationError(_("Promotion end must not precede its start."))
        if self.overlapping().exists():
            raise ValidationError(_("Another promotion for this product overlaps this period."))


# =============================================================================
# Orders
# =============================================================================

class Order(TimeStampedModel):
    """Order received from the commerce platform."""

    PAYMENT_STATUS_CHOICES = [
        ('pending', _("Pending")),
        ('paid', _("Paid")),
        ('refunded', _("Refunded")),
        ('cancelled', _("Cancelled")),
    ]

    order_id = models.CharField(_("Order ID"), max_length=64, unique=True)
    trainer_id = models.PositiveIntegerField(_("Trainer ID"), db_index=True)
    client_id = models.PositiveIntegerField(_("Client ID"), null=True, blank=True, db_index=True)
    client_name = models.CharField(_("Client Name"), max_length=200, blank=True)
    bundle_id = models.CharField(_("Bundle ID"), max_length=64, blank=True)
    bundle_title = models.CharField(_("Bundle Title"), max_length=255, blank=True)
    total_amount = models.DecimalField(_("Total Amount"), max_digits=10, decimal_places=2)
    payment_status = models.CharField(
        _("Payment Status"), max_length=20, choices=PAYMENT_STATUS_CHOICES, default='pending'
    )
    paid_at = models.DateTimeField(_("Paid At"), null=True, blank=True)

    class Meta:
        db_table = 'earnings_order'
        verbose_name = _("Order")
        verbose_name_plural = _("Orders")
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['trainer_id', 'payment_status']),
            models.Index(fields=['trainer_id', 'client_id']),
        ]

    def __str__(self):
        return f"{self.order_id} ({self.total_amount})"


class OrderLineItem(models.Model):
    order = models.ForeignKey(
        Order, on_delete=models.CASCADE, related_name='line_items',
        verbose_name=_("Order")
    )
    item_type = models.CharField(
        _("Type"), max_length=20, choices=LineItemType.choices, default=LineItemType.PRODUCT
    )
    product_id = models.CharField(_("Product ID"), max_length=64, blank=True)
    name = models.CharField(_("Name"), max_length=255)
    quantity = models.PositiveIntegerField(_("Quantity"), default=1)
    unit_price = models.DecimalField(_("Unit Price"), max_digits=10, decimal_places=2)

    class Meta:
        db_table = 'earnings_order_line_item'
        verbose_name = _("Order Line Item")
        verbose_name_plural = _("Order Line Items")
        ordering = ['id']

    def __str__(self):
        return f"{self.quantity} x {self.name}"

    @property
    def line_total(self):
        return self.unit_price * self.quantity


# =============================================================================
# Earnings ledger
# =============================================================================

class EarningRecord(TimeStampedModel):
    """Trainer earnings for one paid order. Amounts are immutable once written."""

    order_id = models.CharField(_("Order ID"), max_length=64, unique=True)
    trainer_id = models.PositiveIntegerField(_("Trainer ID"), db_index=True)
    bundle_id = models.CharField(_("Bundle ID"), max_length=64, blank=True)
    bundle_title = models.CharField(_("Bundle Title"), max_length=255, blank=True)
    client_id = models.PositiveIntegerField(_("Client ID"), null=True, blank=True)
    client_name = models.CharField(_("Client Name"), max_length=200, blank=True)

    # Amounts
    product_commission = models.DecimalField(
        _("Product Commission"), max_digits=10, decimal_places=2, default=Decimal('0.00')
    )
    service_revenue = models.DecimalField(
        _("Service Revenue"), max_digits=10, decimal_places=2, default=Decimal('0.00')
    )
    total_earnings = models.DecimalField(_("Total Earnings"), max_digits=10, decimal_places=2)
    order_total = models.DecimalField(_("Order Total"), max_digits=10, decimal_places=2)

    status = models.CharField(
        _("Status"), max_length=20, choices=EarningStatus.choices, default=EarningStatus.PENDING
    )
    confirmed_at = models.DateTimeField(_("Confirmed At"), null=True, blank=True)
    paid_at = models.DateTimeField(_("Paid At"), null=True, blank=True)

    class Meta:
        db_table = 'earnings_record'
        verbose_name = _("Earning Record")
        verbose_name_plural = _("Earning Records")
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['trainer_id', 'created_at']),
            models.Index(fields=['trainer_id', 'status']),
        ]

    def __str__(self):
        return f"{self.order_id}: {self.total_earnings}"

    def save(self, *args, **kwargs):
        self.total_earnings = self.product_commission + self.service_revenue
        super().save(*args, **kwargs)


class EarningLineItem(models.Model):
    """Per-line attribution of an earning record."""

    earning = models.ForeignKey(
        EarningRecord, on_delete=models.CASCADE, related_name='line_items',
        verbose_name=_("Earning")
    )
    item_type = models.CharField(_("Type"), max_length=20, choices=LineItemType.choices)
    product_id = models.CharField(_("Product ID"), max_length=64, blank=True)
    name = models.CharField(_("Name"), max_length=255)
    quantity = models.PositiveIntegerField(_("Quantity"), default=1)
    unit_price = models.DecimalField(_("Unit Price"), max_digits=10, decimal_places=2)
    base_rate = models.DecimalField(_("Base Rate"), max_digits=5, decimal_places=4, default=Decimal('0'))
    bonus_rate = models.DecimalField(_("Bonus Rate"), max_digits=5, decimal_places=4, default=Decimal('0'))
    total_rate = models.DecimalField(_("Total Rate"), max_digits=5, decimal_places=4, default=Decimal('0'))
    amount = models.DecimalField(
        _("Amount Earned"), max_digits=10, decimal_places=2,
        help_text=_("Commission for products, full line revenue for services")
    )

    class Meta:
        db_table = 'earnings_line_item'
        verbose_name = _("Earning Line Item")
        verbose_name_plural = _("Earning Line Items")
        ordering = ['id']

    def __str__(self):
        return f"{self.name}: {self.amount}"

    @property
    def revenue(self):
        return self.unit_price * self.quantity


class EarningAdjustment(TimeStampedModel):
    """Signed correction applied to a trainer's earnings."""

    TYPE_CHOICES = [
        ('bonus', _("Bonus")),
        ('correction', _("Correction")),
        ('deduction', _("Deduction")),
        ('refund_adjustment', _("Refund Adjustment")),
    ]

    trainer_id = models.PositiveIntegerField(_("Trainer ID"), db_index=True)
    adjustment_type = models.CharField(
        _("Type"), max_length=20, choices=TYPE_CHOICES, default='correction'
    )
    amount = models.DecimalField(
        _("Amount"), max_digits=10, decimal_places=2,
        help_text=_("Positive for additions, negative for deductions")
    )
    reason = models.TextField(_("Reason"))
    earning = models.ForeignKey(
        EarningRecord, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='adjustments',
        verbose_name=_("Earning")
    )
    delivery = models.ForeignKey(
        'ProductDelivery', on_delete=models.SET_NULL,
        null=True, blank=True, related_name='adjustments',
        verbose_name=_("Delivery")
    )
    created_by_id = models.PositiveIntegerField(_("Created By"), null=True, blank=True)

    class Meta:
        db_table = 'earnings_adjustment'
        verbose_name = _("Earning Adjustment")
        verbose_name_plural = _("Earning Adjustments")
        ordering = ['-created_at']

    def __str__(self):
        return f"Trainer {self.trainer_id}: {self.amount} ({self.get_adjustment_type_display()})"


# =============================================================================
# Loyalty points
# =============================================================================

class TrainerPointsAccount(TimeStampedModel):
    trainer_id = models.PositiveIntegerField(_("Trainer ID"), unique=True)
    total_points = models.IntegerField(_("Total Points"), default=0)
    lifetime_points = models.PositiveIntegerField(_("Lifetime Points"), default=0)
    current_tier = models.CharField(
        _("Current Tier"), max_length=20, choices=Tier.choices, default=Tier.BRONZE
    )
    tier_calculated_at = models.DateTimeField(_("Tier Calculated At"), null=True, blank=True)
    ytd_year = models.PositiveSmallIntegerField(_("Year-to-date Year"), null=True, blank=True)
    year_to_date_points = models.PositiveIntegerField(_("Year-to-date Points"), default=0)
    year_to_date_revenue = models.DecimalField(
        _("Year-to-date Revenue"), max_digits=12, decimal_places=2, default=Decimal('0.00')
    )

    class Meta:
        db_table = 'earnings_points_account'
        verbose_name = _("Trainer Points Account")
        verbose_name_plural = _("Trainer Points Accounts")
        ordering = ['-lifetime_points']

    def __str__(self):
        return f"Trainer {self.trainer_id}: {self.total_points} pts ({self.current_tier})"


class PointTransaction(models.Model):
    """Append-only points ledger entry."""

    trainer_id = models.PositiveIntegerField(_("Trainer ID"), db_index=True)
    transaction_type = models.CharField(
        _("Type"), max_length=30, choices=TransactionType.choices
    )
    points = models.IntegerField(_("Points"))
    reference_type = models.CharField(_("Reference Type"), max_length=50, blank=True)
    reference_id = models.CharField(_("Reference ID"), max_length=64, blank=True)
    description = models.CharField(_("Description"), max_length=255, blank=True)
    balance_before = models.IntegerField(_("Balance Before"))
    balance_after = models.IntegerField(_("Balance After"))
    created_at = models.DateTimeField(_("Created At"), default=timezone.now, db_index=True)

    class Meta:
        db_table = 'earnings_point_transaction'
        verbose_name = _("Point Transaction")
        verbose_name_plural = _("Point Transactions")
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['trainer_id', 'created_at']),
        ]

    def __str__(self):
        return f"Trainer {self.trainer_id}: {self.points:+d} ({self.transaction_type})"


class TrainerAward(models.Model):
    trainer_id = models.PositiveIntegerField(_("Trainer ID"), db_index=True)
    award_type = models.CharField(_("Type"), max_length=30, choices=AwardType.choices)
    award_name = models.CharField(_("Name"), max_length=200)
    description = models.TextField(_("Description"), blank=True)
    badge_icon = models.CharField(_("Badge Icon"), max_length=50, blank=True)
    points_awarded = models.PositiveIntegerField(_("Points Awarded"), default=0)

    # Identity: milestone awards are unique per milestone, monthly awards per period
    milestone = models.PositiveIntegerField(_("Milestone"), null=True, blank=True)
    period_year = models.PositiveSmallIntegerField(_("Year"), null=True, blank=True)
    period_month = models.PositiveSmallIntegerField(_("Month"), null=True, blank=True)
    metadata = models.JSONField(_("Metadata"), default=dict, blank=True)

    earned_at = models.DateTimeField(_("Earned At"), default=timezone.now, db_index=True)

    class Meta:
        db_table = 'earnings_trainer_award'
        verbose_name = _("Trainer Award")
        verbose_name_plural = _("Trainer Awards")
        ordering = ['-earned_at', '-id']
        constraints = [
            models.UniqueConstraint(
                fields=['trainer_id', 'award_type', 'milestone'],
                condition=Q(milestone__isnull=False),
                name='earnings_award_unique_milestone',
            ),
            models.UniqueConstraint(
                fields=['trainer_id', 'award_type', 'period_year', 'period_month'],
                condition=Q(period_month__isnull=False),
                name='earnings_award_unique_period',
            ),
        ]

    def __str__(self):
        return f"Trainer {self.trainer_id}: {self.award_name}"


# =============================================================================
# Deliveries
# =============================================================================

class ServiceDelivery(TimeStampedModel):
    """Progress on the service sessions sold in an order."""

    STATUS_CHOICES = [
        ('pending', _("Pending")),
        ('in_progress', _("In Progress")),
        ('completed', _("Completed")),
    ]

    order = models.ForeignKey(
        Order, on_delete=models.CASCADE, related_name='service_deliveries',
        verbose_name=_("Order")
    )
    trainer_id = models.PositiveIntegerField(_("Trainer ID"), db_index=True)
    client_id = models.PositiveIntegerField(_("Client ID"), null=True, blank=True)
    service_name = models.CharField(_("Service Name"), max_length=255)
    service_type = models.CharField(_("Service Type"), max_length=100, blank=True)
    total_quantity = models.PositiveIntegerField(_("Total Quantity"), default=1)
    delivered_quantity = models.PositiveIntegerField(_("Delivered Quantity"), default=0)
    price_per_unit = models.DecimalField(_("Price Per Unit"), max_digits=10, decimal_places=2)
    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='pending')
    completed_at = models.DateTimeField(_("Completed At"), null=True, blank=True)

    class Meta:
        db_table = 'earnings_service_delivery'
        verbose_name = _("Service Delivery")
        verbose_name_plural = _("Service Deliveries")
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.service_name} ({self.delivered_quantity}/{self.total_quantity})"

    @property
    def revenue(self):
        return self.price_per_unit * self.total_quantity


class ProductDelivery(TimeStampedModel):
    """Physical handoff of an ordered product from trainer to client."""

    order = models.ForeignKey(
        Order, on_delete=models.CASCADE, related_name='product_deliveries',
        verbose_name=_("Order")
    )
    order_item = models.ForeignKey(
        OrderLineItem, on_delete=models.SET_NULL,
        null=True, blank=True, related_name='deliveries',
        verbose_name=_("Order Item")
    )
    trainer_id = models.PositiveIntegerField(_("Trainer ID"), db_index=True)
    client_id = models.PositiveIntegerField(_("Client ID"), db_index=True)
    product_name = models.CharField(_("Product Name"), max_length=255)
    quantity = models.PositiveIntegerField(_("Quantity"), default=1)

    status = models.CharField(
        _("Status"), max_length=20, choices=DeliveryStatus.choices, default=DeliveryStatus.PENDING
    )
    scheduled_date = models.DateTimeField(_("Scheduled Date"), null=True, blank=True)
    delivered_at = models.DateTimeField(_("Delivered At"), null=True, blank=True)
    confirmed_at = models.DateTimeField(_("Confirmed At"), null=True, blank=True)
    delivery_method = models.CharField(
        _("Delivery Method"), max_length=20, choices=DeliveryMethod.choices, blank=True
    )
    tracking_number = models.CharField(_("Tracking Number"), max_length=100, blank=True)
    trainer_notes = models.TextField(_("Trainer Notes"), blank=True)
    client_notes = models.TextField(_("Client Notes"), blank=True)

    # Reschedule negotiation
    reschedule_status = models.CharField(
        _("Reschedule Status"), max_length=20,
        choices=RescheduleStatus.choices, default=RescheduleStatus.NONE
    )
    reschedule_requested_at = models.DateTimeField(_("Reschedule Requested At"), null=True, blank=True)
    reschedule_requested_date = models.DateTimeField(_("Requested Date"), null=True, blank=True)
    reschedule_reason = models.TextField(_("Reschedule Reason"), blank=True)
    reschedule_response_at = models.DateTimeField(_("Reschedule Response At"), null=True, blank=True)
    reschedule_response_note = models.TextField(_("Reschedule Response Note"), blank=True)

    # Dispute resolution
    resolved_at = models.DateTimeField(_("Resolved At"), null=True, blank=True)
    resolved_by_id = models.PositiveIntegerField(_("Resolved By"), null=True, blank=True)
    resolution_type = models.CharField(
        _("Resolution Type"), max_length=20, choices=ResolutionType.choices, blank=True
    )
    resolution_notes = models.TextField(_("Resolution Notes"), blank=True)

    class Meta:
        db_table = 'earnings_product_delivery'
        verbose_name = _("Product Delivery")
        verbose_name_plural = _("Product Deliveries")
        ordering = ['scheduled_date', 'id']
        indexes = [
            models.Index(fields=['trainer_id', 'status']),
            models.Index(fields=['client_id', 'status']),
        ]

    def __str__(self):
        return f"{self.product_name} x{self.quantity} ({self.status})"


# =============================================================================
# Ad partnerships
# =============================================================================

class AdPartnership(TimeStampedModel):
    trainer_id = models.PositiveIntegerField(_("Trainer ID"), db_index=True)
    business_id = models.PositiveIntegerField(_("Business ID"))
    business_name = models.CharField(_("Business Name"), max_length=200, blank=True)
    package_tier = models.CharField(_("Package"), max_length=20, choices=PackageTier.choices)

    # Snapshot of the package table at creation time
    monthly_fee = models.DecimalField(_("Monthly Fee"), max_digits=10, decimal_places=2)
    trainer_commission_rate = models.DecimalField(
        _("Trainer Commission Rate"), max_digits=5, decimal_places=4
    )
    bonus_points_awarded = models.PositiveIntegerField(_("Bonus Points"), default=0)

    status = models.CharField(
        _("Status"), max_length=20,
        choices=PartnershipStatus.choices, default=PartnershipStatus.PENDING
    )
    start_date = models.DateField(_("Start Date"))
    end_date = models.DateField(_("End Date"))
    renewal_date = models.DateField(_("Renewal Date"), null=True, blank=True)
    auto_renew = models.BooleanField(_("Auto Renew"), default=True)
    approved_by_id = models.PositiveIntegerField(_("Approved By"), null=True, blank=True)
    approved_at = models.DateTimeField(_("Approved At"), null=True, blank=True)
    notes = models.TextField(_("Notes"), blank=True)

    class Meta:
        db_table = 'earnings_ad_partnership'
        verbose_name = _("Ad Partnership")
        verbose_name_plural = _("Ad Partnerships")
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.business_name or self.business_id} ({self.get_package_tier_display()})"

    @property
    def monthly_commission(self):
        return self.monthly_fee * self.trainer_commission_rate


class AdEarning(TimeStampedModel):
    STATUS_CHOICES = [
        ('pending', _("Pending")),
        ('confirmed', _("Confirmed")),
        ('paid', _("Paid")),
    ]

    trainer_id = models.PositiveIntegerField(_("Trainer ID"), db_index=True)
    partnership = models.ForeignKey(
        AdPartnership, on_delete=models.CASCADE, related_name='earnings',
        verbose_name=_("Partnership")
    )
    business_id = models.PositiveIntegerField(_("Business ID"))
    business_name = models.CharField(_("Business Name"), max_length=200, blank=True)
    period_start = models.DateField(_("Period Start"))
    period_end = models.DateField(_("Period End"))
    monthly_fee = models.DecimalField(_("Monthly Fee"), max_digits=10, decimal_places=2)
    commission_rate = models.DecimalField(_("Commission Rate"), max_digits=5, decimal_places=4)
    commission_earned = models.DecimalField(_("Commission Earned"), max_digits=10, decimal_places=2)
    bonus_points = models.PositiveIntegerField(_("Bonus Points"), default=0)
    status = models.CharField(_("Status"), max_length=20, choices=STATUS_CHOICES, default='pending')

    class Meta:
        db_table = 'earnings_ad_earning'
        verbose_name = _("Ad Earning")
        verbose_name_plural = _("Ad Earnings")
        ordering = ['-period_start', '-id']

    def __str__(self):
        return f"{self.business_name}: {self.commission_earned} ({self.period_start})"
