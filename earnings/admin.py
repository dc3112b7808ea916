from django.contrib import admin
from .models import (
    AdEarning,
    AdPartnership,
    CatalogProduct,
    EarningAdjustment,
    EarningLineItem,
    EarningRecord,
    Order,
    OrderLineItem,
    PlatformSettings,
    PointTransaction,
    ProductDelivery,
    ProductPromotion,
    ServiceDelivery,
    TrainerAward,
    TrainerPointsAccount,
    UserContact,
)


@admin.register(PlatformSettings)
class PlatformSettingsAdmin(admin.ModelAdmin):
    list_display = ['id', 'base_commission_rate', 'default_delivery_lead_days', 'updated_at']
    readonly_fields = ['created_at', 'updated_at']

    def has_add_permission(self, request):
        # Only allow one settings instance
        return not PlatformSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(UserContact)
class UserContactAdmin(admin.ModelAdmin):
    list_display = ['user_id', 'name', 'role', 'phone']
    list_filter = ['role']
    search_fields = ['name', 'phone']


@admin.register(CatalogProduct)
class CatalogProductAdmin(admin.ModelAdmin):
    list_display = ['product_id', 'title', 'price', 'requires_trainer_delivery']
    list_filter = ['requires_trainer_delivery']
    search_fields = ['product_id', 'title']


@admin.register(ProductPromotion)
class ProductPromotionAdmin(admin.ModelAdmin):
    list_display = ['product_id', 'bonus_rate', 'valid_from', 'valid_until', 'description']
    search_fields = ['product_id', 'description']
    ordering = ['product_id', 'valid_from']


class OrderLineItemInline(admin.TabularInline):
    model = OrderLineItem
    extra = 0


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['order_id', 'trainer_id', 'client_name', 'total_amount', 'payment_status', 'paid_at']
    list_filter = ['payment_status']
    search_fields = ['order_id', 'client_name', 'bundle_title']
    inlines = [OrderLineItemInline]
    readonly_fields = ['created_at', 'updated_at']


class EarningLineItemInline(admin.TabularInline):
    model = EarningLineItem
    extra = 0
    readonly_fields = ['base_rate', 'bonus_rate', 'total_rate', 'amount']


@admin.register(EarningRecord)
class EarningRecordAdmin(admin.ModelAdmin):
    list_display = [
        'order_id', 'trainer_id', 'product_commission',
        'service_revenue', 'total_earnings', 'status', 'created_at'
    ]
    list_filter = ['status', 'created_at']
    search_fields = ['order_id', 'bundle_title', 'client_name']
    date_hierarchy = 'created_at'
    inlines = [EarningLineItemInline]
    readonly_fields = ['product_commission', 'service_revenue', 'total_earnings', 'created_at', 'updated_at']


@admin.register(EarningAdjustment)
class EarningAdjustmentAdmin(admin.ModelAdmin):
    list_display = ['id', 'trainer_id', 'adjustment_type', 'amount', 'created_at']
    list_filter = ['adjustment_type']
    search_fields = ['reason']
    date_hierarchy = 'created_at'
    readonly_fields = ['created_at', 'updated_at']


@admin.register(TrainerPointsAccount)
class TrainerPointsAccountAdmin(admin.ModelAdmin):
    list_display = ['trainer_id', 'total_points', 'lifetime_points', 'current_tier', 'year_to_date_points']
    list_filter = ['current_tier']
    readonly_fields = ['created_at', 'updated_at', 'tier_calculated_at']


@admin.register(PointTransaction)
class PointTransactionAdmin(admin.ModelAdmin):
    list_display = ['id', 'trainer_id', 'transaction_type', 'points', 'balance_after', 'created_at']
    list_filter = ['transaction_type']
    search_fields = ['description', 'reference_id']
    date_hierarchy = 'created_at'

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(TrainerAward)
class TrainerAwardAdmin(admin.ModelAdmin):
    list_display = ['trainer_id', 'award_name', 'award_type', 'points_awarded', 'earned_at']
    list_filter = ['award_type']
    search_fields = ['award_name']
    date_hierarchy = 'earned_at'


@admin.register(ServiceDelivery)
class ServiceDeliveryAdmin(admin.ModelAdmin):
    list_display = ['service_name', 'trainer_id', 'client_id', 'delivered_quantity', 'total_quantity', 'status']
    list_filter = ['status']
    search_fields = ['service_name']


@admin.register(ProductDelivery)
class ProductDeliveryAdmin(admin.ModelAdmin):
    list_display = [
        'id', 'product_name', 'trainer_id', 'client_id', 'status',
        'scheduled_date', 'reschedule_status'
    ]
    list_filter = ['status', 'reschedule_status', 'delivery_method']
    search_fields = ['product_name', 'tracking_number']
    date_hierarchy = 'scheduled_date'
    readonly_fields = ['created_at', 'updated_at']


@admin.register(AdPartnership)
class AdPartnershipAdmin(admin.ModelAdmin):
    list_display = ['business_name', 'trainer_id', 'package_tier', 'monthly_fee', 'status', 'renewal_date']
    list_filter = ['status', 'package_tier']
    search_fields = ['business_name']
    readonly_fields = ['created_at', 'updated_at', 'approved_at']


@admin.register(AdEarning)
class AdEarningAdmin(admin.ModelAdmin):
    list_display = ['business_name', 'trainer_id', 'period_start', 'commission_earned', 'bonus_points', 'status']
    list_filter = ['status']
    date_hierarchy = 'period_start'
