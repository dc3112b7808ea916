"""Trainer earnings module views."""

from decimal import Decimal
from functools import wraps

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.utils.translation import gettext_lazy as _
from django.views.decorators.http import require_GET, require_POST

from . import module
from .forms import (
    AdPartnershipForm,
    ConfirmReceiptForm,
    EarningsPeriodForm,
    MarkDeliveredForm,
    MonthlyAwardsForm,
    PlatformSettingsForm,
    PointsAdjustmentForm,
    ProductPromotionForm,
    ReportIssueForm,
    RescheduleRequestForm,
    RescheduleResponseForm,
    ResolveDisputeForm,
)
from .models import PlatformSettings, UserContact
from .notifications import (
    notify_dispute_reported,
    notify_dispute_resolved,
    notify_reschedule_answered,
    notify_reschedule_requested,
    send_after_commit,
)
from .services import (
    AwardsService,
    CommissionService,
    DeliveryService,
    EarningsService,
    PartnershipService,
    PointsService,
)


def _actor(request):
    return request.session.get('user_id')


def _contact(user_id):
    return UserContact.objects.filter(user_id=user_id).first()


def _role(user_id):
    contact = _contact(user_id)
    return contact.role if contact else None


def has_permission(user_id, permission):
    """Resolve ``permission`` through the module's role table."""
    granted = module.ROLE_PERMISSIONS.get(_role(user_id), [])
    return '*' in granted or permission in granted


def _is_staff(user_id):
    contact = _contact(user_id)
    return bool(contact and contact.is_manager)


def _can_see_trainer(user_id, trainer_id):
    return user_id == trainer_id or _is_staff(user_id)


def permission_required(permission):
    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            actor = _actor(request)
            if not actor:
                return JsonResponse({'success': False, 'error': _('Authentication required')}, status=403)
            if not has_permission(actor, permission):
                return JsonResponse({'success': False, 'error': _('Permission denied')}, status=403)
            return view(request, *args, **kwargs)
        return wrapper
    return decorator


def trainer_scope(view):
    """Limit per-trainer reads to the trainer themselves and to staff."""
    @wraps(view)
    def wrapper(request, trainer_id, *args, **kwargs):
        if not _can_see_trainer(_actor(request), trainer_id):
            return JsonResponse({'success': False, 'error': _('Permission denied')}, status=403)
        return view(request, trainer_id, *args, **kwargs)
    return wrapper


def _money(value):
    return str(value if value is not None else Decimal('0'))


def _iso(value):
    return value.isoformat() if value else None


def _delivery_json(delivery):
    return {
        'id': delivery.pk,
        'order_id': delivery.order.order_id,
        'trainer_id': delivery.trainer_id,
        'client_id': delivery.client_id,
        'product_name': delivery.product_name,
        'quantity': delivery.quantity,
        'status': delivery.status,
        'scheduled_date': _iso(delivery.scheduled_date),
        'delivered_at': _iso(delivery.delivered_at),
        'confirmed_at': _iso(delivery.confirmed_at),
        'delivery_method': delivery.delivery_method,
        'tracking_number': delivery.tracking_number,
        'reschedule_status': delivery.reschedule_status,
        'resolution_type': delivery.resolution_type,
    }


def _result_response(result):
    if result:
        return JsonResponse({'success': True, 'status': result.status})
    if result.status is None:
        return JsonResponse({'success': False, 'error': _('Delivery not found')}, status=404)
    return JsonResponse({
        'success': False,
        'status': result.status,
        'error': _('Action not allowed in the current state'),
    }, status=409)


def _form_errors(form):
    return JsonResponse({'success': False, 'errors': form.errors.get_json_data()}, status=400)


def _summary_json(summary):
    comparison = summary['comparison']
    return {
        'period': summary['period'],
        'start': _iso(summary['start']),
        'end': _iso(summary['end']),
        'total_earnings': _money(summary['total_earnings']),
        'product_commissions': _money(summary['product_commissions']),
        'service_revenue': _money(summary['service_revenue']),
        'bundles_sold': summary['bundles_sold'],
        'adjustments': _money(summary['adjustments']),
        'comparison': {
            'previous': _money(comparison['previous']),
            'change': comparison['change'],
        } if comparison else None,
    }


def _points_json(trainer_id):
    summary = PointsService.get_summary(trainer_id)
    summary['year_to_date_revenue'] = _money(summary['year_to_date_revenue'])
    summary['benefits']['commission_bonus'] = _money(summary['benefits']['commission_bonus'])
    summary['recent_transactions'] = [
        {
            'type': entry.transaction_type,
            'points': entry.points,
            'balance_after': entry.balance_after,
            'created_at': _iso(entry.created_at),
        }
        for entry in PointsService.get_transactions(trainer_id, limit=10)
    ]
    summary['awards'] = [
        {
            'award_type': award.award_type,
            'award_name': award.award_name,
            'points_awarded': award.points_awarded,
            'earned_at': _iso(award.earned_at),
        }
        for award in PointsService.get_awards(trainer_id)
    ]
    return summary


def _partnership_json(partnership):
    return {
        'id': partnership.pk,
        'trainer_id': partnership.trainer_id,
        'business_id': partnership.business_id,
        'business_name': partnership.business_name,
        'package_tier': partnership.package_tier,
        'monthly_fee': _money(partnership.monthly_fee),
        'commission_rate': str(partnership.trainer_commission_rate),
        'status': partnership.status,
        'start_date': _iso(partnership.start_date),
        'end_date': _iso(partnership.end_date),
    }


def _promotion_json(promotion):
    return {
        'id': promotion.pk,
        'product_id': promotion.product_id,
        'bonus_rate': str(promotion.bonus_rate),
        'valid_from': _iso(promotion.valid_from),
        'valid_until': _iso(promotion.valid_until),
    }


# =============================================================================
# Overview
# =============================================================================

@permission_required('view_earnings')
@require_GET
def index(request):
    """The acting trainer's earnings for the current month."""
    return JsonResponse(_summary_json(EarningsService.get_summary(_actor(request), 'month')))


@permission_required('view_points')
@require_GET
def points(request):
    return JsonResponse(_points_json(_actor(request)))


# =============================================================================
# Deliveries
# =============================================================================

@permission_required('view_delivery')
@require_GET
def delivery_list(request):
    actor = _actor(request)
    status = request.GET.get('status') or None
    if _role(actor) == 'client':
        deliveries = DeliveryService.get_for_client(actor, status=status)
    else:
        deliveries = DeliveryService.get_for_trainer(
            actor, status=status, client_id=request.GET.get('client_id') or None,
        )
    return JsonResponse({'deliveries': [_delivery_json(d) for d in deliveries]})


@permission_required('resolve_dispute')
@require_GET
def delivery_all(request):
    deliveries = DeliveryService.get_all(
        status=request.GET.get('status') or None,
        trainer_id=request.GET.get('trainer_id') or None,
        client_id=request.GET.get('client_id') or None,
    )
    return JsonResponse({'deliveries': [_delivery_json(d) for d in deliveries]})


@permission_required('view_delivery')
@require_GET
def delivery_stats(request):
    return JsonResponse(DeliveryService.get_stats(_actor(request)))


@permission_required('manage_delivery')
@require_POST
def delivery_ready(request, pk):
    return _result_response(DeliveryService.mark_ready(pk, _actor(request)))


@permission_required('manage_delivery')
@require_POST
def delivery_delivered(request, pk):
    form = MarkDeliveredForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    result = DeliveryService.mark_delivered(
        pk, _actor(request),
        notes=form.cleaned_data['notes'],
        method=form.cleaned_data['method'],
        tracking_number=form.cleaned_data['tracking_number'],
    )
    return _result_response(result)


@permission_required('receive_delivery')
@require_POST
def delivery_confirm(request, pk):
    form = ConfirmReceiptForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    return _result_response(
        DeliveryService.confirm_receipt(pk, _actor(request), form.cleaned_data['notes'])
    )


@permission_required('receive_delivery')
@require_POST
def delivery_report_issue(request, pk):
    form = ReportIssueForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    result = DeliveryService.report_issue(pk, _actor(request), form.cleaned_data['notes'])
    if result:
        send_after_commit(notify_dispute_reported, result.record)
    return _result_response(result)


@permission_required('resolve_dispute')
@require_POST
def delivery_resolve(request, pk):
    form = ResolveDisputeForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    result = DeliveryService.resolve_dispute(
        pk, _actor(request),
        form.cleaned_data['resolution_type'],
        form.cleaned_data['notes'],
    )
    if result:
        send_after_commit(notify_dispute_resolved, result.record)
    return _result_response(result)


@permission_required('receive_delivery')
@require_POST
def delivery_reschedule_request(request, pk):
    form = RescheduleRequestForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    result = DeliveryService.request_reschedule(
        pk, _actor(request),
        form.cleaned_data['proposed_date'],
        form.cleaned_data['reason'],
    )
    if result:
        send_after_commit(notify_reschedule_requested, result.record)
    return _result_response(result)


@permission_required('manage_delivery')
@require_POST
def delivery_reschedule_approve(request, pk):
    form = RescheduleResponseForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    result = DeliveryService.approve_reschedule(pk, _actor(request), form.cleaned_data['note'])
    if result:
        send_after_commit(notify_reschedule_answered, result.record)
    return _result_response(result)


@permission_required('manage_delivery')
@require_POST
def delivery_reschedule_reject(request, pk):
    form = RescheduleResponseForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    result = DeliveryService.reject_reschedule(pk, _actor(request), form.cleaned_data['note'])
    if result:
        send_after_commit(notify_reschedule_answered, result.record)
    return _result_response(result)


# =============================================================================
# Partnerships
# =============================================================================

@permission_required('view_partnership')
@require_GET
def partnership_list(request):
    actor = _actor(request)
    trainer_id = None if _is_staff(actor) else actor
    partnerships = PartnershipService.get_partnerships(
        trainer_id=trainer_id, status=request.GET.get('status') or None,
    )
    return JsonResponse({'partnerships': [_partnership_json(p) for p in partnerships]})


@permission_required('sell_partnership')
@require_POST
def partnership_add(request):
    form = AdPartnershipForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    partnership, error = PartnershipService.create_partnership(
        trainer_id=_actor(request),
        business_id=form.cleaned_data['business_id'],
        package_tier=form.cleaned_data['package_tier'],
        business_name=form.cleaned_data['business_name'],
        start_date=form.cleaned_data['start_date'],
        end_date=form.cleaned_data['end_date'],
        notes=form.cleaned_data['notes'],
    )
    if error:
        return JsonResponse({'success': False, 'error': error}, status=400)
    return JsonResponse({'success': True, 'id': partnership.pk, 'status': partnership.status})


@permission_required('approve_partnership')
@require_GET
def partnership_pending(request):
    return JsonResponse({
        'partnerships': [_partnership_json(p) for p in PartnershipService.get_pending_approvals()]
    })


@permission_required('approve_partnership')
@require_POST
def partnership_approve(request, pk):
    result = PartnershipService.approve(pk, _actor(request))
    if result:
        return JsonResponse({'success': True, 'status': result.status})
    if result.status is None:
        return JsonResponse({'success': False, 'error': _('Partnership not found')}, status=404)
    return JsonResponse({'success': False, 'status': result.status}, status=409)


# =============================================================================
# Promotions
# =============================================================================

@permission_required('manage_promotions')
@require_POST
def promotion_add(request):
    form = ProductPromotionForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    promotion, error = CommissionService.create_promotion(**form.cleaned_data)
    if error:
        return JsonResponse({'success': False, 'error': error}, status=400)
    return JsonResponse({'success': True, 'promotion': _promotion_json(promotion)})


@permission_required('manage_promotions')
@require_POST
def promotion_edit(request, pk):
    promotion = CommissionService.get_promotion(pk)
    if promotion is None:
        return JsonResponse({'success': False, 'error': _('Promotion not found')}, status=404)
    form = ProductPromotionForm(request.POST, instance=promotion)
    if not form.is_valid():
        return _form_errors(form)
    success, error = CommissionService.update_promotion(promotion, **form.cleaned_data)
    if not success:
        return JsonResponse({'success': False, 'error': error}, status=400)
    return JsonResponse({'success': True, 'promotion': _promotion_json(promotion)})


# =============================================================================
# Awards
# =============================================================================

@permission_required('process_awards')
@require_POST
def awards_process(request):
    form = MonthlyAwardsForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    created = AwardsService.process_monthly_awards(
        form.cleaned_data['year'], form.cleaned_data['month']
    )
    return JsonResponse({'success': True, 'created': created})


@permission_required('view_points')
@require_GET
def awards_summary(request):
    form = MonthlyAwardsForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)
    summary = AwardsService.get_monthly_summary(
        form.cleaned_data['year'], form.cleaned_data['month']
    )
    return JsonResponse({
        'year': summary['year'],
        'month': summary['month'],
        'total_awards': summary['total_awards'],
        'total_points': summary['total_points'],
        'by_type': summary['by_type'],
        'awards': [
            {
                'trainer_id': award.trainer_id,
                'award_type': award.award_type,
                'award_name': award.award_name,
                'points_awarded': award.points_awarded,
            }
            for award in summary['awards']
        ],
    })


# =============================================================================
# Settings
# =============================================================================

@permission_required('view_settings')
@require_GET
def settings(request):
    config = PlatformSettings.get_settings()
    return JsonResponse({
        'base_commission_rate': str(config.base_commission_rate),
        'default_delivery_lead_days': config.default_delivery_lead_days,
        'notify_disputes': config.notify_disputes,
        'notify_resolutions': config.notify_resolutions,
        'send_delivery_reminders': config.send_delivery_reminders,
    })


@permission_required('change_settings')
@require_POST
def settings_save(request):
    form = PlatformSettingsForm(request.POST, instance=PlatformSettings.get_settings())
    if form.is_valid():
        form.save()
        return JsonResponse({'success': True})
    return _form_errors(form)


# =============================================================================
# API Endpoints
# =============================================================================

@permission_required('view_earnings')
@trainer_scope
@require_GET
def api_earnings_summary(request, trainer_id):
    """Earnings totals for a trainer over a period."""
    form = EarningsPeriodForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)
    try:
        summary = EarningsService.get_summary(
            trainer_id,
            period=form.cleaned_data['period'],
            start=form.cleaned_data['start'],
            end=form.cleaned_data['end'],
        )
    except ValidationError as e:
        return JsonResponse({'success': False, 'error': '; '.join(e.messages)}, status=400)
    return JsonResponse(_summary_json(summary))


@permission_required('view_earnings')
@trainer_scope
@require_GET
def api_earnings_breakdown(request, trainer_id):
    """Earnings by service, product and day for charting."""
    form = EarningsPeriodForm(request.GET)
    if not form.is_valid():
        return _form_errors(form)
    breakdown = EarningsService.get_breakdown(
        trainer_id,
        period=form.cleaned_data['period'],
        start=form.cleaned_data['start'],
        end=form.cleaned_data['end'],
    )
    return JsonResponse({
        'by_service': [
            {**row, 'revenue': _money(row['revenue'])} for row in breakdown['by_service']
        ],
        'by_product': [
            {**row, 'revenue': _money(row['revenue']), 'commission': _money(row['commission'])}
            for row in breakdown['by_product']
        ],
        'revenue_by_day': [
            {
                'date': row['date'].isoformat(),
                'products': _money(row['products']),
                'services': _money(row['services']),
                'total': _money(row['total']),
            }
            for row in breakdown['revenue_by_day']
        ],
    })


@permission_required('view_points')
@trainer_scope
@require_GET
def api_points_summary(request, trainer_id):
    return JsonResponse(_points_json(trainer_id))


@permission_required('adjust_points')
@require_POST
def api_points_adjust(request, trainer_id):
    form = PointsAdjustmentForm(request.POST)
    if not form.is_valid():
        return _form_errors(form)
    award = PointsService.adjust(
        trainer_id, form.cleaned_data['points'], _actor(request), form.cleaned_data['reason']
    )
    return JsonResponse({
        'success': True,
        'balance_before': award.balance_before,
        'balance_after': award.balance_after,
        'tier': award.new_tier,
    })
