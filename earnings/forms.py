"""Trainer earnings forms."""

from django import forms
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .models import (
    AdPartnership,
    DeliveryMethod,
    PlatformSettings,
    ProductPromotion,
    ResolutionType,
)
from .periods import PERIODS


class PlatformSettingsForm(forms.ModelForm):
    class Meta:
        model = PlatformSettings
        fields = [
            'base_commission_rate', 'default_delivery_lead_days',
            'notify_disputes', 'notify_resolutions', 'send_delivery_reminders',
        ]
        widgets = {
            'base_commission_rate': forms.NumberInput(attrs={'class': 'input', 'step': '0.0001', 'min': '0', 'max': '1'}),
            'default_delivery_lead_days': forms.NumberInput(attrs={'class': 'input', 'min': '0'}),
            'notify_disputes': forms.CheckboxInput(attrs={'class': 'toggle'}),
            'notify_resolutions': forms.CheckboxInput(attrs={'class': 'toggle'}),
            'send_delivery_reminders': forms.CheckboxInput(attrs={'class': 'toggle'}),
        }


class ProductPromotionForm(forms.ModelForm):
    class Meta:
        model = ProductPromotion
        fields = ['product_id', 'bonus_rate', 'valid_from', 'valid_until', 'description']
        widgets = {
            'product_id': forms.TextInput(attrs={'class': 'input'}),
            'bonus_rate': forms.NumberInput(attrs={'class': 'input', 'step': '0.0001', 'min': '0', 'max': '1'}),
            'valid_from': forms.DateTimeInput(attrs={'class': 'input', 'type': 'datetime-local'}),
            'valid_until': forms.DateTimeInput(attrs={'class': 'input', 'type': 'datetime-local'}),
            'description': forms.TextInput(attrs={'class': 'input'}),
        }


class AdPartnershipForm(forms.ModelForm):
    class Meta:
        model = AdPartnership
        fields = ['business_id', 'business_name', 'package_tier', 'start_date', 'end_date', 'notes']
        widgets = {
            'business_id': forms.NumberInput(attrs={'class': 'input'}),
            'business_name': forms.TextInput(attrs={'class': 'input'}),
            'package_tier': forms.Select(attrs={'class': 'select'}),
            'start_date': forms.DateInput(attrs={'class': 'input', 'type': 'date'}),
            'end_date': forms.DateInput(attrs={'class': 'input', 'type': 'date'}),
            'notes': forms.Textarea(attrs={'class': 'textarea', 'rows': 2}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['start_date'].required = False
        self.fields['end_date'].required = False

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get('start_date'), cleaned.get('end_date')
        if start and end and end < start:
            raise forms.ValidationError(_("End date must not precede the start date."))
        return cleaned


# =============================================================================
# Delivery workflow
# =============================================================================

class MarkDeliveredForm(forms.Form):
    method = forms.ChoiceField(
        required=False,
        choices=[('', _('Select...'))] + list(DeliveryMethod.choices),
        widget=forms.Select(attrs={'class': 'select'})
    )
    tracking_number = forms.CharField(
        required=False, max_length=100,
        widget=forms.TextInput(attrs={'class': 'input'})
    )
    notes = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'textarea', 'rows': 2})
    )


class ConfirmReceiptForm(forms.Form):
    notes = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'textarea', 'rows': 2})
    )


class ReportIssueForm(forms.Form):
    notes = forms.CharField(
        min_length=10,
        widget=forms.Textarea(attrs={'class': 'textarea', 'rows': 3}),
        help_text=_("Describe the problem (at least 10 characters)")
    )


class ResolveDisputeForm(forms.Form):
    resolution_type = forms.ChoiceField(
        choices=ResolutionType.choices,
        widget=forms.Select(attrs={'class': 'select'})
    )
    notes = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'textarea', 'rows': 3})
    )


class RescheduleRequestForm(forms.Form):
    proposed_date = forms.DateTimeField(
        widget=forms.DateTimeInput(attrs={'class': 'input', 'type': 'datetime-local'})
    )
    reason = forms.CharField(
        min_length=5,
        widget=forms.Textarea(attrs={'class': 'textarea', 'rows': 2})
    )

    def clean_proposed_date(self):
        proposed = self.cleaned_data['proposed_date']
        if proposed <= timezone.now():
            raise forms.ValidationError(_("The new date must be in the future."))
        return proposed


class RescheduleResponseForm(forms.Form):
    note = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'textarea', 'rows': 2})
    )


# =============================================================================
# Reports and administration
# =============================================================================

class EarningsPeriodForm(forms.Form):
    period = forms.ChoiceField(
        required=False,
        choices=[(p, p) for p in PERIODS],
    )
    start = forms.DateTimeField(required=False)
    end = forms.DateTimeField(required=False)

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get('start'), cleaned.get('end')
        if bool(start) != bool(end):
            raise forms.ValidationError(_("Provide both start and end, or neither."))
        if start and end and end < start:
            raise forms.ValidationError(_("End must not precede start."))
        if start and end:
            cleaned['period'] = 'custom'
        else:
            cleaned['period'] = cleaned.get('period') or 'month'
        return cleaned


class PointsAdjustmentForm(forms.Form):
    points = forms.IntegerField(widget=forms.NumberInput(attrs={'class': 'input'}))
    reason = forms.CharField(
        max_length=255,
        widget=forms.TextInput(attrs={'class': 'input'})
    )

    def clean_points(self):
        points = self.cleaned_data['points']
        if points == 0:
            raise forms.ValidationError(_("Points must be non-zero."))
        return points


class MonthlyAwardsForm(forms.Form):
    year = forms.IntegerField(min_value=2000, max_value=2100)
    month = forms.IntegerField(min_value=1, max_value=12)
