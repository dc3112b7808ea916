"""
Tests for trainer earnings views.
These tests cover the JSON endpoints used by the trainer, client and manager apps.
"""
import pytest
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.utils import timezone

BASE = '/modules/earnings'
TRAINER = 1
CLIENT = 2
OTHER_TRAINER = 4
COORDINATOR = 8
MANAGER = 9


@pytest.fixture
def coordinator(db):
    from earnings.models import UserContact

    return UserContact.objects.create(user_id=COORDINATOR, role='coordinator', name='Riley Quinn')


@pytest.fixture
def other_trainer(db):
    from earnings.models import UserContact

    return UserContact.objects.create(user_id=OTHER_TRAINER, role='trainer', name='Pat Lee')


@pytest.mark.django_db
class TestAccess:
    """Tests for session and role checks."""

    def test_requires_session_user(self, client_with_session):
        response = client_with_session.get(f'{BASE}/deliveries/')
        assert response.status_code == 403

    def test_unknown_user_has_no_permissions(self, login):
        response = login(777).get(f'{BASE}/deliveries/')
        assert response.status_code == 403

    def test_manager_only_endpoint(self, login, disputed):
        response = login(TRAINER).post(
            f'{BASE}/deliveries/{disputed.pk}/resolve/', {'resolution_type': 'closed'}
        )
        assert response.status_code == 403

    def test_wrong_method(self, login, delivery):
        response = login(TRAINER).get(f'{BASE}/deliveries/{delivery.pk}/ready/')
        assert response.status_code == 405

    def test_manager_has_every_permission(self, contacts):
        from earnings import module
        from earnings.views import has_permission

        assert all(has_permission(MANAGER, code) for code, _ in module.PERMISSIONS)

    def test_client_permissions_follow_role_table(self, contacts):
        from earnings.views import has_permission

        assert has_permission(CLIENT, 'view_delivery')
        assert has_permission(CLIENT, 'receive_delivery')
        assert not has_permission(CLIENT, 'view_earnings')
        assert not has_permission(CLIENT, 'manage_delivery')


@pytest.mark.django_db
class TestRolePermissions:
    """Tests that each endpoint honours the role permission table."""

    def test_client_cannot_read_trainer_earnings(self, login, paid_order):
        response = login(CLIENT).get(f'{BASE}/api/trainers/{TRAINER}/earnings/summary/')
        assert response.status_code == 403

    def test_client_cannot_read_trainer_points(self, login, paid_order):
        response = login(CLIENT).get(f'{BASE}/api/trainers/{TRAINER}/points/')
        assert response.status_code == 403

    def test_trainer_cannot_read_another_trainer(self, login, paid_order, other_trainer):
        api = login(OTHER_TRAINER)
        assert api.get(f'{BASE}/api/trainers/{TRAINER}/earnings/summary/').status_code == 403
        assert api.get(f'{BASE}/api/trainers/{TRAINER}/earnings/breakdown/').status_code == 403
        assert api.get(f'{BASE}/api/trainers/{TRAINER}/points/').status_code == 403

    def test_coordinator_can_read_trainer_earnings(self, login, paid_order, coordinator):
        response = login(COORDINATOR).get(f'{BASE}/api/trainers/{TRAINER}/earnings/summary/')
        assert response.status_code == 200

    def test_coordinator_cannot_change_settings(self, login, coordinator, platform_settings):
        response = login(COORDINATOR).post(f'{BASE}/settings/save/', {
            'base_commission_rate': '0.50',
            'default_delivery_lead_days': '5',
        })
        assert response.status_code == 403
        platform_settings.refresh_from_db()
        assert platform_settings.base_commission_rate == Decimal('0.10')

    def test_coordinator_cannot_run_manager_actions(self, login, partnership, coordinator):
        api = login(COORDINATOR)
        assert api.post(f'{BASE}/partnerships/{partnership.pk}/approve/').status_code == 403
        assert api.post(f'{BASE}/awards/process/', {'year': 2024, 'month': 3}).status_code == 403
        assert api.post(
            f'{BASE}/api/trainers/{TRAINER}/points/adjust/', {'points': '50', 'reason': 'Bonus'}
        ).status_code == 403
        assert api.get(f'{BASE}/settings/').status_code == 403

    def test_coordinator_resolves_disputes(self, login, disputed, coordinator):
        response = login(COORDINATOR).post(
            f'{BASE}/deliveries/{disputed.pk}/resolve/', {'resolution_type': 'closed'}
        )
        assert response.status_code == 200

    def test_client_cannot_run_trainer_actions(self, login, delivery):
        response = login(CLIENT).post(f'{BASE}/deliveries/{delivery.pk}/ready/')
        assert response.status_code == 403

    def test_trainer_cannot_confirm_receipt(self, login, delivered):
        response = login(TRAINER).post(f'{BASE}/deliveries/{delivered.pk}/confirm/')
        assert response.status_code == 403


@pytest.mark.django_db
class TestOverviewViews:
    """Tests for the acting user's own earnings and points."""

    def test_index(self, login, paid_order):
        data = login(TRAINER).get(f'{BASE}/').json()
        assert data['period'] == 'month'
        assert Decimal(data['total_earnings']) == Decimal('147.50')

    def test_index_needs_earnings_permission(self, login, paid_order):
        assert login(CLIENT).get(f'{BASE}/').status_code == 403

    def test_points_lists_awards(self, login, db):
        from earnings.services import PointsService

        PointsService.award(TRAINER, 5200, 'bundle_sale')
        data = login(TRAINER).get(f'{BASE}/points/').json()
        assert data['current_tier'] == 'silver'
        assert [a['award_type'] for a in data['awards']] == ['tier_achieved']


@pytest.mark.django_db
class TestDeliveryViews:
    """Tests for delivery workflow endpoints."""

    def test_delivery_list(self, login, paid_order):
        response = login(TRAINER).get(f'{BASE}/deliveries/')
        assert response.status_code == 200
        names = sorted(d['product_name'] for d in response.json()['deliveries'])
        assert names == ['Squat Rack', 'Whey Protein 2kg']

    def test_client_sees_own_deliveries(self, login, paid_order):
        response = login(CLIENT).get(f'{BASE}/deliveries/')
        assert len(response.json()['deliveries']) == 2

    def test_delivery_list_filtered(self, login, paid_order):
        response = login(TRAINER).get(f'{BASE}/deliveries/', {'status': 'confirmed'})
        assert response.json()['deliveries'] == []

    def test_all_deliveries_for_staff(self, login, paid_order, coordinator):
        response = login(COORDINATOR).get(f'{BASE}/deliveries/all/', {'status': 'pending'})
        assert len(response.json()['deliveries']) == 2
        assert login(TRAINER).get(f'{BASE}/deliveries/all/').status_code == 403

    def test_stats(self, login, paid_order):
        response = login(TRAINER).get(f'{BASE}/deliveries/stats/')
        assert response.json()['pending'] == 2
        assert response.json()['total'] == 2

    def test_mark_ready(self, login, delivery):
        response = login(TRAINER).post(f'{BASE}/deliveries/{delivery.pk}/ready/')
        assert response.status_code == 200
        assert response.json() == {'success': True, 'status': 'ready'}

    def test_mark_ready_conflict(self, login, delivered):
        response = login(TRAINER).post(f'{BASE}/deliveries/{delivered.pk}/ready/')
        assert response.status_code == 409
        assert response.json()['status'] == 'delivered'

    def test_not_owner_is_not_found(self, login, delivery, other_trainer):
        response = login(OTHER_TRAINER).post(f'{BASE}/deliveries/{delivery.pk}/ready/')
        assert response.status_code == 404

    def test_mark_delivered(self, login, delivery):
        response = login(TRAINER).post(f'{BASE}/deliveries/{delivery.pk}/delivered/', {
            'method': 'shipped', 'tracking_number': 'RM123456789GB',
        })
        assert response.status_code == 200
        delivery.refresh_from_db()
        assert delivery.tracking_number == 'RM123456789GB'

    def test_mark_delivered_bad_method(self, login, delivery):
        response = login(TRAINER).post(f'{BASE}/deliveries/{delivery.pk}/delivered/', {'method': 'drone'})
        assert response.status_code == 400
        assert 'method' in response.json()['errors']

    def test_confirm(self, login, delivered):
        response = login(CLIENT).post(f'{BASE}/deliveries/{delivered.pk}/confirm/', {'notes': 'Thanks'})
        assert response.json()['status'] == 'confirmed'

    def test_report_issue_needs_description(self, login, delivered):
        response = login(CLIENT).post(f'{BASE}/deliveries/{delivered.pk}/report-issue/', {'notes': 'bad'})
        assert response.status_code == 400
        delivered.refresh_from_db()
        assert delivered.status == 'delivered'

    def test_report_issue_notifies_after_commit(
        self, login, delivered, django_capture_on_commit_callbacks
    ):
        with mock.patch('earnings.views.notify_dispute_reported') as notify:
            with django_capture_on_commit_callbacks(execute=True):
                response = login(CLIENT).post(
                    f'{BASE}/deliveries/{delivered.pk}/report-issue/',
                    {'notes': 'Tub arrived split open'},
                )
        assert response.json()['status'] == 'disputed'
        notify.assert_called_once()
        assert notify.call_args.args[0].pk == delivered.pk

    def test_resolve(self, login, disputed):
        response = login(MANAGER).post(f'{BASE}/deliveries/{disputed.pk}/resolve/', {
            'resolution_type': 'refund', 'notes': 'Refunded in full',
        })
        assert response.status_code == 200
        disputed.refresh_from_db()
        assert disputed.status == 'confirmed'
        assert disputed.resolution_type == 'refund'


@pytest.mark.django_db
class TestRescheduleViews:
    """Tests for reschedule endpoints."""

    def _proposed(self, days=10):
        return (timezone.now() + timedelta(days=days)).strftime('%Y-%m-%d %H:%M')

    def test_request_and_race(self, login, delivery):
        api = login(CLIENT)
        url = f'{BASE}/deliveries/{delivery.pk}/reschedule/'
        first = api.post(url, {'proposed_date': self._proposed(), 'reason': 'Away that week'})
        second = api.post(url, {'proposed_date': self._proposed(11), 'reason': 'Later still'})
        assert first.status_code == 200
        assert second.status_code == 409
        assert second.json()['status'] == 'pending'

    def test_past_date_rejected(self, login, delivery):
        response = login(CLIENT).post(f'{BASE}/deliveries/{delivery.pk}/reschedule/', {
            'proposed_date': self._proposed(-2), 'reason': 'Oops wrong date',
        })
        assert response.status_code == 400

    def test_trainer_approves(self, login, delivery):
        login(CLIENT).post(f'{BASE}/deliveries/{delivery.pk}/reschedule/', {
            'proposed_date': self._proposed(), 'reason': 'Away that week',
        })
        response = login(TRAINER).post(f'{BASE}/deliveries/{delivery.pk}/reschedule/approve/')
        assert response.json()['status'] == 'approved'

    def test_trainer_rejects(self, login, delivery):
        login(CLIENT).post(f'{BASE}/deliveries/{delivery.pk}/reschedule/', {
            'proposed_date': self._proposed(), 'reason': 'Away that week',
        })
        response = login(TRAINER).post(
            f'{BASE}/deliveries/{delivery.pk}/reschedule/reject/', {'note': 'Fully booked'}
        )
        assert response.json()['status'] == 'rejected'


@pytest.mark.django_db
class TestPartnershipViews:
    """Tests for selling, listing and approving partnerships."""

    def test_trainer_sells_partnership(self, login, platform_settings):
        response = login(TRAINER).post(f'{BASE}/partnerships/add/', {
            'business_id': '601', 'business_name': 'Gym Juice', 'package_tier': 'silver',
        })
        assert response.status_code == 200
        assert response.json()['status'] == 'pending'

        listed = login(TRAINER).get(f'{BASE}/partnerships/').json()['partnerships']
        assert [p['business_name'] for p in listed] == ['Gym Juice']
        assert listed[0]['monthly_fee'] == '249.00'

    def test_bad_package(self, login, platform_settings):
        response = login(TRAINER).post(f'{BASE}/partnerships/add/', {
            'business_id': '601', 'package_tier': 'diamond',
        })
        assert response.status_code == 400

    def test_client_cannot_sell_or_list(self, login, partnership):
        assert login(CLIENT).post(f'{BASE}/partnerships/add/', {
            'business_id': '601', 'package_tier': 'silver',
        }).status_code == 403
        assert login(CLIENT).get(f'{BASE}/partnerships/').status_code == 403

    def test_trainer_sees_only_own(self, login, partnership, other_trainer):
        assert login(OTHER_TRAINER).get(f'{BASE}/partnerships/').json()['partnerships'] == []

    def test_pending_queue(self, login, partnership):
        data = login(MANAGER).get(f'{BASE}/partnerships/pending/').json()
        assert [p['id'] for p in data['partnerships']] == [partnership.pk]
        assert login(TRAINER).get(f'{BASE}/partnerships/pending/').status_code == 403

    def test_partnership_approve(self, login, partnership):
        response = login(MANAGER).post(f'{BASE}/partnerships/{partnership.pk}/approve/')
        assert response.json() == {'success': True, 'status': 'active'}
        again = login(MANAGER).post(f'{BASE}/partnerships/{partnership.pk}/approve/')
        assert again.status_code == 409

    def test_partnership_missing(self, login):
        response = login(MANAGER).post(f'{BASE}/partnerships/99999/approve/')
        assert response.status_code == 404


@pytest.mark.django_db
class TestPromotionViews:
    """Tests for promotion management."""

    def test_add_promotion(self, login, platform_settings):
        response = login(MANAGER).post(f'{BASE}/promotions/add/', {
            'product_id': 'prod-rack', 'bonus_rate': '0.0500', 'description': 'Spring push',
        })
        assert response.status_code == 200
        assert response.json()['promotion']['product_id'] == 'prod-rack'

    def test_overlap_refused(self, login, promotion):
        response = login(MANAGER).post(f'{BASE}/promotions/add/', {
            'product_id': 'prod-protein', 'bonus_rate': '0.1000',
        })
        assert response.status_code == 400

    def test_edit_promotion(self, login, promotion):
        fmt = '%Y-%m-%d %H:%M'
        response = login(MANAGER).post(f'{BASE}/promotions/{promotion.pk}/edit/', {
            'product_id': 'prod-protein',
            'bonus_rate': '0.2500',
            'valid_from': timezone.localtime(promotion.valid_from).strftime(fmt),
            'valid_until': timezone.localtime(promotion.valid_until).strftime(fmt),
        })
        assert response.status_code == 200
        promotion.refresh_from_db()
        assert promotion.bonus_rate == Decimal('0.25')

    def test_edit_missing(self, login):
        response = login(MANAGER).post(f'{BASE}/promotions/99999/edit/', {
            'product_id': 'prod-protein', 'bonus_rate': '0.2500',
        })
        assert response.status_code == 404

    def test_trainer_cannot_manage_promotions(self, login):
        response = login(TRAINER).post(f'{BASE}/promotions/add/', {
            'product_id': 'prod-rack', 'bonus_rate': '0.0500',
        })
        assert response.status_code == 403


@pytest.mark.django_db
class TestManagerViews:
    """Tests for awards and settings endpoints."""

    def test_awards_process_and_summary(self, login, paid_order):
        paid_at = timezone.localtime(paid_order.paid_at)
        params = {'year': paid_at.year, 'month': paid_at.month}

        response = login(MANAGER).post(f'{BASE}/awards/process/', params)
        assert response.json() == {'success': True, 'created': 1}

        summary = login(TRAINER).get(f'{BASE}/awards/summary/', params).json()
        assert summary['total_awards'] == 1
        assert summary['awards'][0]['award_type'] == 'monthly_top_seller'

    def test_awards_bad_month(self, login):
        response = login(MANAGER).post(f'{BASE}/awards/process/', {'year': 2024, 'month': 13})
        assert response.status_code == 400

    def test_settings_view(self, login, platform_settings):
        data = login(MANAGER).get(f'{BASE}/settings/').json()
        assert Decimal(data['base_commission_rate']) == Decimal('0.10')
        assert data['notify_disputes'] is True

    def test_settings_save(self, login, platform_settings):
        response = login(MANAGER).post(f'{BASE}/settings/save/', {
            'base_commission_rate': '0.12',
            'default_delivery_lead_days': '5',
            'notify_disputes': 'on',
        })
        assert response.json() == {'success': True}
        platform_settings.refresh_from_db()
        assert platform_settings.base_commission_rate == Decimal('0.12')
        assert platform_settings.notify_resolutions is False


@pytest.mark.django_db
class TestApiEndpoints:
    """Tests for the reporting API."""

    def test_earnings_summary(self, login, paid_order):
        data = login(TRAINER).get(f'{BASE}/api/trainers/{TRAINER}/earnings/summary/').json()
        assert data['period'] == 'month'
        assert Decimal(data['total_earnings']) == Decimal('147.50')
        assert data['bundles_sold'] == 1
        assert data['comparison']['change'] == 0.0

    def test_earnings_summary_custom_range(self, login, paid_order):
        now = timezone.now()
        data = login(TRAINER).get(f'{BASE}/api/trainers/{TRAINER}/earnings/summary/', {
            'start': (now - timedelta(days=1)).strftime('%Y-%m-%d %H:%M'),
            'end': (now + timedelta(days=1)).strftime('%Y-%m-%d %H:%M'),
        }).json()
        assert data['period'] == 'custom'
        assert Decimal(data['total_earnings']) == Decimal('147.50')

    def test_earnings_summary_half_range(self, login, paid_order):
        response = login(TRAINER).get(
            f'{BASE}/api/trainers/{TRAINER}/earnings/summary/', {'start': '2024-01-01'}
        )
        assert response.status_code == 400

    def test_earnings_breakdown(self, login, paid_order):
        data = login(TRAINER).get(
            f'{BASE}/api/trainers/{TRAINER}/earnings/breakdown/', {'period': 'all'}
        ).json()
        assert data['by_service'][0]['name'] == 'PT Session'
        assert len(data['by_product']) == 2
        assert Decimal(data['revenue_by_day'][0]['total']) == Decimal('147.50')

    def test_points_summary(self, login, paid_order):
        data = login(TRAINER).get(f'{BASE}/api/trainers/{TRAINER}/points/').json()
        assert data['total_points'] == 799 + 100
        assert data['current_tier'] == 'bronze'
        assert [t['type'] for t in data['recent_transactions']] == ['new_client_bonus', 'bundle_sale']

    def test_points_adjust(self, login):
        response = login(MANAGER).post(
            f'{BASE}/api/trainers/{TRAINER}/points/adjust/', {'points': '-25', 'reason': 'Duplicate sale'}
        )
        data = response.json()
        assert data['success'] is True
        assert data['balance_after'] == -25

    def test_points_adjust_zero(self, login):
        response = login(MANAGER).post(
            f'{BASE}/api/trainers/{TRAINER}/points/adjust/', {'points': '0', 'reason': 'Nothing'}
        )
        assert response.status_code == 400
