from django.urls import path
from . import views

app_name = 'earnings'

urlpatterns = [
    # Overview
    path('', views.index, name='index'),
    path('points/', views.points, name='points'),

    # Deliveries
    path('deliveries/', views.delivery_list, name='deliveries'),
    path('deliveries/all/', views.delivery_all, name='delivery_all'),
    path('deliveries/stats/', views.delivery_stats, name='delivery_stats'),
    path('deliveries/<int:pk>/ready/', views.delivery_ready, name='delivery_ready'),
    path('deliveries/<int:pk>/delivered/', views.delivery_delivered, name='delivery_delivered'),
    path('deliveries/<int:pk>/confirm/', views.delivery_confirm, name='delivery_confirm'),
    path('deliveries/<int:pk>/report-issue/', views.delivery_report_issue, name='delivery_report_issue'),
    path('deliveries/<int:pk>/resolve/', views.delivery_resolve, name='delivery_resolve'),
    path('deliveries/<int:pk>/reschedule/', views.delivery_reschedule_request, name='delivery_reschedule_request'),
    path('deliveries/<int:pk>/reschedule/approve/', views.delivery_reschedule_approve, name='delivery_reschedule_approve'),
    path('deliveries/<int:pk>/reschedule/reject/', views.delivery_reschedule_reject, name='delivery_reschedule_reject'),

    # Partnerships
    path('partnerships/', views.partnership_list, name='partnerships'),
    path('partnerships/add/', views.partnership_add, name='partnership_add'),
    path('partnerships/pending/', views.partnership_pending, name='partnership_pending'),
    path('partnerships/<int:pk>/approve/', views.partnership_approve, name='partnership_approve'),

    # Promotions
    path('promotions/add/', views.promotion_add, name='promotion_add'),
    path('promotions/<int:pk>/edit/', views.promotion_edit, name='promotion_edit'),

    # Awards
    path('awards/process/', views.awards_process, name='awards_process'),
    path('awards/summary/', views.awards_summary, name='awards_summary'),

    # Settings
    path('settings/', views.settings, name='settings'),
    path('settings/save/', views.settings_save, name='settings_save'),

    # API endpoints
    path('api/trainers/<int:trainer_id>/earnings/summary/', views.api_earnings_summary, name='api_earnings_summary'),
    path('api/trainers/<int:trainer_id>/earnings/breakdown/', views.api_earnings_breakdown, name='api_earnings_breakdown'),
    path('api/trainers/<int:trainer_id>/points/', views.api_points_summary, name='api_points_summary'),
    path('api/trainers/<int:trainer_id>/points/adjust/', views.api_points_adjust, name='api_points_adjust'),
]
