"""
Trainer Earnings Module Configuration

This file defines the module metadata and navigation for the Trainer Earnings module.
Commission on bundle sales, loyalty points and tiers, product delivery tracking,
ad partnerships and monthly awards for trainers.
"""
from django.utils.translation import gettext_lazy as _

# Module Identification
MODULE_ID = "earnings"
MODULE_NAME = _("Trainer Earnings")
MODULE_ICON = "trending-up-outline"
MODULE_VERSION = "1.0.0"
MODULE_CATEGORY = "sales"

# Target Industries (business verticals this module is designed for)
MODULE_INDUSTRIES = [
    "fitness",      # Personal training
    "wellness",     # Coaching and wellness
    "ecommerce",    # Trainer storefronts
]

# Sidebar Menu Configuration
MENU = {
    "label": _("Earnings"),
    "icon": "trending-up-outline",
    "order": 55,
    "show": True,
}

# Internal Navigation (Tabs)
NAVIGATION = [
    {
        "id": "earnings",
        "label": _("Earnings"),
        "icon": "stats-chart-outline",
        "view": "",
    },
    {
        "id": "deliveries",
        "label": _("Deliveries"),
        "icon": "cube-outline",
        "view": "deliveries",
    },
    {
        "id": "points",
        "label": _("Points & Tiers"),
        "icon": "ribbon-outline",
        "view": "points",
    },
    {
        "id": "partnerships",
        "label": _("Ad Partnerships"),
        "icon": "megaphone-outline",
        "view": "partnerships",
    },
    {
        "id": "settings",
        "label": _("Settings"),
        "icon": "settings-outline",
        "view": "settings",
    },
]

# Module Dependencies
DEPENDENCIES = []

# Default Settings
SETTINGS = {
    "base_commission_rate": 0.10,
    "default_delivery_lead_days": 7,
    "reminder_window_hours": (20, 28),
    "sms_max_length": 1600,
}

# Permissions - tuple format (action_suffix, display_name)
PERMISSIONS = [
    ("view_earnings", _("Can view earnings")),
    ("view_delivery", _("Can view deliveries")),
    ("manage_delivery", _("Can update deliveries")),
    ("receive_delivery", _("Can confirm, dispute and reschedule deliveries")),
    ("resolve_dispute", _("Can resolve delivery disputes")),
    ("view_points", _("Can view points")),
    ("adjust_points", _("Can adjust points")),
    ("view_partnership", _("Can view ad partnerships")),
    ("sell_partnership", _("Can sell ad partnerships")),
    ("approve_partnership", _("Can approve ad partnerships")),
    ("process_awards", _("Can run monthly awards")),
    ("manage_promotions", _("Can manage product promotions")),
    ("view_settings", _("Can view settings")),
    ("change_settings", _("Can change settings")),
]

# Role-based permission assignments
ROLE_PERMISSIONS = {
    "manager": ["*"],  # All permissions
    "coordinator": [
        "view_earnings",
        "view_delivery",
        "resolve_dispute",
        "view_points",
        "view_partnership",
    ],
    "trainer": [
        "view_earnings",
        "view_delivery",
        "manage_delivery",
        "view_points",
        "view_partnership",
        "sell_partnership",
    ],
    "client": [
        "view_delivery",
        "receive_delivery",
    ],
}
