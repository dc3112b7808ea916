from .awards_service import AwardsService
from .commission_service import CommissionService
from .delivery_service import DeliveryService
from .earnings_service import EarningsService
from .order_service import OrderService
from .partnership_service import PartnershipService
from .points_service import PointsService
from .results import TransitionResult

__all__ = [
    'AwardsService',
    'CommissionService',
    'DeliveryService',
    'EarningsService',
    'OrderService',
    'PartnershipService',
    'PointsService',
    'TransitionResult',
]
