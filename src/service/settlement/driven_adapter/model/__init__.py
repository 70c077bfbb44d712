"""Import every model so Base.metadata sees the whole schema (alembic / create_all)"""

from src.service.settlement.driven_adapter.model.event_model import EventModel
from src.service.settlement.driven_adapter.model.listing_model import ListingModel
from src.service.settlement.driven_adapter.model.order_model import OrderModel
from src.service.settlement.driven_adapter.model.organizer_model import (
    CategoryModel,
    OrganizerModel,
)
from src.service.settlement.driven_adapter.model.payment_distribution_model import (
    PaymentDistributionModel,
    ResaleDistributionModel,
)
from src.service.settlement.driven_adapter.model.platform_config_model import (
    PlatformConfigModel,
)
from src.service.settlement.driven_adapter.model.ticket_model import TicketModel
from src.service.settlement.driven_adapter.model.user_model import ProfileModel, UserModel


__all__ = [
    'CategoryModel',
    'EventModel',
    'ListingModel',
    'OrderModel',
    'OrganizerModel',
    'PaymentDistributionModel',
    'PlatformConfigModel',
    'ProfileModel',
    'ResaleDistributionModel',
    'TicketModel',
    'UserModel',
]
