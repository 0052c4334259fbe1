from .auth import User, SessionToken
from .catalog import Product
from .subscriptions import Subscription, PausedDate, DeliverySchedule
from .payments import PaymentEvent

__all__ = [
    'User', 'SessionToken',
    'Product',
    'Subscription', 'PausedDate', 'DeliverySchedule',
    'PaymentEvent',
]
