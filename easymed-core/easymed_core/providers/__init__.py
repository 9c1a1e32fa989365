"""
Delivery Providers
==================
Adapters that carry OTP messages to phones and inboxes.
"""

from .base import Channel, DeliveryStatus, DeliveryResult, BaseDeliveryAdapter
from .twilio import TwilioAdapter
from .federated import FederatedPhoneIdentityAdapter
from .email import EmailRelayAdapter
from .local_demo import LocalDemoAdapter

__all__ = [
    "Channel",
    "DeliveryStatus",
    "DeliveryResult",
    "BaseDeliveryAdapter",
    "TwilioAdapter",
    "FederatedPhoneIdentityAdapter",
    "EmailRelayAdapter",
    "LocalDemoAdapter",
]
