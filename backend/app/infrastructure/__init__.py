"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .email_sender import EmailSender, SmtpEmailSender
from .payment_gateway import PaymentGateway, StripeGateway
from .redis_client import close_redis, get_redis
from .ttl_store import MemoryTTLStore, RedisTTLStore, TTLStore

__all__ = [
    'EmailSender', 'SmtpEmailSender',
    'PaymentGateway', 'StripeGateway',
    'get_redis', 'close_redis',
    'TTLStore', 'MemoryTTLStore', 'RedisTTLStore',
]
