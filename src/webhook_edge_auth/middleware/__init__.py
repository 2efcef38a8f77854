"""
Signature checks for apps that receive webhook deliveries directly.

The WSGI middleware has no extra requirements. The ASGI one needs the
``asgi`` extra (starlette) and is only exported when it imports.
"""

from .wsgi import WebhookSignatureWSGIMiddleware

__all__ = ["WebhookSignatureWSGIMiddleware"]

try:
    from .asgi import WebhookSignatureASGIMiddleware
except ImportError:  # starlette not installed
    pass
else:
    __all__.append("WebhookSignatureASGIMiddleware")
