"""
Request-local context.

Holds the request id and client metadata of the request being served on
the current thread so code far from the view (the audit recorder, log
filters) can read them without threading ``request`` through every call.
Populated and cleared by RequestContextMiddleware.
"""
import threading

_local = threading.local()

UNKNOWN = 'unknown'


def get_client_ip(request):
    """
    Client IP: first X-Forwarded-For hop, then X-Real-IP, then REMOTE_ADDR.
    """
    forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()
    real_ip = request.META.get('HTTP_X_REAL_IP')
    if real_ip:
        return real_ip.strip()
    return request.META.get('REMOTE_ADDR') or UNKNOWN


def bind(request_id=None, ip_address=None, user_agent=None):
    _local.request_id = request_id
    _local.ip_address = ip_address
    _local.user_agent = user_agent


def bind_request(request):
    bind(
        request_id=getattr(request, 'request_id', None),
        ip_address=get_client_ip(request),
        user_agent=request.META.get('HTTP_USER_AGENT') or UNKNOWN,
    )


def clear():
    for attr in ('request_id', 'ip_address', 'user_agent'):
        if hasattr(_local, attr):
            delattr(_local, attr)


def get_request_id():
    return getattr(_local, 'request_id', None)


def get_request_meta():
    """Return (ip_address, user_agent, request_id) for the current request."""
    return (
        getattr(_local, 'ip_address', None) or UNKNOWN,
        getattr(_local, 'user_agent', None) or UNKNOWN,
        getattr(_local, 'request_id', None),
    )
