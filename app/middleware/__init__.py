from .logging_middleware import LoggingMiddleware
from .rate_limit import rate_limit, limiter

__all__ = ['LoggingMiddleware', 'rate_limit', 'limiter']
