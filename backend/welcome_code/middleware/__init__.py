from welcome_code.middleware.request_log import RequestLoggingMiddleware
from welcome_code.middleware.security import SecurityHeadersMiddleware

__all__ = ["RequestLoggingMiddleware", "SecurityHeadersMiddleware"]
