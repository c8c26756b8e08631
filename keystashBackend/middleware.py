"""Custom middleware helpers for the Keystash backend."""

from __future__ import annotations

from typing import Callable


class JWTCSRFBypassMiddleware:
    """Turn off CSRF checks for requests that carry no session to forge.

    Buyer and seller clients send a JWT in the Authorization header. Gateway
    callbacks are signed instead. Cookie sessions (the admin site, the
    browsable API) still go through CsrfViewMiddleware.
    """

    bypass_schemes = ("bearer ",)

    def __init__(self, get_response: Callable):
        self.get_response = get_response

    def __call__(self, request):
        reason = self.bypass_reason(request)
        if reason:
            request._dont_enforce_csrf_checks = True  # type: ignore[attr-defined]
            request.META.setdefault("CSRF_SKIP_REASON", reason)
        return self.get_response(request)

    def bypass_reason(self, request) -> str:
        authorization = request.META.get("HTTP_AUTHORIZATION", "").lower()
        if authorization.startswith(self.bypass_schemes):
            return "jwt-bearer"
        if request.META.get("HTTP_STRIPE_SIGNATURE"):
            return "gateway-signature"
        return ""
