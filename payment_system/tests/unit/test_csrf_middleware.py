import pytest
from django.http import HttpResponse
from django.test import RequestFactory

from keystashBackend.middleware import JWTCSRFBypassMiddleware


@pytest.mark.unit
class TestJWTCSRFBypassMiddleware:
    def setup_method(self):
        self.factory = RequestFactory()
        self.middleware = JWTCSRFBypassMiddleware(lambda request: HttpResponse("ok"))

    def test_bearer_requests_skip_csrf(self):
        request = self.factory.post("/api/marketplace/checkout/", HTTP_AUTHORIZATION="Bearer abc.def")

        response = self.middleware(request)

        assert response.status_code == 200
        assert request._dont_enforce_csrf_checks is True
        assert request.META["CSRF_SKIP_REASON"] == "jwt-bearer"

    def test_signed_gateway_callbacks_skip_csrf(self):
        request = self.factory.post("/api/payments/webhook/", HTTP_STRIPE_SIGNATURE="t=1,v1=abc")

        self.middleware(request)

        assert request.META["CSRF_SKIP_REASON"] == "gateway-signature"

    def test_session_requests_keep_csrf(self):
        request = self.factory.post("/admin/login/")

        self.middleware(request)

        assert not getattr(request, "_dont_enforce_csrf_checks", False)
        assert "CSRF_SKIP_REASON" not in request.META
