import logging

from django.apps import AppConfig


logger = logging.getLogger(__name__)


class PaymentSystemConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "payment_system"
    verbose_name = "Payment System"

    def ready(self):
        """Initialize OpenTelemetry tracing when Django starts."""
        from django.conf import settings

        if not getattr(settings, "TRACING_ENABLED", False):
            return

        try:
            from infrastructure.observability.tracing import setup_tracing

            setup_tracing(
                service_name=getattr(settings, "TRACING_SERVICE_NAME", "keystash-backend"),
                endpoint=getattr(settings, "OTEL_EXPORTER_OTLP_ENDPOINT", None),
                enable=True,
            )
        except Exception as e:
            logger.warning(f"Failed to initialize OpenTelemetry tracing: {e}")
