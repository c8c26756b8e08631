"""
Email Service Factory
======================

Creates the email backend named by settings.EMAIL_SERVICE_BACKEND.
"""

import logging
from typing import Literal

from django.conf import settings

from .interface import EmailServiceInterface
from .mock_service import MockEmailService
from .smtp_service import SMTPEmailService

logger = logging.getLogger(__name__)

EmailBackend = Literal["smtp", "mock"]


class EmailFactory:
    @staticmethod
    def create(backend: EmailBackend | None = None) -> EmailServiceInterface:
        """
        Create an email service instance.

        Args:
            backend: 'smtp' or 'mock'. If None, reads settings.EMAIL_SERVICE_BACKEND
                     (defaults to 'mock' when settings.TESTING is set).

        Raises:
            ValueError: If backend type is invalid
        """
        default_backend = "mock" if getattr(settings, "TESTING", False) else "smtp"
        backend_type = backend or getattr(settings, "EMAIL_SERVICE_BACKEND", default_backend)

        logger.info(f"Creating email service backend: {backend_type}")

        if backend_type == "smtp":
            return SMTPEmailService()
        elif backend_type == "mock":
            return MockEmailService()
        else:
            raise ValueError(f"Invalid email backend: {backend_type}. Must be 'smtp' or 'mock'")
