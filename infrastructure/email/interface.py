"""
Email Service Interface
========================

Abstract base class for transactional email (order and payout notices).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class EmailMessage:
    """
    Represents an email message.

    Attributes:
        subject: Email subject line
        body: Plain text body
        to: Recipient addresses
        from_email: Sender address (optional, uses default if None)
        html_body: HTML version of the body (optional)
        tags: Notification kinds, sent as a header for filtering
    """

    subject: str
    body: str
    to: List[str]
    from_email: Optional[str] = None
    html_body: Optional[str] = None
    tags: List[str] = field(default_factory=list)


class EmailServiceInterface(ABC):
    """
    Abstract interface for email operations.

    Concrete implementations:
        - SMTPEmailService: Django's configured email backend
        - MockEmailService: keeps messages in memory
    """

    @abstractmethod
    def send(self, message: EmailMessage) -> bool:
        """
        Send a single email message.

        Returns:
            True if email sent successfully, False otherwise

        Raises:
            EmailException: If sending fails critically
        """
        pass


class EmailException(Exception):
    """Base exception for email operations."""

    pass
