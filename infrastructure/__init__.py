"""
Infrastructure Package
======================

Abstraction layers for external dependencies.

Modules:
    - email: Email service abstraction (SMTP, mock)
    - payments: Payment gateway abstraction (Stripe, mock)
    - notifications: Order and payout notices built on the email service
    - observability: OpenTelemetry tracing setup

This package enables:
    - Easy testing with mock implementations
    - Switching between providers without code changes
"""
