"""
Console notification adapter - Implements NotificationGateway protocol.

This module provides a console-based implementation of the domain's
notification port, logging lifecycle notifications (including pending
verification keys) for development and demo purposes.
"""

import logging

from membership.domain.account import Account

logger = logging.getLogger(__name__)


class ConsoleNotificationGateway:
    """
    Implements NotificationGateway protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    In production this would be replaced with an SMTP adapter.
    """

    def send_account_created(self, account: Account) -> None:
        """Log the new-account verification key (simulates email delivery)."""
        logger.info(
            "[ACCOUNT CREATED] Tenant: %s Email: %s Key: %s",
            account.tenant,
            account.email,
            account.verification_key,
        )

    def send_account_verified(self, account: Account) -> None:
        logger.info("[ACCOUNT VERIFIED] Tenant: %s Email: %s", account.tenant, account.email)

    def send_account_deleted(self, account: Account) -> None:
        logger.info("[ACCOUNT DELETED] Tenant: %s Email: %s", account.tenant, account.email)

    def send_password_changed(self, account: Account) -> None:
        logger.info("[PASSWORD CHANGED] Tenant: %s Email: %s", account.tenant, account.email)

    def send_password_reset(self, account: Account) -> None:
        logger.info(
            "[PASSWORD RESET] Tenant: %s Email: %s Key: %s",
            account.tenant,
            account.email,
            account.verification_key,
        )

    def send_username_reminder(self, account: Account) -> None:
        logger.info(
            "[USERNAME REMINDER] Tenant: %s Email: %s Username: %s",
            account.tenant,
            account.email,
            account.username,
        )

    def send_email_change_requested(self, account: Account, new_email: str) -> None:
        """The confirmation key is addressed to the new email."""
        logger.info(
            "[EMAIL CHANGE REQUESTED] Tenant: %s Email: %s Key: %s",
            account.tenant,
            new_email,
            account.verification_key,
        )

    def send_email_changed(self, account: Account, old_email: str) -> None:
        logger.info(
            "[EMAIL CHANGED] Tenant: %s Old: %s New: %s",
            account.tenant,
            old_email,
            account.email,
        )
