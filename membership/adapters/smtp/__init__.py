"""Notification adapters - Delivery implementations."""

from .console import ConsoleNotificationGateway

__all__ = ["ConsoleNotificationGateway"]
