"""
Source Handlers

Each handler converts source-specific events to a common Message format.

Available Handlers:
- SlackHandler: Slack Events API webhooks
"""

from .base import BaseHandler, Message
from .slack import SlackHandler, ROUTE_CAPTURE, ROUTE_CORRECTION

__all__ = [
    "BaseHandler",
    "Message",
    "SlackHandler",
    "ROUTE_CAPTURE",
    "ROUTE_CORRECTION",
]
