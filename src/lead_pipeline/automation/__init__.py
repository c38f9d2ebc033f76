"""Downstream automation: hot lead alerts, nurture enrollment and client webhooks."""

from .lead_webhooks import LeadWebhookTrigger
from .nurture import AutoNurture

__all__ = ["AutoNurture", "LeadWebhookTrigger"]
