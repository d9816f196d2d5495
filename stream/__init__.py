"""Stream module for the PumpPortal feed."""

from .classifier import ClassifiedFrame, classify_frame, decode_frame
from .subscriptions import SubscriptionManager

__all__ = [
    "ClassifiedFrame",
    "classify_frame",
    "decode_frame",
    "SubscriptionManager",
]
