"""
Gateway Module - Frontière entre l'UI non fiable et l'hôte privilégié.
"""

from .capability import (
    CapabilityGateway,
    ChannelPolicy,
    ChannelDecision,
    ChannelDirection,
    MessageState,
    GatedMessage,
    DEFAULT_CHANNEL_POLICY,
)
from .network import NetworkPolicyInterceptor, url_matches
from .dialogs import DIALOG_REQUEST_CHANNEL, DialogBroker, dialog_channel, dialog_id_from_channel
from .deeplink import build_deep_link, parse_deep_link

__all__ = [
    "CapabilityGateway",
    "ChannelPolicy",
    "ChannelDecision",
    "ChannelDirection",
    "MessageState",
    "GatedMessage",
    "DEFAULT_CHANNEL_POLICY",
    "NetworkPolicyInterceptor",
    "url_matches",
    "DialogBroker",
    "DIALOG_REQUEST_CHANNEL",
    "dialog_channel",
    "dialog_id_from_channel",
    "build_deep_link",
    "parse_deep_link",
]
