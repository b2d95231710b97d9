"""toolbridge.features.gateway.capability

Capability Gateway: frontière de confiance entre l'UI (non fiable) et l'hôte.

La liste blanche des canaux est déclarée une seule fois (ChannelPolicy) et
injectée à la construction: la frontière est auditable en un seul endroit.

Cycle d'un message: UNCHECKED -> ALLOWED -> FORWARDED, ou UNCHECKED -> REJECTED.
Un message rejeté ne traverse jamais la frontière et produit un log WARNING
nommant le canal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from ...core.exceptions import CapabilityRejectedError

logger = logging.getLogger(__name__)


class ChannelDirection(str, Enum):
    OUTBOUND = "ui_to_host"
    INBOUND = "host_to_ui"


class ChannelDecision(str, Enum):
    ALLOWED = "allowed"
    REJECTED = "rejected"


class MessageState(str, Enum):
    UNCHECKED = "unchecked"
    ALLOWED = "allowed"
    FORWARDED = "forwarded"
    REJECTED = "rejected"


@dataclass(frozen=True)
class ChannelPolicy:
    """Canaux autorisés dans chaque direction."""

    outbound_prefixes: tuple[str, ...] = ()
    outbound_exact: frozenset[str] = frozenset()
    inbound_exact: frozenset[str] = frozenset()


DEFAULT_CHANNEL_POLICY = ChannelPolicy(
    outbound_prefixes=(
        "dialog-action-",
        "mcp:action:",
    ),
    outbound_exact=frozenset(
        {
            "mcp:notifyAuthenticationComplete",
            "mcp:notifyAuthenticationFailed",
        }
    ),
    inbound_exact=frozenset(
        {
            "dialog-request",
            "dialog-result",
            "mcp:auth-status-updated",
            "mcp:ui-resource-available",
            "mcp:ui-resource-removed",
        }
    ),
)


@dataclass
class GatedMessage:
    channel: object
    direction: ChannelDirection
    state: MessageState = MessageState.UNCHECKED
    result: object = None


Handler = Callable[[str, object], Awaitable[object]]


class CapabilityGateway:
    """Contrôle des canaux; fonction pure de la chaîne de canal."""

    def __init__(self, policy: ChannelPolicy = DEFAULT_CHANNEL_POLICY) -> None:
        self._policy = policy

    @property
    def policy(self) -> ChannelPolicy:
        return self._policy

    def check_outbound(self, channel: object) -> ChannelDecision:
        """UI -> hôte: préfixe autorisé ou nom exact."""
        allowed = isinstance(channel, str) and bool(channel) and (
            channel in self._policy.outbound_exact
            or any(
                channel.startswith(prefix) and len(channel) > len(prefix)
                for prefix in self._policy.outbound_prefixes
            )
        )
        return self._decide(channel, ChannelDirection.OUTBOUND, allowed)

    def check_inbound(self, channel: object) -> ChannelDecision:
        """Hôte -> UI: noms exacts uniquement."""
        allowed = isinstance(channel, str) and channel in self._policy.inbound_exact
        return self._decide(channel, ChannelDirection.INBOUND, allowed)

    def require_outbound(self, channel: object) -> str:
        """Variante levant CapabilityRejectedError si le canal est refusé."""
        if self.check_outbound(channel) is not ChannelDecision.ALLOWED:
            raise CapabilityRejectedError(
                "Canal refusé",
                channel=str(channel),
                direction=ChannelDirection.OUTBOUND.value,
            )
        return channel

    async def forward(self, channel: object, payload: object, handler: Handler) -> GatedMessage:
        """Transmet un message UI vers `handler` si le canal est autorisé."""
        message = GatedMessage(channel=channel, direction=ChannelDirection.OUTBOUND)
        if self.check_outbound(channel) is not ChannelDecision.ALLOWED:
            message.state = MessageState.REJECTED
            return message

        message.state = MessageState.ALLOWED
        message.result = await handler(channel, payload)
        message.state = MessageState.FORWARDED
        return message

    def _decide(self, channel: object, direction: ChannelDirection, allowed: bool) -> ChannelDecision:
        if allowed:
            return ChannelDecision.ALLOWED
        logger.warning(f"[GATEWAY] canal refusé ({direction.value}): {channel!r}")
        return ChannelDecision.REJECTED
