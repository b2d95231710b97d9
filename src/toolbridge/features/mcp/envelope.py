"""toolbridge.features.mcp.envelope

Envelope Unwrapper.

Les résultats d'outils relayés par un intermédiaire arrivent parfois encodés
plusieurs fois: `content[0].text` contient une chaîne JSON qui contient
elle-même `{"content": [{"type": "text", "text": "..."}]}`, etc.
La profondeur est découverte à l'exécution et bornée par `max_depth`.
"""

from __future__ import annotations

import json
import logging

from ...core.constants import MAX_UNWRAP_DEPTH
from ...core.exceptions import EnvelopeParseError

logger = logging.getLogger(__name__)


def nested_text(value: object) -> str | None:
    """Retourne `content[0].text` si `value` a la forme d'une enveloppe."""
    if not isinstance(value, dict):
        return None
    content = value.get("content")
    if not isinstance(content, list) or not content:
        return None
    first = content[0]
    if isinstance(first, dict) and isinstance(first.get("text"), str):
        return first["text"]
    return None


def _parse_top_level(payload: str | bytes) -> object:
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise EnvelopeParseError(f"Payload non UTF-8: {e}") from e

    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        stripped = payload.strip()
        # Un document JSON tronqué n'est pas une chaîne brute
        if not stripped or stripped.startswith(("{", "[")):
            raise EnvelopeParseError(
                f"Payload JSON invalide: {e.msg}",
                payload_preview=payload,
            ) from e
        # Certains serveurs renvoient du texte brut
        return payload


def unwrap_envelope(payload: object, *, max_depth: int = MAX_UNWRAP_DEPTH) -> object:
    """Retire les couches d'enveloppe JSON-dans-JSON.

    Args:
        payload: chaîne JSON brute, ou résultat déjà décodé (dict/list)
        max_depth: nombre maximal de couches retirées

    Returns:
        La valeur la plus interne. Si le texte d'une couche n'est pas du JSON,
        la dernière couche décodée avec succès est retournée telle quelle.

    Raises:
        EnvelopeParseError: payload initial illisible (ni JSON, ni texte brut).
    """
    if isinstance(payload, (str, bytes)):
        current = _parse_top_level(payload)
    else:
        current = payload

    for depth in range(max_depth):
        text = nested_text(current)
        if text is None:
            return current
        try:
            current = json.loads(text)
        except json.JSONDecodeError:
            logger.debug(f"[ENVELOPE] texte non JSON au niveau {depth + 1}, niveau précédent retenu")
            return current

    logger.debug(f"[ENVELOPE] profondeur maximale atteinte ({max_depth})")
    return current
