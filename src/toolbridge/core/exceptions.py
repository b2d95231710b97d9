"""
Exceptions personnalisées du Tool Bridge.
"""


class BridgeError(Exception):
    """Exception de base pour toutes les erreurs du bridge."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(BridgeError):
    """Erreur de configuration (fichier invalide, valeur invalide)."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message=message,
            code="config_error",
            details={"key": config_key} if config_key else {}
        )


class TransportError(BridgeError):
    """Flux fermé, processus mort ou écriture impossible.

    Fatale pour la connexion: toutes les requêtes en vol sont rejetées.
    """

    def __init__(self, message: str, server_id: str = None):
        super().__init__(
            message=message,
            code="transport_error",
            details={"server_id": server_id} if server_id else {}
        )


class ProtocolError(BridgeError):
    """Frame illisible ou id de réponse inconnu (la connexion survit)."""

    def __init__(self, message: str, server_id: str = None, preview: str = None):
        details = {}
        if server_id:
            details["server_id"] = server_id
        if preview:
            details["preview"] = preview[:100]
        super().__init__(message=message, code="protocol_error", details=details)


class RequestTimeoutError(BridgeError):
    """Aucune réponse dans le délai imparti (seule la requête échoue)."""

    def __init__(self, message: str, method: str = None, request_id: object = None, timeout_s: float = None):
        super().__init__(
            message=message,
            code="timeout",
            details={
                "method": method,
                "request_id": request_id,
                "timeout_s": timeout_s,
            }
        )


class ToolNotFoundError(BridgeError):
    """Outil absent du registre pour ce serveur."""

    def __init__(self, message: str, server_id: str = None, tool_name: str = None):
        super().__init__(
            message=message,
            code="tool_not_found",
            details={"server_id": server_id, "tool_name": tool_name}
        )


class ServerNotConfiguredError(BridgeError):
    """Aucune configuration pour ce serveur d'outils."""

    def __init__(self, message: str, server_id: str = None):
        super().__init__(
            message=message,
            code="server_not_configured",
            details={"server_id": server_id} if server_id else {}
        )


class ToolCallError(BridgeError):
    """Le serveur a répondu avec un champ `error` JSON-RPC."""

    def __init__(self, message: str, error: object = None, method: str = None):
        super().__init__(
            message=message,
            code="tool_error",
            details={"error": error, "method": method}
        )
        self.error = error


class EnvelopeParseError(BridgeError):
    """Payload imbriqué impossible à décoder."""

    def __init__(self, message: str, payload_preview: str = None, depth: int = 0):
        details = {"depth": depth}
        if payload_preview:
            details["preview"] = payload_preview[:100]
        super().__init__(message=message, code="envelope_parse_error", details=details)


class CapabilityRejectedError(BridgeError):
    """Canal refusé à la frontière de confiance."""

    def __init__(self, message: str, channel: str = None, direction: str = None):
        super().__init__(
            message=message,
            code="capability_rejected",
            details={"channel": channel, "direction": direction}
        )
