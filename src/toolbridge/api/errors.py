"""
Conversion des erreurs du bridge en réponses HTTP.
"""
from fastapi.responses import JSONResponse

from ..core.exceptions import (
    BridgeError,
    ServerNotConfiguredError,
    ToolNotFoundError,
    RequestTimeoutError,
    TransportError,
    ToolCallError,
    ConfigurationError,
)

_STATUS_BY_ERROR = (
    (ServerNotConfiguredError, 404),
    (ToolNotFoundError, 404),
    (RequestTimeoutError, 504),
    (TransportError, 502),
    (ToolCallError, 502),
    (ConfigurationError, 500),
)


def bridge_error_response(error: BridgeError) -> JSONResponse:
    """Réponse JSON `{success: false, error: {code, message, details}}`."""
    status = 500
    for error_type, error_status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            status = error_status
            break

    return JSONResponse(
        status_code=status,
        content={
            "success": False,
            "error": {
                "code": error.code,
                "message": error.message,
                "details": error.details,
            },
        },
    )
