"""
Constantes globales du Tool Bridge.
"""

# ============================================================================
# PROTOCOLE JSON-RPC / MCP
# ============================================================================

JSONRPC_VERSION = "2.0"
MCP_PROTOCOL_VERSION = "2024-11-05"
CLIENT_NAME = "toolbridge-mcp-client"
CLIENT_VERSION = "1.0.0"

METHOD_INITIALIZE = "initialize"
METHOD_INITIALIZED = "notifications/initialized"
METHOD_TOOLS_LIST = "tools/list"
METHOD_TOOLS_CALL = "tools/call"
METHOD_TOOLS_LIST_CHANGED = "notifications/tools/list_changed"

# ============================================================================
# TRANSPORT / CORRÉLATION
# ============================================================================

DEFAULT_REQUEST_TIMEOUT_S = 30.0
DEFAULT_INIT_TIMEOUT_S = 10.0
DEFAULT_SHUTDOWN_GRACE_S = 2.0

# asyncio.StreamReader.readline() limite une ligne à 64 KiB par défaut
DEFAULT_STREAM_LIMIT_BYTES = 8 * 1024 * 1024  # 8 MiB
MIN_STREAM_LIMIT_BYTES = 64 * 1024
MAX_STREAM_LIMIT_BYTES = 64 * 1024 * 1024  # 64 MiB

# ============================================================================
# ENVELOPPES
# ============================================================================

MAX_UNWRAP_DEPTH = 5

# ============================================================================
# SERVICES
# ============================================================================

DEFAULT_STATUS_TOOL = "get_authenticated_services"

# ============================================================================
# UI RESOURCES
# ============================================================================

ALLOWED_UI_MIME_TYPES = frozenset({"text/html", "application/json", "text/plain"})

# ============================================================================
# POLITIQUE RÉSEAU
# ============================================================================

PERMISSIVE_CSP = (
    "default-src 'self' https: http: blob: data:; "
    "script-src 'self' 'unsafe-inline' 'unsafe-eval' blob: https: http:;"
)

DEFAULT_OBSERVE_PATTERNS = ("https://*/*", "http://*/*")

DEFAULT_REWRITE_PATTERNS = (
    "https://connect.useparagon.com/*",
    "https://*.useparagon.com/*",
    "https://passport.useparagon.com/*",
    "http://localhost:3000/*",
)

# ============================================================================
# DEEP LINK OAUTH
# ============================================================================

DEFAULT_DEEP_LINK_SCHEME = "leviousa"
