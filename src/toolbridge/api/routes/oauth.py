"""
Route API - callback OAuth.

Le fournisseur redirige le navigateur ici; la page renvoie l'utilisateur vers
l'application via le deep link `<scheme>://oauth/callback?code=&state=`.
"""
import html
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, PlainTextResponse

from ...config.settings import Settings
from ...features.gateway import build_deep_link
from ...services.runtime import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()

_REDIRECT_PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta http-equiv="refresh" content="0; url={link}">
<title>Authentification terminée</title>
</head>
<body>
<p>Authentification terminée. <a href="{link}">Retourner à l'application</a>.</p>
</body>
</html>
"""


@router.get("/oauth/callback")
async def oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    settings: Settings = Depends(get_settings),
):
    if not code or not state:
        logger.warning("[OAUTH] callback sans code ou state")
        return PlainTextResponse("Missing code or state parameter", status_code=400)

    link = build_deep_link(settings.gateway.deep_link_scheme, code, state)
    logger.info("[OAUTH] callback reçu, redirection vers l'application")
    return HTMLResponse(_REDIRECT_PAGE.format(link=html.escape(link, quote=True)))
