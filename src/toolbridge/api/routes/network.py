"""
Routes API - politique réseau appliquée à la pile HTTP de l'UI.
"""
from typing import Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...features.gateway import NetworkPolicyInterceptor
from ...services.runtime import get_interceptor, get_settings
from ...config.settings import Settings

router = APIRouter()


class HeaderRewriteRequest(BaseModel):
    url: str
    headers: Dict[str, str] = Field(default_factory=dict)


@router.get("/network/policy")
async def get_network_policy(settings: Settings = Depends(get_settings)):
    return {
        "observe_patterns": list(settings.network.observe_patterns),
        "rewrite_patterns": list(settings.network.rewrite_patterns),
        "csp": settings.network.csp,
    }


@router.post("/network/rewrite-headers")
async def rewrite_headers(
    request: HeaderRewriteRequest,
    interceptor: NetworkPolicyInterceptor = Depends(get_interceptor),
):
    """En-têtes de réponse après application de la politique."""
    return {
        "url": request.url,
        "rewritten": interceptor.should_rewrite(request.url),
        "headers": interceptor.rewrite_response_headers(request.url, request.headers),
    }
