"""
Route API - dialogues ouverts par l'hôte.

La requête reste ouverte jusqu'à l'action de l'UI (`dialog-action-<id>`)
ou jusqu'au délai, qui vaut une annulation.
"""
from typing import List

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ...features.gateway import DialogBroker
from ...features.gateway.dialogs import DEFAULT_DIALOG_TIMEOUT_S
from ...features.mcp import ToolBridge
from ...services.runtime import get_bridge, get_dialogs

router = APIRouter()


class DialogRequest(BaseModel):
    title: str
    message: str
    detail: str = ""
    actions: List[str] = Field(default_factory=lambda: ["cancel", "confirm"])
    timeout_s: float = Field(default=DEFAULT_DIALOG_TIMEOUT_S, gt=0)


@router.post("/dialogs")
async def open_dialog(
    request: DialogRequest,
    bridge: ToolBridge = Depends(get_bridge),
    dialogs: DialogBroker = Depends(get_dialogs),
):
    """Affiche un dialogue dans l'UI et renvoie l'action choisie."""
    content = {
        "title": request.title,
        "message": request.message,
        "detail": request.detail,
        "actions": list(request.actions),
    }
    result = await dialogs.ask(bridge.emit, content, timeout_s=request.timeout_s)
    return {"result": result}
