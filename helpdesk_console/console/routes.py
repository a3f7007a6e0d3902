# helpdesk_console/console/routes.py
from fastapi import APIRouter, Depends, Response

from helpdesk_console.console.registry import Console, get_console

router = APIRouter(prefix="/confirmations", tags=["Confirmations"])


@router.post("/{token}")
async def confirm(token: str, console: Console = Depends(get_console)):
    intent, result = await console.confirm(token)
    return {"confirmed": True, "intent": intent, "result": result}


@router.delete("/{token}", status_code=204)
async def dismiss(token: str, console: Console = Depends(get_console)):
    console.confirmations.discard(token)
    return Response(status_code=204)
