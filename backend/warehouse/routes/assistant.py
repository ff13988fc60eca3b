from fastapi import APIRouter, Depends, HTTPException
from warehouse.schemas import ChatRequest
from warehouse.services.assistant_service import AssistantError, AssistantNotConfigured, ask_assistant
from warehouse.utils.jwt_auth import get_current_user

router = APIRouter(prefix="/api/assistant", tags=["assistant"])

@router.get("")
def assistant_status():
    return {"status": "ok", "info": "assistant endpoint is active"}

@router.post("/chat")
def chat(data: ChatRequest, current_user=Depends(get_current_user)):
    """AIアシスタントに会話履歴を送信して返答を受け取る"""
    try:
        reply = ask_assistant(data.messages)
    except AssistantNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e))
    except AssistantError as e:
        detail = {"error": str(e), "details": e.details} if e.details else str(e)
        raise HTTPException(status_code=e.status_code, detail=detail)
    return {"reply": reply}
