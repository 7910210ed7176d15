from fastapi import APIRouter, Request


router = APIRouter()


@router.get("/health")
def public_health(request: Request) -> dict:
    store = "connected" if getattr(request.app.state, "gateway", None) is not None else "not configured"
    return {"status": "ok", "service": "Receipt Desk API", "store": store}
