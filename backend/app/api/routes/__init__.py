from fastapi import APIRouter

from app.api.routes import drafts, invoices, public


api_router = APIRouter()
api_router.include_router(drafts.router, prefix="/drafts", tags=["Drafts"])
api_router.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
api_router.include_router(public.router, prefix="/public", tags=["Public"])
