from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.errors import ConfigurationError
from app.core.security import owner_id_from_token
from app.db.gateway import InvoiceGateway
from app.services.drafts import DraftRegistry
from app.services.editor import InvoiceEditor


bearer_scheme = HTTPBearer(auto_error=False)


def get_gateway(request: Request) -> InvoiceGateway:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise ConfigurationError("Invoice store is not configured. Please connect the database first.")
    return gateway


def get_drafts(request: Request) -> DraftRegistry:
    return request.app.state.drafts


def get_owner_id(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> str | None:
    return owner_id_from_token(credentials.credentials if credentials else None)


def get_editor(draft_id: str, drafts: DraftRegistry = Depends(get_drafts)) -> InvoiceEditor:
    return drafts.get(draft_id)
