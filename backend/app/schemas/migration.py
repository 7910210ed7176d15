from pydantic import BaseModel

from app.schemas.invoice import Invoice


class MigrationRequest(BaseModel):
    source: str = "local-cache"
    invoices: list[Invoice] | None = None
    force: bool = False


class MigrationReport(BaseModel):
    source: str
    inserted: list[str]
    skipped: list[str]
    already_migrated: bool = False
