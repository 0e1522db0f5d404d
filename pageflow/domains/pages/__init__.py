from pageflow.domains.pages.entities import Page, PageAccess, PageRole
from pageflow.domains.pages.schemas import PageCreate, PageResponse, CollaboratorAdd, CollaboratorResponse

__all__ = [
    "Page", "PageAccess", "PageRole",
    "PageCreate", "PageResponse", "CollaboratorAdd", "CollaboratorResponse"
]
