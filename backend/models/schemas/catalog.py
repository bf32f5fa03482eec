"""Canonical skill catalog entries, owned by the catalog collaborator."""

from pydantic import BaseModel


class SkillCatalogEntry(BaseModel):
    """A canonical skill with the keyword synonyms used for matching."""
    id: str
    name: str
    keywords: list[str] = []  # ordered; first keyword wins ties
    category: str = "OTHER"
    is_security_related: bool = False
    is_active: bool = True
