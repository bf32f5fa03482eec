"""Subject lookups and persistence results exchanged with the HR collaborator."""

from pydantic import BaseModel


class SubjectKind(BaseModel):
    exists: bool = False
    display_name: str = ""
    is_preliminary: bool = False  # prospect not yet promoted to a full candidate


class SaveResult(BaseModel):
    added: int = 0
    updated: int = 0
    skipped: int = 0
