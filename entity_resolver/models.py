"""Entity Resolver Data Models.

This module defines the Pydantic models for manual client resolution:
- ClientCandidate: A client returned by the operator's search
- ManualMatch: The match fields an operator override writes onto a line
- Reassignment: The result of trying to assign a candidate to a line
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ResolverBase(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ClientCandidate(ResolverBase):
    """A client found by the search service.

    Attributes:
        borrower_id: Borrower id in the database
        active_loan_ids: Ids of the client's active loans, newest first
        name: Client full name
        client_code: Client code printed on collection lists
    """
    borrower_id: str = Field(..., description="Borrower id in the database")
    active_loan_ids: List[str] = Field(default_factory=list, description="Active loan ids")
    name: str = Field(default="", description="Client full name")
    client_code: str = Field(default="", description="Client code")

    @property
    def has_active_loan(self) -> bool:
        return len(self.active_loan_ids) > 0


class ManualMatch(ResolverBase):
    """Match fields written by an operator override.

    A manual match is always treated as certain, so applying it forces the
    line's confidence to `alta` and its method to `manual`.
    """
    resolved_borrower_id: str
    resolved_loan_id: Optional[str] = None
    db_client_name: Optional[str] = None
    db_client_code: Optional[str] = None


class Reassignment(ResolverBase):
    """Result of assigning a candidate to a line.

    If accepted is False, match is None and reason explains why the candidate
    was shown as disabled.
    """
    accepted: bool = False
    match: Optional[ManualMatch] = None
    reason: Optional[str] = None
