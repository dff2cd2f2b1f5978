from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from uuid import UUID

from pydantic import BaseModel


class ChallengeCreate(BaseModel):
    tenant_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    type: str
    status: str = "DRAFT"
    start_date: datetime
    end_date: datetime
    target_value: Decimal
    completion_points: int = 0
    milestones: List[Dict[str, Any]] = []


class ChallengeUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    target_value: Optional[Decimal] = None
    completion_points: Optional[int] = None
    milestones: Optional[List[Dict[str, Any]]] = None


class ChallengeOut(BaseModel):
    id: UUID
    tenant_id: str
    name: str
    description: Optional[str] = None
    type: str
    status: str
    start_date: datetime
    end_date: datetime
    target_value: Decimal
    completion_points: int
    milestones: Optional[List[Dict[str, Any]]] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChallengeProgressOut(BaseModel):
    id: UUID
    account_id: UUID
    challenge_id: UUID
    current_progress: Decimal
    target_value: Decimal
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True
