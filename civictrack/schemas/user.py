#civictrack\schemas\user.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    username: str
    phone: Optional[str] = None
    role: str
    is_banned: bool
    created_at: Optional[datetime] = None
    issue_count: int = 0

class UserIdsIn(BaseModel):
    user_ids: list[str] = Field(default_factory=list)
