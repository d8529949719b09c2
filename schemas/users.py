from typing import List

from pydantic import BaseModel, EmailStr


class UserOut(BaseModel):
    id: int
    full_name: str
    email: EmailStr
    is_active: bool
    role_names: List[str] = []

    class Config:
        from_attributes = True
