from pydantic import BaseModel, Field

class ProjectCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1)
    description: str | None = None


class ProjectUpdate(BaseModel):
    code: str | None = None
    name: str | None = None
    description: str | None = None

class ProjectOut(BaseModel):
    id: int
    code: str
    name: str
    description: str | None = None
