from pydantic import BaseModel, Field
from typing import TypeVar, Generic, List

ItemT = TypeVar("ItemT")

class Pagination(BaseModel):
    page: int = Field(1, ge=1)
    size: int = Field(20, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size

class PaginatedResponse(BaseModel, Generic[ItemT]):
    total: int
    page: int
    size: int
    items: List[ItemT]
