from typing import Generic, List, TypeVar

from pydantic import BaseModel

ItemT = TypeVar("ItemT")


class PatchModel(BaseModel):
    """Base for sparse update payloads.

    A field left out of the request body is not in ``model_fields_set``, which
    keeps "omitted" apart from an explicit ``null`` or ``[]``.
    """

    def provided(self, name: str) -> bool:
        return name in self.model_fields_set

    def changes(self) -> dict:
        return {name: getattr(self, name) for name in self.model_fields_set}


class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class Page(BaseModel, Generic[ItemT]):
    items: List[ItemT]
    pagination: PaginationInfo


class MessageResponse(BaseModel):
    message: str
