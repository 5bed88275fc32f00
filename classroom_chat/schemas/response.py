from pydantic import BaseModel
from typing import Dict, Generic, List, Optional, TypeVar, Union

T = TypeVar("T")

class BaseResponse(BaseModel, Generic[T]):
    """Envelope for successful responses; failures use the error envelope from the exception handlers."""
    success: bool
    message: str
    data: Optional[T] = None
    errors: Optional[Union[str, List[str], Dict[str, str]]] = None
