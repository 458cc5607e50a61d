from typing import Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict

DataT = TypeVar("DataT")


class BaseSchema(BaseModel):
    """Base schema for all models."""
    model_config = ConfigDict(from_attributes=True)


class SuccessEnvelope(BaseModel, Generic[DataT]):
    """Response envelope used by the chat endpoints."""
    success: bool = True
    data: DataT


class ErrorEnvelope(BaseModel):
    """Error body returned for every handled failure."""
    success: bool = False
    message: str
    errors: Optional[Dict[str, List[str]]] = None
