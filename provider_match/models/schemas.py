from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional, Union

# -------- Request bodies --------
# All optional: the routers name every missing field in one ValidationError.

class LocationBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    area: Optional[str] = None
    coordinates: Optional[Union[Dict[str, float], List[float]]] = None


class MatchProvidersBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    category: Optional[Union[str, Dict[str, Any]]] = None
    date: Optional[str] = None
    time: Optional[str] = None
    duration: Optional[int] = None
    location: Optional[LocationBody] = None
    providersNeeded: Optional[int] = None
    urgency: Optional[str] = None
    budget: Optional[Dict[str, Optional[float]]] = None
    selectedSubService: Optional[Union[str, Dict[str, Any]]] = None
    limit: Optional[int] = None


class SyntheticListingBody(BaseModel):
    providerId: Optional[str] = None
    category: Optional[Union[str, Dict[str, Any]]] = None
    area: Optional[str] = None


# -------- Responses --------

class MatchProvidersResponse(BaseModel):
    success: bool = True
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)


class SyntheticListingResponse(BaseModel):
    success: bool = True
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ProviderScoreResponse(BaseModel):
    success: bool = True
    message: str
    data: Dict[str, Any] = Field(default_factory=dict)
