from typing import Any, Dict, List, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from checkout_backend.utils.validators import is_valid_us_zip, normalize_state_code


class ShippingItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    price: int = Field(default=0, ge=0)
    quantity: int = Field(ge=0, le=10000)
    weight: Optional[float] = None
    product_type: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    properties: Dict[str, Any] = Field(default_factory=dict)
    is_onebox: bool = False
    variant_id: Optional[Union[int, str]] = None
    title: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def split_tags(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [t.strip() for t in v.split(",") if t.strip()]
        return v


class ShippingAddress(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    state: Optional[str] = Field(default=None, validation_alias=AliasChoices("state", "province_code"))
    postal_code: Optional[str] = Field(default=None, validation_alias=AliasChoices("postal_code", "zip", "postalCode"))
    country: str = Field(default="US", validation_alias=AliasChoices("country", "country_code"))

    @field_validator("state", mode="before")
    @classmethod
    def upper_state(cls, v):
        return normalize_state_code(v) or None

    @field_validator("state")
    @classmethod
    def state_is_code(cls, v):
        if v is not None and (len(v) != 2 or not v.isalpha()):
            raise ValueError("state must be a two-letter code")
        return v

    @field_validator("postal_code")
    @classmethod
    def strip_postal_code(cls, v):
        return v.strip() if isinstance(v, str) else v

    def has_valid_postal_code(self) -> bool:
        if not self.postal_code or self.country.upper() not in ("US", "USA"):
            return True
        return is_valid_us_zip(self.postal_code)


class ShippingRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    items: List[ShippingItem] = Field(min_length=1)
    address: ShippingAddress = Field(default_factory=ShippingAddress)
