"""Adapter request models and carrier credential models.

Credentials arrive from callers as plain mappings. Each adapter validates
them against its own model at the operation boundary, so a typo in a
credential key surfaces as a Validation error rather than an HTTP 401 from
the carrier.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from shopickup.models.domain import Parcel

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RequestOptions(BaseModel):
    """Per-call options. Carrier-specific keys are allowed and passed through."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    use_test_api: bool = Field(default=False, description="Route the call to the carrier sandbox")

    def extra_option(self, name: str, default: Any = None) -> Any:
        """Return a pass-through option by its snake_case or camelCase name."""
        extras = self.model_extra or {}
        if name in extras:
            return extras[name]
        return extras.get(to_camel(name), default)


class CreateParcelRequest(BaseModel):
    model_config = _CAMEL

    parcel: Parcel
    credentials: dict[str, Any] = Field(default_factory=dict)
    options: RequestOptions = Field(default_factory=RequestOptions)


class CreateParcelsRequest(BaseModel):
    model_config = _CAMEL

    parcels: list[Parcel] = Field(default_factory=list)
    credentials: dict[str, Any] = Field(default_factory=dict)
    options: RequestOptions = Field(default_factory=RequestOptions)


class CreateLabelRequest(BaseModel):
    model_config = _CAMEL

    parcel_carrier_id: str = Field(..., min_length=1, description="Carrier ID returned by create_parcel")
    credentials: dict[str, Any] = Field(default_factory=dict)
    options: RequestOptions = Field(default_factory=RequestOptions)


class CreateLabelsRequest(BaseModel):
    model_config = _CAMEL

    parcel_carrier_ids: list[str] = Field(default_factory=list)
    credentials: dict[str, Any] = Field(default_factory=dict)
    options: RequestOptions = Field(default_factory=RequestOptions)


class TrackingRequest(BaseModel):
    model_config = _CAMEL

    tracking_number: str = Field(..., min_length=1)
    credentials: dict[str, Any] | None = None
    options: RequestOptions = Field(default_factory=RequestOptions)


class FetchPickupPointsRequest(BaseModel):
    model_config = _CAMEL

    credentials: dict[str, Any] | None = None
    options: RequestOptions = Field(default_factory=RequestOptions)


# --- Carrier credentials ---


class FoxpostCredentials(BaseModel):
    """Foxpost API key plus HTTP Basic credentials."""

    model_config = _CAMEL

    api_key: str = Field(..., min_length=1)
    basic_username: str = Field(..., min_length=1)
    basic_password: str = Field(..., min_length=1)


class GLSCredentials(BaseModel):
    """MyGLS account. The password is hashed before it is sent."""

    model_config = _CAMEL

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    client_number_list: list[int] = Field(..., min_length=1)
    webshop_engine: str | None = None

    @model_validator(mode="after")
    def _positive_client_numbers(self) -> "GLSCredentials":
        if any(number <= 0 for number in self.client_number_list):
            raise ValueError("client numbers must be positive integers")
        return self


class MPLCredentials(BaseModel):
    """MPL credentials: either an API key pair or a ready OAuth2 token."""

    model_config = _CAMEL

    api_key: str | None = None
    api_secret: str | None = None
    oauth2_token: str | None = Field(None, alias="oAuth2Token")
    accounting_code: str | None = None
    agreement_number: str | None = None

    @model_validator(mode="after")
    def _one_auth_method(self) -> "MPLCredentials":
        if not self.oauth2_token and not (self.api_key and self.api_secret):
            raise ValueError("either oAuth2Token or apiKey + apiSecret is required")
        return self

    @property
    def auth_type(self) -> Literal["oauth2", "apiKey"]:
        return "oauth2" if self.oauth2_token else "apiKey"
