from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .errors import (
    ConfigurationError,
    ContentError,
    QuotaError,
    TransportError,
)

NOT_AVAILABLE = "N/A"
NO_WEBSITE = "None"
NO_LOCATION_LINK = "#"

FailureKind = Literal["configuration", "content", "transport"]


class Coordinates(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class RankBand(BaseModel):
    """検索対象とする順位帯 (例: 6位〜30位)"""

    start: int = Field(1, ge=1)
    end: int = Field(20, ge=1)

    @model_validator(mode="after")
    def _check_order(self) -> "RankBand":
        if self.end < self.start:
            raise ValueError("rank band end must not be lower than start")
        return self


class SearchParams(BaseModel):
    keyword: str
    location: str
    radius_km: float = Field(..., gt=0)
    coords: Optional[Coordinates] = None
    rank_band: RankBand = Field(default_factory=RankBand)
    lead_count: int = Field(15, ge=1)

    @field_validator("keyword", "location")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class Lead(BaseModel):
    """1行分の抽出結果。生成後は変更しない。"""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str
    business_name: str = Field(..., min_length=1)
    phone_number: str = NOT_AVAILABLE
    address: str = NOT_AVAILABLE
    rank: int = Field(..., ge=1)
    website: str = NO_WEBSITE
    location_link: str = NO_LOCATION_LINK
    rating: float = Field(0.0, ge=0, le=5)
    distance: str = NOT_AVAILABLE
    keyword: str


class LeadStats(BaseModel):
    total: int
    average_rating: float
    unique_keywords: int


class SearchSucceeded(BaseModel):
    status: Literal["ok"] = "ok"
    leads: List[Lead]

    def unwrap(self) -> List[Lead]:
        return self.leads


class SearchQuotaExceeded(BaseModel):
    status: Literal["quota_exceeded"] = "quota_exceeded"
    message: str
    retry_after_seconds: int = Field(..., ge=0)

    def unwrap(self) -> List[Lead]:
        raise QuotaError(self.message, self.retry_after_seconds)


class SearchFailed(BaseModel):
    status: Literal["failed"] = "failed"
    kind: FailureKind
    message: str

    def unwrap(self) -> List[Lead]:
        if self.kind == "configuration":
            raise ConfigurationError(self.message)
        if self.kind == "content":
            raise ContentError(self.message)
        raise TransportError(self.message)


SearchOutcome = Annotated[
    Union[SearchSucceeded, SearchQuotaExceeded, SearchFailed],
    Field(discriminator="status"),
]
