from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Locale(str, Enum):
    PT = "pt"
    EN = "en"
    ES = "es"


# Order matters: catalogs are read, written and reported in this order.
LOCALES: list[str] = [Locale.PT.value, Locale.EN.value, Locale.ES.value]


class PlanKind(str, Enum):
    NEW = "new"
    EXISTING = "existing"


class ThumbnailMode(str, Enum):
    IMAGE = "image"
    LOGO_COLOR = "logoColor"


# Field order of a persisted project record. Unknown keys follow in their
# original order so hand-added fields survive a rewrite.
PROJECT_FIELD_ORDER: List[str] = [
    "id",
    "title",
    "description",
    "image",
    "initialDate",
    "endDate",
    "projectUrlLink",
    "linkedinUrlLink",
    "githubUrlLink",
    "developed",
    "developingPercentage",
    "icons",
    "compatibility",
    "images",
]

SHARED_FIELDS: List[str] = [
    "initialDate",
    "endDate",
    "projectUrlLink",
    "linkedinUrlLink",
    "githubUrlLink",
    "developed",
    "developingPercentage",
    "compatibility",
    "icons",
]


class CamelModel(BaseModel):
    """Base for wire models: snake_case attributes, camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorBody(BaseModel):
    code: str
    message: str
    status: int
    details: List[str] | None = None


class ErrorResponse(BaseModel):
    error: ErrorBody
