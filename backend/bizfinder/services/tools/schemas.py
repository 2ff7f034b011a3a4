"""
Input models for the tool catalog, one per tool.

The registry maps each tool name to its model, so a tool invocation payload
is validated as the variant selected by its name. The JSON schema handed to
the model is generated from these classes.
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

MAX_PAGE_SIZE = 50


class ToolInput(BaseModel):
    # Models sometimes send extra keys; ignore them instead of failing the call.
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class SearchBusinessesInput(ToolInput):
    id: Optional[str] = Field(None, description="Business identifier (exact match)")
    slug: Optional[str] = Field(None, description="Business slug (exact match)")
    name: Optional[str] = Field(None, description="Business name or part of it")
    query: Optional[str] = Field(
        None,
        description="Free-text keywords searched in name, description and tags",
    )


class ListBusinessesInput(ToolInput):
    verified: Optional[bool] = Field(None, description="Only verified (or only unverified) businesses")
    featured: Optional[bool] = Field(None, description="Only featured (or only non-featured) businesses")
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE, description="Maximum number of results")
    offset: int = Field(0, ge=0, description="Number of results to skip, for pagination")


class BusinessIdInput(ToolInput):
    id: str = Field(..., min_length=1, description="Business identifier")


class GetBusinessDetailsInput(BusinessIdInput):
    pass


class GetBusinessContactInput(BusinessIdInput):
    pass


class SearchByCategoryInput(ToolInput):
    tag: str = Field(
        ...,
        min_length=1,
        description="Tag or keyword matched against business tags, e.g. 'restaurantes', 'eventos', 'flores'",
    )
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE, description="Maximum number of results")


class ListVerifiedBusinessesInput(ToolInput):
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE, description="Maximum number of results")


class SearchByLocationInput(ToolInput):
    city: Optional[str] = Field(None, description="City or area; matched against city and address")
    address: Optional[str] = Field(None, description="Part of the street address")
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE, description="Maximum number of results")

    @model_validator(mode="after")
    def require_city_or_address(self) -> "SearchByLocationInput":
        if not self.city and not self.address:
            raise ValueError("city or address is required")
        return self


class ExploreCategoriesInput(ToolInput):
    limit: int = Field(30, ge=1, le=100, description="Maximum number of categories to return")


class ShareBusinessInput(ToolInput):
    id: str = Field(..., min_length=1, description="Business identifier")
    slug: str = Field(..., min_length=1, description="Business slug")
    name: str = Field(..., min_length=1, description="Business name")


class SmartSearchInput(ToolInput):
    terms: List[str] = Field(
        ...,
        min_length=1,
        description="Search terms; a business matches when any term appears in its name, description, tags or address",
    )
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE, description="Maximum number of results")

    @field_validator("terms")
    @classmethod
    def drop_blank_terms(cls, value: List[str]) -> List[str]:
        terms = [t.strip() for t in value if t and t.strip()]
        if not terms:
            raise ValueError("at least one non-blank term is required")
        return terms


def input_schema(model: type) -> dict:
    """JSON schema for a tool input model, in the shape the model API expects."""
    schema = model.model_json_schema()
    schema.pop("title", None)
    for prop in schema.get("properties", {}).values():
        prop.pop("title", None)
    schema.setdefault("properties", {})
    return schema
