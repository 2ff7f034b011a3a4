"""
Business record model.

Records are owned by the record store; the chat core only reads them.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

ACTIVE_STATUS = "Active"


class BusinessRecord(BaseModel):
    """One business listing as stored in the record store."""

    model_config = ConfigDict(frozen=True)

    id: str
    slug: Optional[str] = None
    name: str = ""
    description: Optional[str] = None  # rich text (HTML)

    address: Optional[str] = None
    city: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None

    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    email: Optional[str] = None
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    website: Optional[str] = None
    tiktok: Optional[str] = None
    youtube: Optional[str] = None

    opening: Optional[int] = None
    closing: Optional[int] = None

    verified: bool = False
    featured: bool = False
    status: str = ACTIVE_STATUS
    is_new_arrival: bool = False
    is_not_available: bool = False

    tags: List[str] = Field(default_factory=list)
    brand: Optional[str] = None

    price: Optional[float] = None
    sale_price: Optional[float] = None
    discount: Optional[float] = None
    net_price: Optional[float] = None

    views: int = 0
    like_count: int = 0
    rating_count: int = 0
    rating_avg: float = 0.0

    featured_image: Optional[str] = None
    images: List[str] = Field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE_STATUS

    @property
    def hours_label(self) -> Optional[str]:
        if self.opening is None or self.closing is None:
            return None
        return f"{self.opening}:00 - {self.closing}:00"
