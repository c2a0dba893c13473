"""Auction bid domain model."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from src.domain.employee import Grade


class AuctionBid(BaseModel):
    """Auction bid data transfer object.

    Bidder rating, grade and points are snapshots taken when the bid was
    placed. Only ``is_active`` changes after creation.
    """

    id: str = Field(..., description="Unique bid ID from database")
    created: datetime = Field(..., description="When the bid was placed")
    task_id: str = Field(..., description="Task being bid on")
    bidder_id: str = Field(..., description="Employee who placed the bid")
    bidder_name: str = Field(..., description="Bidder display name")
    bidder_rating: str = Field(default="0", description="Bidder rating at bid time")
    bidder_grade: Grade = Field(..., description="Bidder grade at bid time")
    bidder_points: int = Field(default=0, description="Bidder points at bid time")
    value_money: Decimal | None = Field(default=None, description="Offered price (MONEY mode)")
    value_time_minutes: int | None = Field(default=None, description="Offered minutes (TIME mode)")
    is_active: bool = Field(default=True, description="False once withdrawn or the task left backlog")
