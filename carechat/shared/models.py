from pydantic import BaseModel, Field
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current time used for every stored timestamp."""
    return datetime.now(timezone.utc)


class TimestampMixin(BaseModel):
    """Mixin for adding timestamp fields to documents."""

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def update_timestamp(self):
        """Update the updated_at timestamp."""
        self.updated_at = utc_now()
