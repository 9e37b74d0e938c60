from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# Topic constants
TOPIC_FEEDBACK_CREATE = "feedback.create"
TOPIC_FEEDBACK_UPDATE = "feedback.update"
TOPIC_FEEDBACK_DELETE = "feedback.delete"

FEEDBACK_TOPICS = (TOPIC_FEEDBACK_CREATE, TOPIC_FEEDBACK_UPDATE, TOPIC_FEEDBACK_DELETE)

FeedbackType = Literal["bug", "feature", "general"]


class Feedback(BaseModel):
    """Feedback record as broadcast on feedback.create."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = None
    email: str
    description: str | None = None
    feedback_type: FeedbackType | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")


class BroadcastPayload(BaseModel):
    """Generic change notification (feedback.update, feedback.delete)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    timestamp: str | None = None
    data: Any = None
