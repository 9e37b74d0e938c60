from .feedback import (
    FEEDBACK_TOPICS,
    TOPIC_FEEDBACK_CREATE,
    TOPIC_FEEDBACK_DELETE,
    TOPIC_FEEDBACK_UPDATE,
    BroadcastPayload,
    Feedback,
    FeedbackType,
)

__all__ = [
    "FEEDBACK_TOPICS",
    "TOPIC_FEEDBACK_CREATE",
    "TOPIC_FEEDBACK_DELETE",
    "TOPIC_FEEDBACK_UPDATE",
    "BroadcastPayload",
    "Feedback",
    "FeedbackType",
]
