"""Final stamping of pipeline output before it reaches storage and display."""

from __future__ import annotations

from .feedback_models import FeedbackRecord, FeedbackRequest, LogicalFlowHighlight


def assemble(request: FeedbackRequest, record: FeedbackRecord) -> FeedbackRecord:
    """Return a copy carrying the caller's submitter name and a logical-flow highlight.

    The name echoed by the model is never trusted; the request is authoritative.
    """
    highlight = record.logical_flow_highlight
    if highlight is None:
        highlight = LogicalFlowHighlight(
            rating=record.ratings.logical_flow.stars,
            comment=record.ratings.logical_flow.comment,
        )
    return record.model_copy(
        update={
            "submitter_name": request.submitter_name,
            "logical_flow_highlight": highlight,
        }
    )


__all__ = ["assemble"]
