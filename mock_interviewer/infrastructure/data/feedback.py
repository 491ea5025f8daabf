"""
HTTP client for the feedback (scoring) service.
"""
import logging
from typing import Optional

import requests

from ...config import FEEDBACK_TIMEOUT
from ...interview.schemas import FeedbackRequest, FeedbackResponse
from ...interview.services import FeedbackService

logger = logging.getLogger("feedback_client")


class HttpFeedbackClient(FeedbackService):
    """Posts finished transcripts to the scoring service."""

    def __init__(self,
                 base_url: str,
                 timeout: int = FEEDBACK_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.url = f"{base_url.rstrip('/')}/feedback"
        self.timeout = timeout
        self.session = session or requests.Session()

    def submit(self, request: FeedbackRequest) -> FeedbackResponse:
        payload = request.model_dump(mode="json", by_alias=True)
        logger.info(f"Posting {len(request.transcript)} turns to {self.url}")

        resp = self.session.post(self.url, json=payload, timeout=self.timeout)
        if resp.status_code >= 400:
            raise RuntimeError(f"Feedback service error {resp.status_code}: {resp.text}")

        return FeedbackResponse.model_validate(resp.json())
