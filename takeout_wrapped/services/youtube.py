"""YouTube Data API v3 client for video and channel metadata.

API Docs: https://developers.google.com/youtube/v3/docs
"""

import logging
from typing import Any

import httpx

from takeout_wrapped.core.exceptions import ExternalServiceError, RateLimitError

logger = logging.getLogger(__name__)

QUOTA_REASONS = frozenset({"quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded", "userRateLimitExceeded"})


class YouTubeClient:
    """API client for the YouTube Data API.

    Requires an API key. Each call accepts up to 50 ids, which is the limit
    the API enforces for `videos.list` and `channels.list`.
    """

    API_BASE = "https://www.googleapis.com/youtube/v3"
    MAX_IDS_PER_REQUEST = 50

    def __init__(self, api_key: str, timeout: float = 30.0):
        """Initialize the YouTube client.

        Args:
            api_key: YouTube Data API key.
            timeout: Request timeout in seconds.
        """
        self.api_key = api_key
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        """Make a GET request to the API.

        Raises:
            RateLimitError: On quota exhaustion (403) or rate limiting (429).
            ExternalServiceError: On any other API or connection error.
        """
        client = await self._get_client()

        try:
            response = await client.get(
                f"{self.API_BASE}/{endpoint}",
                params={**params, "key": self.api_key},
            )
        except httpx.HTTPError as e:
            raise ExternalServiceError("YouTube", f"Failed to connect: {e}")

        if response.status_code == 429:
            raise RateLimitError("YouTube", "Rate limit exceeded")

        if response.status_code == 403:
            reason = self._error_reason(response)
            if reason and reason not in QUOTA_REASONS:
                logger.warning(f"YouTube API returned 403 with reason '{reason}'")
            raise RateLimitError("YouTube", f"Quota exceeded ({reason or 'forbidden'})")

        if response.status_code != 200:
            raise ExternalServiceError("YouTube", f"API error: {response.status_code}")

        data: dict[str, Any] = response.json()
        return data

    @staticmethod
    def _error_reason(response: httpx.Response) -> str | None:
        """Extract the first error reason from an API error payload."""
        try:
            errors = response.json().get("error", {}).get("errors", [])
        except ValueError:
            return None
        if errors:
            reason: str | None = errors[0].get("reason")
            return reason
        return None

    def _check_batch(self, ids: list[str]) -> None:
        if len(ids) > self.MAX_IDS_PER_REQUEST:
            raise ValueError(f"At most {self.MAX_IDS_PER_REQUEST} ids per request, got {len(ids)}")

    async def get_videos(self, video_ids: list[str]) -> list[dict[str, Any]]:
        """Get snippet and content details for up to 50 videos.

        Args:
            video_ids: Video ids to look up.

        Returns:
            List of video resources. Unknown or private ids are simply absent.
        """
        self._check_batch(video_ids)
        if not video_ids:
            return []

        data = await self._request(
            "videos",
            {"part": "contentDetails,snippet", "id": ",".join(video_ids)},
        )
        items: list[dict[str, Any]] = data.get("items", [])
        return items

    async def get_channels(self, channel_ids: list[str]) -> list[dict[str, Any]]:
        """Get snippets (including profile images) for up to 50 channels.

        Args:
            channel_ids: Channel ids to look up.

        Returns:
            List of channel resources.
        """
        self._check_batch(channel_ids)
        if not channel_ids:
            return []

        data = await self._request(
            "channels",
            {"part": "snippet", "id": ",".join(channel_ids)},
        )
        items: list[dict[str, Any]] = data.get("items", [])
        return items
