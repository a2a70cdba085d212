"""Connector for video transcripts.

The transcript comes from ``youtube-transcript-api`` (blocking, so it runs in
``asyncio.to_thread``) and is retried with backoff.  Title and channel name
come from the public oEmbed endpoint; that lookup is best effort and a
failure only costs the nicer title.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any

import httpx
import structlog
from youtube_transcript_api import (
    CouldNotRetrieveTranscript,
    NoTranscriptFound,
    TranscriptsDisabled,
    VideoUnavailable,
    YouTubeTranscriptApi,
)

from mindweave.models.citation import Citation
from mindweave.models.ingestion import ExtractedContent, SourceType, YouTubePayload
from mindweave.services.ingestion.chunker import normalize_whitespace
from mindweave.services.ingestion.connectors.base import BaseConnector, utc_timestamp
from mindweave.utils import http
from mindweave.utils.errors import (
    ExtractionError,
    MindweaveError,
    TransientFetchError,
    ValidationError,
)

logger = structlog.get_logger(logger_name=__name__)

_OEMBED_URL = "https://www.youtube.com/oembed"
_VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=)([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:youtu\.be/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:youtube\.com/embed/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:youtube\.com/v/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"(?:youtube\.com/shorts/)([a-zA-Z0-9_-]{11})"),
]
_EXCERPT_CHARS = 200


def extract_video_id(url: str) -> str | None:
    """Return the 11-character video id from any common URL form."""
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


class YouTubeConnector(BaseConnector):
    """Video URL -> transcript text + oEmbed attribution."""

    source_type = SourceType.YOUTUBE
    default_max_attempts = 3
    default_initial_delay = 1.0

    def __init__(self, http_client: httpx.AsyncClient, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._client = http_client

    def parse_payload(self, payload: dict[str, Any]) -> YouTubePayload:
        parsed = super().parse_payload(payload)
        video_id = parsed.video_id or extract_video_id(parsed.url)
        if not video_id:
            raise ValidationError(
                message=f"Could not find a video id in {parsed.url}",
                provider_name=self.source_type.value,
            )
        return parsed.model_copy(update={"video_id": video_id})

    async def extract(self, payload: dict[str, Any]) -> ExtractedContent:
        parsed = self.parse_payload(payload)
        video_id = parsed.video_id
        assert video_id is not None

        snippets = await self._with_retry(lambda: self._fetch_transcript(video_id), "transcript")
        text = normalize_whitespace(" ".join(s["text"] for s in snippets if s["text"].strip()))
        if not text:
            raise ExtractionError(
                message=f"Transcript for video {video_id} is empty",
                provider_name=self.source_type.value,
            )
        self._check_size(len(text.encode("utf-8")), "transcript")

        title, author = await self._fetch_oembed(video_id)
        duration = max((s["start"] + s["duration"] for s in snippets), default=0.0)
        watch_url = f"https://www.youtube.com/watch?v={video_id}"

        logger.info("youtube_transcript_extracted", video_id=video_id, chars=len(text))
        return self._create_extracted_content(
            text,
            {
                "title": title,
                "url": parsed.url,
                "author": author,
                "timestamp": utc_timestamp(),
                "video_id": video_id,
                "duration_seconds": round(duration, 1),
            },
            [
                Citation(
                    title=title,
                    url=watch_url,
                    author=author,
                    excerpt=text[:_EXCERPT_CHARS],
                )
            ],
        )

    # ------------------------------------------------------------------
    # Remote calls
    # ------------------------------------------------------------------

    async def _fetch_transcript(self, video_id: str) -> list[dict[str, Any]]:
        try:
            return await asyncio.to_thread(self._fetch_transcript_sync, video_id)
        except (TranscriptsDisabled, NoTranscriptFound, VideoUnavailable) as exc:
            raise ExtractionError(
                message=f"No transcript available for video {video_id}",
                provider_name=self.source_type.value,
            ) from exc
        except (CouldNotRetrieveTranscript, OSError) as exc:
            raise TransientFetchError(
                message=f"Transcript fetch failed for video {video_id}: {exc}",
                provider_name=self.source_type.value,
            ) from exc

    @staticmethod
    def _fetch_transcript_sync(video_id: str) -> list[dict[str, Any]]:
        fetched = YouTubeTranscriptApi().fetch(video_id)
        return [
            {"text": snippet.text, "start": snippet.start, "duration": snippet.duration}
            for snippet in fetched
        ]

    async def _fetch_oembed(self, video_id: str) -> tuple[str, str | None]:
        fallback = f"YouTube Video {video_id}"
        try:
            response = await http.request(
                self._client,
                "GET",
                _OEMBED_URL,
                self.source_type.value,
                params={"url": f"https://www.youtube.com/watch?v={video_id}", "format": "json"},
            )
            data = response.json()
        except (MindweaveError, ValueError) as exc:
            logger.warning("youtube_oembed_failed", video_id=video_id, error=str(exc))
            return fallback, None
        return data.get("title") or fallback, data.get("author_name")
