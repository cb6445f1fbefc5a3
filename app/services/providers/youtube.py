import httpx

from app.models.intelligence_models import YouTubeChannel
from app.models.intelligence_models import YouTubeVideo
from app.models.research_models import Subject
from app.services.providers.base import ProviderAdapter
from app.services.providers.base import to_int

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"


class YouTubeChannelAdapter(ProviderAdapter):
    """Channel statistics plus the most recent uploads (YouTube Data API v3)."""

    name = "youtube_channel"
    field = "youtube"
    required_credentials = ("youtube_api_key",)

    def applies_to(self, subject: Subject) -> bool:
        return bool(subject.youtube_channel_id)

    async def _fetch(self, client, subject, credentials, options) -> YouTubeChannel:
        channel_id = subject.youtube_channel_id
        key = credentials.youtube_api_key

        response = await client.get(
            f"{YOUTUBE_API_BASE}/channels",
            params={"part": "snippet,statistics,contentDetails", "id": channel_id, "key": key},
        )
        response.raise_for_status()
        items = response.json().get("items") or []
        if not items:
            return YouTubeChannel(channel_id=channel_id)

        channel = items[0]
        statistics = channel.get("statistics", {})
        uploads = channel.get("contentDetails", {}).get("relatedPlaylists", {}).get("uploads")
        videos = await self._recent_videos(client, uploads, key, options.get("max_videos", 25)) if uploads else []

        return YouTubeChannel(
            channel_id=channel_id,
            title=channel.get("snippet", {}).get("title"),
            subscriber_count=to_int(statistics.get("subscriberCount")),
            video_count=to_int(statistics.get("videoCount")),
            view_count=to_int(statistics.get("viewCount")),
            recent_videos=videos,
        )

    async def _recent_videos(
        self, client: httpx.AsyncClient, playlist_id: str, key: str, max_videos: int
    ) -> list[YouTubeVideo]:
        response = await client.get(
            f"{YOUTUBE_API_BASE}/playlistItems",
            params={"part": "contentDetails", "playlistId": playlist_id, "maxResults": max_videos, "key": key},
        )
        response.raise_for_status()
        video_ids = [
            item["contentDetails"]["videoId"]
            for item in response.json().get("items") or []
            if item.get("contentDetails", {}).get("videoId")
        ]
        if not video_ids:
            return []

        response = await client.get(
            f"{YOUTUBE_API_BASE}/videos",
            params={"part": "snippet,statistics", "id": ",".join(video_ids), "key": key},
        )
        response.raise_for_status()
        return [
            YouTubeVideo(
                video_id=video.get("id"),
                title=video.get("snippet", {}).get("title") or "",
                view_count=to_int(video.get("statistics", {}).get("viewCount")),
                published_at=video.get("snippet", {}).get("publishedAt"),
            )
            for video in response.json().get("items") or []
        ]
