"""Turn raw YouTube channel payloads into flat channel records.

Contact details are scraped from the free-text channel description with
regular expressions, nothing is validated beyond the pattern match.
"""

import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from app.schemas.youtube import SearchOptions

DESCRIPTION_SCAN_LIMIT = 1000
MAX_WEBSITES = 10

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
URL_RE = re.compile(r"https?://[^\s<>\"{}|\\^`\[\]]+")
INSTAGRAM_RE = re.compile(r"instagram\.com/([a-zA-Z0-9._-]+)", re.IGNORECASE)
TWITTER_RE = re.compile(r"twitter\.com/([a-zA-Z0-9_]+)", re.IGNORECASE)
X_RE = re.compile(r"x\.com/([a-zA-Z0-9_]+)", re.IGNORECASE)
TIKTOK_RE = re.compile(r"tiktok\.com/@([a-zA-Z0-9._-]+)", re.IGNORECASE)

OWN_DOMAINS = ("youtube.com", "youtu.be")


def _unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def extract_emails(text: str) -> List[str]:
    return _unique(EMAIL_RE.findall(text))


def extract_urls(text: str) -> List[str]:
    urls = _unique(URL_RE.findall(text))[:MAX_WEBSITES]
    return [u for u in urls if not any(domain in u for domain in OWN_DOMAINS)]


def extract_social(text: str) -> Dict[str, Optional[str]]:
    def first(*patterns: re.Pattern) -> Optional[str]:
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return match.group(0)
        return None

    return {
        "instagram": first(INSTAGRAM_RE),
        "twitter": first(TWITTER_RE, X_RE),
        "tiktok": first(TIKTOK_RE),
    }


def parse_count(value: Any) -> int:
    """Leading-integer parse of a statistics field; 0 when there is none."""
    match = re.match(r"\s*([+-]?\d+)", str(value)) if value is not None else None
    return int(match.group(1)) if match else 0


def average_views(view_count: int, video_count: int) -> int:
    if video_count <= 0:
        return 0
    # half-up, not banker's rounding
    return math.floor(view_count / video_count + 0.5)


def to_channel_record(channel: Dict[str, Any], extracted_at: Optional[datetime] = None) -> Dict[str, Any]:
    snippet = channel.get("snippet") or {}
    stats = channel.get("statistics") or {}
    branding = (channel.get("brandingSettings") or {}).get("channel") or {}
    topics = (channel.get("topicDetails") or {}).get("topicCategories") or []
    thumbnails = snippet.get("thumbnails") or {}
    now = (extracted_at or datetime.now(timezone.utc)).isoformat()

    description = snippet.get("description") or ""
    text = f"{description} {branding.get('description') or ''}"[:DESCRIPTION_SCAN_LIMIT]
    social = extract_social(text)

    subscriber_count = parse_count(stats.get("subscriberCount"))
    # A reported 0 is treated like a missing value
    video_count = parse_count(stats.get("videoCount")) or 1
    view_count = parse_count(stats.get("viewCount"))

    channel_id = channel.get("id") or ""
    custom_url = snippet.get("customUrl") or ""

    return {
        "channelId": channel_id,
        "channelTitle": snippet.get("title") or "N/A",
        "customUrl": custom_url or "N/A",
        "youtubeUrl": f"https://youtube.com/{custom_url or '@' + channel_id}",
        "description": description,
        "emails": extract_emails(text),
        "websites": extract_urls(text),
        "instagram": social["instagram"],
        "twitter": social["twitter"],
        "tiktok": social["tiktok"],
        "subscriberCount": subscriber_count,
        "videoCount": video_count,
        "viewCount": view_count,
        "avgViewsPerVideo": average_views(view_count, video_count),
        "country": snippet.get("country") or "Unknown",
        "keywords": [t.rsplit("/", 1)[-1] for t in topics if t and t.rsplit("/", 1)[-1]],
        "publishedAt": snippet.get("publishedAt") or now,
        "extractedAt": now,
        "thumbnails": {
            size: (thumbnails.get(size) or {}).get("url")
            for size in ("default", "medium", "high")
        },
    }


def has_contact_info(record: Dict[str, Any]) -> bool:
    return bool(
        record["emails"]
        or record["websites"]
        or record["instagram"]
        or record["twitter"]
        or record["tiktok"]
    )


def matches_filters(record: Dict[str, Any], options: SearchOptions) -> bool:
    # Unset and zero bounds both mean "no constraint"
    bounds = (
        ("subscriberCount", options.min_subscribers, options.max_subscribers),
        ("videoCount", options.min_video_count, options.max_video_count),
        ("viewCount", options.min_view_count, options.max_view_count),
    )
    for field, lower, upper in bounds:
        if lower and record[field] < lower:
            return False
        if upper and record[field] > upper:
            return False

    if options.country and record["country"] != options.country:
        return False

    if options.has_contact_info and not has_contact_info(record):
        return False

    return True


def remove_duplicates(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    seen = set()
    unique = []
    for record in records:
        if record["channelId"] in seen:
            continue
        seen.add(record["channelId"])
        unique.append(record)
    return unique
