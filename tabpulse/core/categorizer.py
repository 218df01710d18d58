# ==============================================================================
# Page Categorizer - Pure Domain Logic
# ==============================================================================
"""
Rule-based, confidence-scored categorization of page visits.

Categorization is an ordered list of tiers. Each tier looks at one kind of
signal and returns a (category, confidence) pair or None:

    1. Schema.org structured data type
    2. Open Graph type
    3. Domain + URL pattern table
    4. Content signals (code editor, feed, keyword families)

The first tier whose confidence reaches CONFIDENCE_THRESHOLD wins and a
behavioral adjustment pass is applied to it. When no tier qualifies the
visit is unclassified.

Everything here is deterministic and works without metadata: a missing
metadata record simply makes the schema, Open Graph and content tiers abstain.
"""

import re
from collections.abc import Callable
from enum import Enum

from tabpulse.core.models import CategoryResult, PageMetadata, PageVisit

CONFIDENCE_THRESHOLD = 0.6

# Behavioral adjustment constants
LOW_ENGAGEMENT_RATE = 0.2
SHORT_VISIT_MS = 60_000
SHORT_VISIT_MULTIPLIER = 0.7
EDITING_BOOST = 0.1

# Content thresholds
SHORT_VIDEO_SECONDS = 60
LONG_VIDEO_SECONDS = 1800
LONG_ARTICLE_WORDS = 2000
MIN_CONTENT_TEXT = 10


class Category(str, Enum):
    """Known page categories."""

    WORK_CODING = "work_coding"
    WORK_CODE_REVIEW = "work_code_review"
    WORK_COMMUNICATION = "work_communication"
    WORK_DOCUMENTATION = "work_documentation"
    LEARNING_VIDEO = "learning_video"
    LEARNING_READING = "learning_reading"
    ENTERTAINMENT_VIDEO = "entertainment_video"
    ENTERTAINMENT_BROWSING = "entertainment_browsing"
    ENTERTAINMENT_SHORT_FORM = "entertainment_short_form"
    SOCIAL_MEDIA = "social_media"
    NEWS = "news"
    SHOPPING = "shopping"
    REFERENCE = "reference"
    UNCLASSIFIED = "unclassified"


Score = tuple[Category, float]
Tier = Callable[[PageVisit, PageMetadata], Score | None]

UNCLASSIFIED = CategoryResult(
    category=Category.UNCLASSIFIED.value, confidence=0.0, method="unclassified"
)


# ==============================================================================
# Helpers
# ==============================================================================

_DURATION_PATTERN = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


def parse_duration(value: str | None) -> int:
    """
    Parse an ISO-8601 duration of the form PT#H#M#S into seconds.

    Any subset of the H, M and S components may be present.

    Args:
        value: Duration string, e.g. "PT45M30S"

    Returns:
        Total seconds, or 0 when value is absent or malformed
    """
    if not value or not isinstance(value, str):
        return 0
    match = _DURATION_PATTERN.search(value)
    if not match:
        return 0
    hours, minutes, seconds = (int(group or 0) for group in match.groups())
    return hours * 3600 + minutes * 60 + seconds


def _on_domain(domain: str, *candidates: str) -> bool:
    """True if domain is one of candidates or a subdomain of one."""
    return any(domain == c or domain.endswith("." + c) for c in candidates)


def _contains_any(text: str, needles: tuple[str, ...]) -> bool:
    return any(needle in text for needle in needles)


def _title(visit: PageVisit, metadata: PageMetadata) -> str:
    return (visit.title or metadata.title or "").lower()


# ==============================================================================
# Tier 1: Schema.org
# ==============================================================================

VIDEO_LEARNING_KEYWORDS = (
    "tutorial",
    "course",
    "lecture",
    "learn",
    "how to",
    "guide",
    "lesson",
    "training",
    "workshop",
    "education",
)
VIDEO_ENTERTAINMENT_KEYWORDS = ("trailer", "movie", "episode", "stream", "season")
ARTICLE_LEARNING_KEYWORDS = (
    "programming",
    "coding",
    "development",
    "software",
    "tutorial",
    "guide",
    "documentation",
    "tech",
)

_SCHEMA_DIRECT: dict[str, Score] = {
    "Movie": (Category.ENTERTAINMENT_VIDEO, 0.95),
    "TVSeries": (Category.ENTERTAINMENT_VIDEO, 0.95),
    "TVEpisode": (Category.ENTERTAINMENT_VIDEO, 0.95),
    "SoftwareSourceCode": (Category.WORK_CODING, 0.9),
    "Course": (Category.LEARNING_VIDEO, 0.95),
    "NewsArticle": (Category.NEWS, 0.95),
    "Product": (Category.SHOPPING, 0.85),
}


def categorize_video(visit: PageVisit, metadata: PageMetadata) -> Score:
    """Sub-rule for VideoObject pages."""
    title = _title(visit, metadata)
    url = visit.url or ""
    duration = parse_duration(metadata.schema_data.get("duration"))

    if 0 < duration < SHORT_VIDEO_SECONDS:
        return Category.ENTERTAINMENT_SHORT_FORM, 0.9
    if "/shorts" in url or "/reels" in url:
        return Category.ENTERTAINMENT_SHORT_FORM, 0.95
    if _contains_any(title, VIDEO_LEARNING_KEYWORDS):
        return Category.LEARNING_VIDEO, 0.95

    genre = metadata.schema_data.get("genre")
    if isinstance(genre, str) and genre.lower() == "education":
        return Category.LEARNING_VIDEO, 0.9

    if _contains_any(title, VIDEO_ENTERTAINMENT_KEYWORDS):
        return Category.ENTERTAINMENT_VIDEO, 0.85
    if duration > LONG_VIDEO_SECONDS:
        return Category.ENTERTAINMENT_VIDEO, 0.75
    return Category.ENTERTAINMENT_VIDEO, 0.7


def categorize_article(visit: PageVisit, metadata: PageMetadata) -> Score:
    """Sub-rule for Article/BlogPosting pages and og:type=article."""
    title = _title(visit, metadata)
    keywords = metadata.keywords.lower()
    section = (metadata.article_section or "").lower()

    for text in (title, keywords, section):
        if _contains_any(text, ARTICLE_LEARNING_KEYWORDS):
            return Category.LEARNING_READING, 0.85
    if metadata.word_count > LONG_ARTICLE_WORDS:
        return Category.LEARNING_READING, 0.75
    return Category.LEARNING_READING, 0.65


def categorize_by_schema(visit: PageVisit, metadata: PageMetadata) -> Score | None:
    schema_type = metadata.schema_type
    if not schema_type:
        return None
    if schema_type in _SCHEMA_DIRECT:
        return _SCHEMA_DIRECT[schema_type]
    if schema_type == "VideoObject":
        return categorize_video(visit, metadata)
    if schema_type in ("Article", "BlogPosting"):
        return categorize_article(visit, metadata)
    return None


# ==============================================================================
# Tier 2: Open Graph
# ==============================================================================


def categorize_by_open_graph(visit: PageVisit, metadata: PageMetadata) -> Score | None:
    og_type = metadata.og_type
    if not og_type:
        return None
    if og_type in ("video.movie", "video.episode"):
        return Category.ENTERTAINMENT_VIDEO, 0.95
    if og_type == "article":
        return categorize_article(visit, metadata)
    return None


# ==============================================================================
# Tier 3: Domain + URL patterns
# ==============================================================================

CODE_EDITOR_DOMAINS = ("vscode.dev", "codesandbox.io", "replit.com", "codepen.io", "jsfiddle.net")
COMMUNICATION_DOMAINS = (
    "slack.com",
    "teams.microsoft.com",
    "discord.com",
    "zoom.us",
    "meet.google.com",
    "mail.google.com",
    "outlook.live.com",
    "outlook.office.com",
)
PROJECT_DOMAINS = ("atlassian.net", "linear.app", "asana.com", "trello.com")
DOCUMENTATION_DOMAINS = ("notion.so", "coda.io", "roamresearch.com", "obsidian.md")
TECH_DOC_DOMAINS = (
    "stackoverflow.com",
    "docs.python.org",
    "developer.mozilla.org",
    "reactjs.org",
    "react.dev",
    "vuejs.org",
    "nodejs.org",
    "go.dev",
)
SOCIAL_DOMAINS = (
    "twitter.com",
    "x.com",
    "facebook.com",
    "instagram.com",
    "linkedin.com",
    "tiktok.com",
)
PROGRAMMING_SUBREDDITS = (
    "/r/programming",
    "/r/coding",
    "/r/webdev",
    "/r/learnprogramming",
    "/r/javascript",
    "/r/python",
)
NEWS_DOMAINS = (
    "nytimes.com",
    "bbc.com",
    "bbc.co.uk",
    "cnn.com",
    "theguardian.com",
    "reuters.com",
    "apnews.com",
    "techcrunch.com",
    "theverge.com",
    "arstechnica.com",
    "news.ycombinator.com",
    "lobste.rs",
)
SHOPPING_DOMAINS = (
    "amazon.com",
    "ebay.com",
    "etsy.com",
    "aliexpress.com",
    "walmart.com",
    "target.com",
)
REFERENCE_DOMAINS = (
    "wikipedia.org",
    "dictionary.com",
    "translate.google.com",
    "weather.com",
    "maps.google.com",
)
STREAMING_DOMAINS = ("netflix.com", "hulu.com", "disneyplus.com", "hbo.com", "max.com")


def categorize_by_domain(visit: PageVisit, metadata: PageMetadata) -> Score | None:
    domain = (visit.domain or "").lower()
    url = visit.url or ""
    if not domain:
        return None

    if _on_domain(domain, "github.com"):
        if "/pull/" in url:
            return Category.WORK_CODE_REVIEW, 0.95
        if "/issues/" in url or "/discussions/" in url:
            return Category.WORK_COMMUNICATION, 0.85
        if "/blob/" in url or "/tree/" in url or "/commit/" in url:
            return Category.WORK_CODING, 0.9
        return Category.WORK_CODING, 0.75

    # Hosted and self-hosted GitLab instances
    if "gitlab" in domain:
        if "/merge_requests/" in url:
            return Category.WORK_CODE_REVIEW, 0.95
        if "/issues/" in url:
            return Category.WORK_COMMUNICATION, 0.85
        return Category.WORK_CODING, 0.75

    if _on_domain(domain, *CODE_EDITOR_DOMAINS):
        return Category.WORK_CODING, 0.9

    if _on_domain(domain, *COMMUNICATION_DOMAINS) or _on_domain(domain, *PROJECT_DOMAINS):
        return Category.WORK_COMMUNICATION, 0.9

    if _on_domain(domain, *DOCUMENTATION_DOMAINS):
        return Category.WORK_DOCUMENTATION, 0.9 if metadata.is_editing else 0.75

    if domain == "docs.google.com":
        return Category.WORK_DOCUMENTATION, 0.9 if "/edit" in url else 0.75

    if _on_domain(domain, *TECH_DOC_DOMAINS):
        return Category.LEARNING_READING, 0.9

    if _on_domain(domain, *SOCIAL_DOMAINS):
        # Long-form professional posts
        if _on_domain(domain, "linkedin.com") and "/pulse/" in url:
            return Category.LEARNING_READING, 0.8
        return Category.SOCIAL_MEDIA, 0.9

    if _on_domain(domain, "reddit.com"):
        if _contains_any(url.lower(), PROGRAMMING_SUBREDDITS):
            return Category.LEARNING_READING, 0.7
        return Category.SOCIAL_MEDIA, 0.9

    if _on_domain(domain, *NEWS_DOMAINS):
        return Category.NEWS, 0.85

    if _on_domain(domain, *SHOPPING_DOMAINS):
        return Category.SHOPPING, 0.9

    if _on_domain(domain, *REFERENCE_DOMAINS):
        return Category.REFERENCE, 0.9

    if _on_domain(domain, "youtube.com"):
        if "/watch" not in url and "/shorts" not in url:
            return Category.ENTERTAINMENT_BROWSING, 0.8
        return None

    if _on_domain(domain, *STREAMING_DOMAINS):
        if "/watch" not in url and "/play" not in url:
            return Category.ENTERTAINMENT_BROWSING, 0.8

    return None


# ==============================================================================
# Tier 4: Content signals
# ==============================================================================

# Checked in order; the first family whose pattern matches wins
_KEYWORD_FAMILIES: tuple[tuple[re.Pattern, Category], ...] = (
    (
        re.compile(
            r"\b(music|songs|albums?|playlist|artist|streaming|spotify|soundcloud|audio|"
            r"listen|tracks?)\b",
            re.IGNORECASE,
        ),
        Category.ENTERTAINMENT_VIDEO,
    ),
    (
        re.compile(r"\b(video|watch|stream|episode|movie|series|tv show|cinema)\b", re.IGNORECASE),
        Category.ENTERTAINMENT_VIDEO,
    ),
    (
        re.compile(
            r"\b(shop|buy|cart|checkout|price|product|store|purchase|sale|order|marketplace)\b",
            re.IGNORECASE,
        ),
        Category.SHOPPING,
    ),
    (
        re.compile(
            r"\b(social|friends|followers?|posts?|likes?|shares?|community|profile|feed|"
            r"timeline)\b",
            re.IGNORECASE,
        ),
        Category.SOCIAL_MEDIA,
    ),
    (
        re.compile(
            r"\b(news|breaking|headlines?|journalism|reporter|article|press|media|"
            r"current events)\b",
            re.IGNORECASE,
        ),
        Category.NEWS,
    ),
    (
        re.compile(
            r"\b(email|mail|inbox|message|gmail|outlook|compose|reply|send|conversation)\b",
            re.IGNORECASE,
        ),
        Category.WORK_COMMUNICATION,
    ),
    (
        re.compile(
            r"\b(document|spreadsheet|presentation|editor|collaborate|workspace|office|"
            r"productivity)\b",
            re.IGNORECASE,
        ),
        Category.WORK_DOCUMENTATION,
    ),
    (
        re.compile(
            r"\b(tutorial|course|learn|education|training|guide|lesson|teach|study|class|"
            r"university)\b",
            re.IGNORECASE,
        ),
        Category.LEARNING_READING,
    ),
    (
        re.compile(
            r"\b(documentation|docs|api|reference|developer|programming|code|sdk|library)\b",
            re.IGNORECASE,
        ),
        Category.LEARNING_READING,
    ),
)


def categorize_by_content(visit: PageVisit, metadata: PageMetadata) -> Score | None:
    if metadata.has_code_editor:
        return Category.WORK_CODING, 0.85
    if metadata.has_feed:
        return Category.SOCIAL_MEDIA, 0.75

    sources = (visit.title, metadata.title, metadata.description, metadata.keywords)
    text = " ".join(part for part in sources if part).lower()
    if len(text) < MIN_CONTENT_TEXT:
        return None

    if metadata.has_video:
        return Category.ENTERTAINMENT_VIDEO, 0.7

    for pattern, category in _KEYWORD_FAMILIES:
        if pattern.search(text):
            return category, 0.7
    return None


# ==============================================================================
# Cascade
# ==============================================================================

TIERS: tuple[Tier, ...] = (
    categorize_by_schema,
    categorize_by_open_graph,
    categorize_by_domain,
    categorize_by_content,
)


def apply_behavioral_adjustments(
    score: Score, visit: PageVisit, metadata: PageMetadata
) -> float:
    """
    Adjust an accepted confidence using how the visit actually went.

    Closed visits shorter than a minute with an engagement rate under 0.2 lose
    30% confidence on work_* and learning_* categories. Documentation pages
    being edited gain 0.1, capped at 1.0.

    Returns:
        The adjusted confidence
    """
    category, confidence = score

    is_drive_by = (
        visit.duration_ms is not None
        and visit.duration_ms < SHORT_VISIT_MS
        and visit.engagement_rate < LOW_ENGAGEMENT_RATE
    )
    if is_drive_by and category.value.startswith(("work_", "learning_")):
        return round(confidence * SHORT_VISIT_MULTIPLIER, 4)

    if category == Category.WORK_DOCUMENTATION and metadata.is_editing:
        return round(min(confidence + EDITING_BOOST, 1.0), 4)

    return confidence


def categorize(visit: PageVisit, metadata: PageMetadata | None = None) -> CategoryResult:
    """
    Categorize a page visit.

    Args:
        visit: The visit being categorized (url, domain, title, and, for
               closed visits, duration and engagement rate)
        metadata: Page metadata; falls back to visit.metadata, then to none

    Returns:
        CategoryResult with method "metadata", or the unclassified result
    """
    meta = metadata or visit.metadata or PageMetadata()

    for tier in TIERS:
        score = tier(visit, meta)
        if score is None or score[1] < CONFIDENCE_THRESHOLD:
            continue
        return CategoryResult(
            category=score[0].value,
            confidence=apply_behavioral_adjustments(score, visit, meta),
            method="metadata",
        )

    return UNCLASSIFIED
