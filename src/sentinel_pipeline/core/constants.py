from __future__ import annotations

DEFAULT_SOURCES = [  # name, url, reliability(0~1), priority, enabled
    {"name": "Khmer Times", "url": "https://www.khmertimeskh.com/feed/", "reliability": 0.85, "priority": "high", "enabled": True},
    {"name": "Phnom Penh Post", "url": "https://www.phnompenhpost.com/rss", "reliability": 0.85, "priority": "high", "enabled": False},
    {"name": "VOA Khmer", "url": "https://www.voacambodia.com/rss/", "reliability": 0.8, "priority": "high", "enabled": False},
    {"name": "Nikkei Asia", "url": "https://asia.nikkei.com/rss", "reliability": 0.9, "priority": "medium", "enabled": False},
    {"name": "BBC World", "url": "https://feeds.bbci.co.uk/news/world/rss.xml", "reliability": 0.95, "priority": "medium", "enabled": True},
    {"name": "Al Jazeera", "url": "https://www.aljazeera.com/xml/rss/all.xml", "reliability": 0.85, "priority": "medium", "enabled": False},
    {"name": "The Guardian World", "url": "https://www.theguardian.com/world/rss", "reliability": 0.9, "priority": "medium", "enabled": False},
    {"name": "NYTimes World", "url": "https://rss.nytimes.com/services/xml/rss/nyt/World.xml", "reliability": 0.9, "priority": "medium", "enabled": False},
    {"name": "TechCrunch", "url": "https://techcrunch.com/feed/", "reliability": 0.8, "priority": "low", "enabled": True},
    {"name": "Ars Technica", "url": "https://feeds.arstechnica.com/arstechnica/index", "reliability": 0.8, "priority": "low", "enabled": False},
    {"name": "The Verge", "url": "https://www.theverge.com/rss/index.xml", "reliability": 0.75, "priority": "low", "enabled": False},
    {"name": "World Bank", "url": "https://www.worldbank.org/en/news/all?format=rss", "reliability": 0.9, "priority": "low", "enabled": False},
]

SOURCE_PRIORITIES = ("low", "medium", "high")

PRIORITY_RANK = {"high": 0, "medium": 1, "low": 2}  # 정렬용: 작은 값이 먼저

LOCAL_REGION_KEYWORDS = [  # 지역 관련성 (최우선 가점)
    "cambodia", "cambodian", "phnom penh", "asean", "mekong", "siem reap", "khmer",
    "sihanoukville", "battambang", "kampot", "angkor",
]

GLOBAL_BREAKING_KEYWORDS = [  # 국제/속보성
    "breaking", "urgent", "just in", "united nations", "world leaders", "summit",
    "global", "international", "crisis", "election", "ceasefire", "sanctions",
]

TECH_KEYWORDS = [  # 도메인(테크) 관련성
    "technology", "tech", "ai", "artificial intelligence", "startup", "software",
    "cybersecurity", "digital", "semiconductor", "smartphone", "internet", "fintech",
    "blockchain", "data center",
]

SENSITIVE_KEYWORDS = [  # 1건이라도 매칭되면 즉시 제외
    "beheading", "beheaded", "child abuse", "child pornography", "pornography",
    "sexual assault", "rape", "suicide method", "self-harm", "bomb-making",
    "terrorist manifesto", "graphic violence", "gore", "torture video",
    "massacre footage", "hate speech", "ethnic cleansing",
]

BIAS_INDICATORS = [  # 편향/자극 표현 (감점만)
    "allegedly", "so-called", "shocking", "outrageous", "disgraceful", "radical",
    "regime", "propaganda", "clearly", "obviously", "everyone knows", "slammed",
    "destroyed", "unbelievable",
]

CATEGORY_CHOICES = (
    "politics",
    "business",
    "technology",
    "health",
    "sports",
    "entertainment",
    "education",
    "other",
)

CATEGORY_ALIASES = {
    "tech": "technology",
    "science": "technology",
    "economy": "business",
    "finance": "business",
    "markets": "business",
    "world": "politics",
    "government": "politics",
    "culture": "entertainment",
    "lifestyle": "entertainment",
    "sport": "sports",
}

DEFAULT_CATEGORY_NAMES = {
    "politics": "Politics",
    "business": "Business",
    "technology": "Technology",
    "health": "Health",
    "sports": "Sports",
    "entertainment": "Entertainment",
    "education": "Education",
    "other": "Other",
}

PRIMARY_LOCALE = "en"

MAX_TAGS = 7

TRANSLATE_MAX_CHARS = 4000

DEDUPE_TITLE_PREFIX_WORDS = 4

LOG_BUFFER_SIZE = 200

RATE_LIMIT_DEFAULT_DELAY_SEC = 60
RATE_LIMIT_MIN_DELAY_SEC = 15
RATE_LIMIT_MAX_DELAY_SEC = 120

FEED_USER_AGENT = (
    "Mozilla/5.0 (compatible; SentinelPP01/1.0; +https://news-app.local) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
FEED_ACCEPT = "application/rss+xml, application/xml;q=0.9, */*;q=0.8"

PAGE_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36"
)

OG_IMAGE_SELECTORS = (  # (css selector, attribute)
    ('meta[property="og:image"]', "content"),
    ('meta[property="og:image:url"]', "content"),
    ('meta[property="og:image:secure_url"]', "content"),
    ('meta[name="twitter:image"]', "content"),
    ('link[rel="image_src"]', "href"),
)

DOMAIN_IMAGE_SELECTORS = {  # 사이트별 본문 이미지 selector
    "www.khmertimeskh.com": ["article img", ".single-post-content img", "figure img"],
    "www.bbc.com": ["article img", "figure img"],
    "www.aljazeera.com": ["article img", ".wysiwyg img", "figure img"],
    "www.theguardian.com": ["article img", "figure img"],
    "www.nytimes.com": ["article img", "figure img", "main img"],
    "techcrunch.com": ["article img", ".article-content img", "figure img"],
    "arstechnica.com": ["article img", ".article-guts img", "figure img"],
    "www.theverge.com": ["article img", "figure img"],
}
DEFAULT_IMAGE_SELECTORS = ["article img", "main img", ".post-content img", ".entry-content img", "figure img", "img"]

HEADING_PATTERNS = (
    r"^(background|context|overview|introduction|summary)",
    r"^(current|present|latest|recent|ongoing)",
    r"^(impact|effect|consequence|result|outcome)",
    r"^(future|next|upcoming|planned|expected)",
    r"^(analysis|examination|investigation|study)",
    r"^(response|reaction|comment|statement)",
    r"^(conclusion|final|ending)",
)

EMPHASIS_TERMS = (
    r"\b(Cambodia|Thailand|ASEAN|UN|government|official|minister|president|prime minister)\b",
    r"\b(announced|confirmed|reported|stated|revealed|declared)\b",
)

SOFT_EMPHASIS_TERMS = (
    r"\b(according to|in response to|however|meanwhile|furthermore|additionally)\b",
)

DEFAULT_SECTION_HEADINGS = ("Background", "Current Situation", "Implications")

KEY_POINT_HINTS = ("cambodia", "announced", "confirmed", "important", "said")
