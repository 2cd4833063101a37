"""Prompt templates for Sentinel draft generation."""

from __future__ import annotations

from sentinel_pipeline.core.constants import CATEGORY_CHOICES, MAX_TAGS

SYSTEM_PROMPT = """Role: You are an AI news analyst for a Cambodian news desk, located in Phnom Penh.
Audience: Cambodian readers. Tone: neutral and professional, AP/Reuters style.

Use ONLY the provided source fields. Do not invent quotes, numbers, names or events.
Emphasize Cambodia/ASEAN context and implications only when the source supports it.

Respond with ONE valid JSON object only.
Do not include any markdown, explanations, or extra text.
All fields are required.

Output schema:
{{
  "title": string,
  "description": string,
  "body": string,
  "key_insights": [string],
  "sentiment": "positive" | "neutral" | "negative",
  "impact_level": "low" | "medium" | "high",
  "relevance_score": number,
  "suggested_tags": [string],
  "suggested_category": string,
  "is_breaking": boolean,
  "is_featured": boolean,
  "meta_description": string,
  "keywords": string
}}

Field rules:
- title: concise headline, at most 75 characters, no source/publisher names.
- description: 1-2 sentence standfirst, at most 200 characters.
- body: 600-1200 words in plain paragraphs separated by blank lines; cover who/what/when/where/why/how.
  Short section headings on their own line are allowed. No HTML, no markdown.
- key_insights: 3-5 short factual bullet sentences taken from the source.
- relevance_score: 0-100, relevance for Cambodian readers.
- suggested_tags: {max_tags} lowercase keywords at most, no '#'.
- suggested_category: exactly one of {categories}.
- is_breaking: true only for developing events of national or regional importance.
- meta_description: at most 160 characters.
- keywords: comma-separated SEO keywords.
"""

SOURCE_TEMPLATE = """Source: {source_name}
Title: {title}
Link: {link}
Published: {published}
Summary: {summary}
Body: {body}"""

TRANSLATE_PROMPT = """Translate the following text into {language} ({locale}).
Output the translated text only, with no quotes or commentary.
Keep paragraph breaks.

Text:
{text}"""

NORMALIZE_PROMPT = """The following news text is not written in English.
Translate every JSON field value into clear English and return the same JSON object.
Keep the keys unchanged. Return ONLY the JSON object.

{payload}"""

IMAGE_DESCRIPTION_PROMPT = """Describe a single professional news thumbnail image for the article below.
Requirements: photographic news style, no text overlays, 16:9 composition,
relevant to the article topic, respectful of all people depicted.
Return one paragraph of at most 80 words describing subject, setting, composition and mood.

Article Title: {title}
Article Content: {content}"""

IMAGE_GENERATION_PROMPT = """Create a professional news article thumbnail image.
No text overlays. Aspect ratio 16:9. Clean modern composition.

{description}"""

LANGUAGE_NAMES = {
    "en": "English",
    "km": "Khmer",
    "th": "Thai",
    "vi": "Vietnamese",
    "zh": "Chinese",
    "fr": "French",
}


def build_draft_prompt(
    *,
    source_name: str,
    title: str,
    link: str,
    published: str,
    summary: str,
    body: str,
) -> str:
    system = SYSTEM_PROMPT.format(
        max_tags=MAX_TAGS,
        categories=", ".join(CATEGORY_CHOICES),
    )
    source = SOURCE_TEMPLATE.format(
        source_name=source_name,
        title=title,
        link=link,
        published=published or "unknown",
        summary=(summary or "")[:500],
        body=(body or "")[:3000],
    )
    return f"{system}\n{source}\n\nReturn ONLY the JSON object."


def build_translate_prompt(text: str, locale: str) -> str:
    return TRANSLATE_PROMPT.format(
        language=LANGUAGE_NAMES.get(locale, locale),
        locale=locale,
        text=text,
    )


def build_normalize_prompt(payload: str) -> str:
    return NORMALIZE_PROMPT.format(payload=payload)


def build_image_description_prompt(title: str, content: str) -> str:
    return IMAGE_DESCRIPTION_PROMPT.format(title=title, content=(content or "")[:300])


def build_image_generation_prompt(description: str) -> str:
    return IMAGE_GENERATION_PROMPT.format(description=description)
