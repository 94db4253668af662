"""
Prompt library for the three content variants.

Each variant fixes a template, how much of the transcript it sees, and the
output budget requested from the provider. The provider is asked to follow
the format; its output is not checked against it.
"""

from typing import Optional

from .models import ArticleVariant, VideoRecord
from .youtube import format_timestamp, timestamp_url

BLOG_TEMPLATE = """Write a detailed, SEO-friendly blog article based on the YouTube video below.

Video information:
- Title: {title}
- Channel: {channel}
- Published: {published}
- URL: {url}

Video content:
{transcript}

Requirements:
- 1500-2500 words, Markdown
- Structure: one H1, then 3-5 H2 sections, each with 2-3 H3 subsections
- Attach timestamp links to key points in the form [M:SS]({example_link})
- Natural keyword usage, an engaging introduction and a closing summary section

Example structure:
# [Compelling title drawn from the video]

## Introduction
## [Main point 1] - [{example_label}]({example_link})
### [Detail 1-1]
### [Detail 1-2]
## [Main point 2]
## Summary

**About the video:**
- Channel: {channel}
- Published: {published}
- Watch: {url}

Write the article now:"""

SHORT_SOCIAL_TEMPLATE = """Write a social media caption based on the YouTube video below.

Video information:
- Title: {title}
- Channel: {channel}
- URL: {url}

Video content:
{transcript}

Requirements:
- At most 2,000 characters, easy to scan with short paragraphs
- Sparing emoji, only on key lines
- A bulleted "Key points" section with 3 highlights, each with a timestamp like [{example_label}] {example_link}
- An engagement question inviting comments
- A block of 7-10 relevant hashtags at the end

Template:
[Hook sentence]

Key points:
- [Point 1] - [M:SS] {url}
- [Point 2] - [M:SS] {url}
- [Point 3] - [M:SS] {url}

[Short commentary]

Question: [engagement question]

Video: {url}
Channel: {channel}

#hashtag1 #hashtag2 #hashtag3 ...

Write the caption now:"""

MICRO_POST_TEMPLATE = """Write one short post for X (Twitter) based on the YouTube video below.

Video information:
- Title: {title}
- Channel: {channel}
- URL: {url}

Video content:
{transcript}

Requirements:
- Hard limit: 280 characters including hashtags and link
- One concise core message
- At most one timestamp link, like [{example_label}] {example_link}
- 2-3 hashtags

Write the post now:"""


VARIANTS = {
    ArticleVariant.BLOG: {
        "label": "blog article",
        "template": BLOG_TEMPLATE,
        "corpus_chars": None,  # full corpus
        "max_tokens": 4000,
    },
    ArticleVariant.SHORT_SOCIAL: {
        "label": "social caption",
        "template": SHORT_SOCIAL_TEMPLATE,
        "corpus_chars": 1500,
        "max_tokens": 1000,
    },
    ArticleVariant.MICRO_POST: {
        "label": "micro-post",
        "template": MICRO_POST_TEMPLATE,
        "corpus_chars": 1000,
        "max_tokens": 300,
    },
}

EXAMPLE_TIMESTAMP_SECONDS = 30


def get_variant(variant: ArticleVariant) -> dict:
    return VARIANTS[variant]


def slice_corpus(text: str, limit: Optional[int]) -> str:
    return text if limit is None else text[:limit]


def build_prompt(variant: ArticleVariant, video: VideoRecord, transcript_text: str, video_url: str) -> str:
    variant_spec = VARIANTS[variant]
    return variant_spec["template"].format(
        title=video.title,
        channel=video.channel_title,
        published=video.published_at,
        url=video_url,
        transcript=slice_corpus(transcript_text, variant_spec["corpus_chars"]),
        example_label=format_timestamp(EXAMPLE_TIMESTAMP_SECONDS),
        example_link=timestamp_url(video_url, EXAMPLE_TIMESTAMP_SECONDS),
    )
