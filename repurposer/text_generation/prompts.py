"""
Prompt templates for platform-specific repurposing.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class PlatformSpec:
    platform: str
    character_limit: Optional[int]
    template: str


PLATFORM_SPECS: Dict[str, PlatformSpec] = {
    "twitter": PlatformSpec(
        platform="twitter",
        character_limit=280,
        template="""Repurpose this content for Twitter:

Title: {title}
Original content: {content}

Requirements:
- Maximum 280 characters
- Include 2-3 relevant hashtags
- Engaging and shareable
- Clear call-to-action or discussion starter

Format: Provide the tweet text only, no explanations.""",
    ),
    "linkedin": PlatformSpec(
        platform="linkedin",
        character_limit=3000,
        template="""Repurpose this content for LinkedIn:

Title: {title}
Original content: {content}

Requirements:
- Professional tone suitable for business networking
- 100-300 words
- Include 3-5 professional hashtags
- End with a question to encourage professional discussion

Format: Provide the LinkedIn post text only.""",
    ),
    "instagram": PlatformSpec(
        platform="instagram",
        character_limit=2200,
        template="""Repurpose this content for Instagram:

Title: {title}
Original content: {content}

Requirements:
- Visual and engaging tone
- 100-200 words
- Include 5-10 relevant hashtags
- Encourage likes, comments, and saves

Format: Provide the Instagram caption only.""",
    ),
    "facebook": PlatformSpec(
        platform="facebook",
        character_limit=63206,
        template="""Repurpose this content for Facebook:

Title: {title}
Original content: {content}

Requirements:
- Conversational and community-friendly tone
- 200-400 words
- Encourage comments and discussion
- Include 2-3 relevant hashtags

Format: Provide the Facebook post text only.""",
    ),
    "email": PlatformSpec(
        platform="email",
        character_limit=None,
        template="""Convert this content into an email:

Title: {title}
Original content: {content}

Requirements:
- Subject line (5-7 words, compelling)
- Main content broken into scannable sections
- Clear call-to-action
- 200-500 words total

Format:
Subject: [Subject line]

[Email body]""",
    ),
    "newsletter": PlatformSpec(
        platform="newsletter",
        character_limit=None,
        template="""Format this content as a newsletter section:

Title: {title}
Original content: {content}

Requirements:
- Engaging section headline
- 300-600 words
- Professional yet friendly tone

Format: Provide the newsletter section with headline.""",
    ),
    "thread": PlatformSpec(
        platform="thread",
        character_limit=280,
        template="""Convert this content into a Twitter thread:

Title: {title}
Original content: {content}

Requirements:
- Break into 3-8 connected tweets
- Each tweet max 280 characters
- Number each tweet (1/n format)
- Include relevant hashtags in the final tweet

Format:
1/n [First tweet]
2/n [Second tweet]""",
    ),
    "youtube": PlatformSpec(
        platform="youtube",
        character_limit=5000,
        template="""Write a YouTube video description for this content:

Title: {title}
Original content: {content}

Requirements:
- Hook in the first two lines
- Short summary of what viewers will learn
- 3-5 relevant hashtags at the end

Format: Provide the description only.""",
    ),
    "tiktok": PlatformSpec(
        platform="tiktok",
        character_limit=2200,
        template="""Write a short TikTok script and caption for this content:

Title: {title}
Original content: {content}

Requirements:
- Hook in the first 3 seconds
- Under 60 seconds when spoken
- Caption with 3-5 trending-style hashtags

Format: Provide the script followed by the caption.""",
    ),
}

GENERAL_SPEC = PlatformSpec(
    platform="general",
    character_limit=None,
    template="""Adapt this content for {platform}:

Title: {title}
Original content: {content}

Requirements:
- Maintain core message and value
- Appropriate length for the platform
- Clear structure and flow

Format: Provide the adapted content only.""",
)

BRAND_VOICE_PROMPTS: Dict[str, str] = {
    "friendly": "Use a warm, approachable tone that feels like talking to a friend.",
    "professional": "Maintain a business-appropriate, authoritative tone.",
    "casual": "Write in a relaxed, informal style that feels natural and conversational.",
    "authoritative": "Use an expert tone that demonstrates knowledge and credibility.",
    "playful": "Inject humor and personality while maintaining professionalism.",
    "empathetic": "Show understanding and connection with the audience's challenges.",
    "direct": "Be straightforward and to-the-point without unnecessary fluff.",
    "inspiring": "Motivate and encourage the audience with uplifting language.",
    "educational": "Focus on teaching and providing valuable insights.",
    "conversational": "Write as if having a natural conversation with the reader.",
}

HASHTAG_PATTERN = re.compile(r"#[a-zA-Z0-9_]+")


def get_platform_spec(platform: str) -> PlatformSpec:
    return PLATFORM_SPECS.get(platform, GENERAL_SPEC)


def build_repurpose_prompt(
    platform: str,
    title: str,
    content: str,
    content_type: str,
    brand_voice: Optional[str] = None,
    tone: Optional[str] = None,
    additional_instructions: Optional[str] = None,
) -> str:
    """Build the generation prompt for one platform."""
    spec = get_platform_spec(platform)
    prompt = spec.template.format(title=title, content=content, platform=platform)
    prompt += f"\n\nThe original is a {content_type}."

    if brand_voice:
        voice = BRAND_VOICE_PROMPTS.get(brand_voice.lower(), brand_voice)
        prompt += f"\n\nBrand Voice: {voice}"
    if tone:
        prompt += f"\n\nTone: {tone}"
    if additional_instructions:
        prompt += f"\n\nAdditional Instructions: {additional_instructions}"

    return prompt


def extract_hashtags(text: str) -> List[str]:
    """Unique hashtags in order of first appearance."""
    seen: List[str] = []
    for tag in HASHTAG_PATTERN.findall(text):
        if tag not in seen:
            seen.append(tag)
    return seen
