"""
Thin proxy over OpenAI chat completions for drafting posts, titles, tags
and meta descriptions. The client is injected so tests can swap it out.
"""

import logging
from typing import List, Optional

import openai
from openai import OpenAI

from errors import UpstreamError

logger = logging.getLogger(__name__)

WORD_TARGETS = {"short": 300, "medium": 800, "long": 1500}
COST_PER_TOKEN = 0.000045

RATE_LIMITED = "Rate limit exceeded. Please try again later."
MISCONFIGURED = "AI service configuration error. Please contact support."

CONTENT_SYSTEM = ("You are an expert content writer specializing in creating engaging, SEO-friendly blog posts. "
                  "Always respond with properly formatted HTML content.")
TITLE_SYSTEM = "You are an SEO expert specializing in creating compelling, search-engine-optimized blog post titles."
TAGS_SYSTEM = "You are an SEO expert specializing in keyword research and tag generation for blog posts."
META_SYSTEM = "You are an SEO expert specializing in meta description optimization for search engines."


def estimate_cost(tokens: int) -> float:
    return round(tokens * COST_PER_TOKEN, 4)


def _complete(client: OpenAI, model: str, system: str, prompt: str, max_tokens: int,
              temperature: float, failure: str):
    try:
        completion = client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
    except openai.RateLimitError:
        logger.warning("OpenAI rate limit hit")
        raise UpstreamError(RATE_LIMITED, status_code=429)
    except openai.AuthenticationError:
        logger.error("OpenAI rejected the configured API key")
        raise UpstreamError(MISCONFIGURED)
    except openai.OpenAIError as e:
        logger.error("OpenAI request failed: %s", e)
        raise UpstreamError(failure)

    text = ""
    if completion.choices and completion.choices[0].message:
        text = completion.choices[0].message.content or ""
    tokens = completion.usage.total_tokens if completion.usage else 0
    return text, tokens


def generate_content(client: OpenAI, model: str, prompt: str, tone: str = "professional",
                     length: str = "medium", style: str = "blog") -> dict:
    target_words = WORD_TARGETS[length]
    ai_prompt = f"""Write a {length} {style} post about: "{prompt}"

Requirements:
- Tone: {tone}
- Target word count: {target_words} words
- Include an engaging introduction
- Use clear headings and subheadings
- Include practical examples or tips
- End with a compelling conclusion
- Make it SEO-friendly with natural keyword usage
- Write in a way that's easy to read and understand

Format the response with proper HTML tags for headings (h2, h3), paragraphs, and lists."""

    content, tokens = _complete(client, model, CONTENT_SYSTEM, ai_prompt,
                                max_tokens=target_words * 2, temperature=0.7,
                                failure="Failed to generate content. Please try again.")
    logger.info("Generated %s %s content, %d tokens", length, style, tokens)
    return {
        "content": content,
        "tokensUsed": tokens,
        "estimatedCost": estimate_cost(tokens),
        "prompt": prompt,
        "settings": {"tone": tone, "length": length, "style": style},
    }


def generate_titles(client: OpenAI, model: str, topic: str, keywords: Optional[List[str]] = None,
                    style: str = "professional") -> dict:
    keywords = keywords or []
    ai_prompt = f"""Generate 5 SEO-optimized blog post titles for the topic: "{topic}"

Requirements:
- Style: {style}
- Include these keywords naturally: {', '.join(keywords)}
- Each title should be 50-60 characters
- Make them engaging and click-worthy
- Ensure they're SEO-friendly
- Avoid clickbait unless specifically requested

Provide only the titles, one per line, without numbering."""

    text, _ = _complete(client, model, TITLE_SYSTEM, ai_prompt, max_tokens=200, temperature=0.8,
                        failure="Failed to generate titles. Please try again.")
    titles = [line.strip() for line in text.split("\n") if line.strip()]
    return {"titles": titles, "topic": topic, "keywords": keywords, "style": style}


def generate_tags(client: OpenAI, model: str, content: str, topic: Optional[str] = None, count: int = 10) -> dict:
    topic_line = f"Topic: {topic}" if topic else ""
    ai_prompt = f"""Generate {count} relevant, SEO-friendly tags for this blog post content.

Content: "{content[:500]}..."
{topic_line}

Requirements:
- Generate exactly {count} tags
- Make them relevant to the content
- Include both broad and specific tags
- Use single words or short phrases (2-3 words max)
- Ensure they're search-friendly
- Avoid overly generic tags
- Separate tags with commas

Provide only the tags, separated by commas, without numbering or additional text."""

    text, _ = _complete(client, model, TAGS_SYSTEM, ai_prompt, max_tokens=150, temperature=0.6,
                        failure="Failed to generate tags. Please try again.")
    tags = [tag.strip().lower() for tag in text.split(",")]
    tags = [tag for tag in tags if 0 < len(tag) <= 50]
    return {"tags": tags, "count": len(tags), "topic": topic}


def generate_meta(client: OpenAI, model: str, title: str, content: str,
                  keywords: Optional[List[str]] = None) -> dict:
    keywords = keywords or []
    ai_prompt = f"""Generate an SEO-optimized meta description for this blog post.

Title: "{title}"
Content: "{content[:300]}..."
Keywords: {', '.join(keywords)}

Requirements:
- Length: 150-160 characters (optimal for SEO)
- Include primary keywords naturally
- Make it compelling and click-worthy
- Summarize the main benefit or value
- Use action words when appropriate
- Avoid keyword stuffing

Provide only the meta description without quotes or additional text."""

    text, _ = _complete(client, model, META_SYSTEM, ai_prompt, max_tokens=100, temperature=0.7,
                        failure="Failed to generate meta description. Please try again.")
    description = text.strip()
    return {
        "metaDescription": description,
        "characterCount": len(description),
        "title": title,
        "keywords": keywords,
    }
