"""Pure helpers over post content: slugs, reading statistics and monetization."""

import html
import math
import re
from typing import Iterable, List, Optional

WORDS_PER_MINUTE = 200

_TAG_RE = re.compile(r"(<[^>]*>)")
_ANCHOR_OPEN_RE = re.compile(r"<a[\s>]", re.IGNORECASE)
_ANCHOR_CLOSE_RE = re.compile(r"</a\s*>", re.IGNORECASE)


def slugify(title: str) -> str:
    slug = title.lower()
    slug = re.sub(r"[^a-z0-9\s-]", "", slug)
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug or "post"


def word_count(content: str) -> int:
    return len(content.split())


def reading_time(content: str) -> int:
    """Minutes, rounded up."""
    return math.ceil(word_count(content) / WORDS_PER_MINUTE)


def insert_ad(content: str, ad_code: Optional[str], placement: str) -> str:
    if not ad_code:
        return content
    if placement == "top":
        return f"{ad_code}\n\n{content}"
    if placement == "bottom":
        return f"{content}\n\n{ad_code}"
    if placement == "middle":
        paragraphs = content.split("</p>")
        if len(paragraphs) < 2:
            return f"{content}\n\n{ad_code}"
        # the ad goes after the closing tag of the middle paragraph
        middle = len(paragraphs) // 2
        head = "</p>".join(paragraphs[:middle]) + "</p>"
        tail = "</p>".join(paragraphs[middle:])
        return f"{head}\n{ad_code}\n{tail}"
    # sidebar ads are rendered by the blog template, not inside the post body
    return content


def apply_affiliate_links(content: str, links: Iterable[dict]) -> str:
    """
    Wraps every whole-word, case-insensitive occurrence of each keyword in an
    affiliate anchor. The matched text keeps its original casing.
    """
    for link in links:
        keyword = (link.get("keyword") or "").strip()
        url = link.get("url")
        if not keyword or not url:
            continue
        href = html.escape(url, quote=True)
        pattern = re.compile(rf"(?<!\w){re.escape(keyword)}(?!\w)", re.IGNORECASE)

        def anchor(match, href=href):
            return f'<a href="{href}" target="_blank" rel="nofollow sponsored">{match.group(0)}</a>'

        # only text outside tags and outside existing anchors is rewritten
        parts = _TAG_RE.split(content)
        anchor_depth = 0
        for i, part in enumerate(parts):
            if i % 2:
                if _ANCHOR_OPEN_RE.match(part):
                    anchor_depth += 1
                elif _ANCHOR_CLOSE_RE.match(part):
                    anchor_depth = max(anchor_depth - 1, 0)
            elif anchor_depth == 0:
                parts[i] = pattern.sub(anchor, part)
        content = "".join(parts)
    return content


def ordered_links(links: Optional[List[dict]]) -> List[dict]:
    indexed = list(enumerate(links or []))
    indexed.sort(key=lambda pair: (pair[1].get("position") if pair[1].get("position") is not None else pair[0]))
    return [link for _, link in indexed]


def compose_publish_content(post, user) -> str:
    """
    Final HTML sent to Blogger: the ad snippet first, then affiliate anchors.
    Post-level AdSense code takes precedence over the account default.
    """
    content = post.content

    ad_code = None
    if post.adsense_enabled and post.adsense_code:
        ad_code = post.adsense_code
    elif user.adsense_enabled and user.adsense_code:
        ad_code = user.adsense_code
    if ad_code:
        placement = user.adsense_placement.value if user.adsense_placement else "middle"
        content = insert_ad(content, ad_code, placement)

    links = ordered_links(post.affiliate_links)
    if user.affiliate_enabled:
        links = links + list(user.affiliate_links or [])
    return apply_affiliate_links(content, links)
