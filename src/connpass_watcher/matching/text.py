"""Text heuristics for event classification.

Pure functions that look for topical keywords and speaker/CFP signals in
event text, and for online/local-region hints in venue data. All matching is
case-insensitive substring search.

## Keyword families

| Family | Checked against | Sets |
|--------|-----------------|------|
| SLOT_KEYWORDS | title + catch | has_lt_slot |
| CFP_KEYWORDS | title + catch + description | has_cfp |
| SPEAKER_KEYWORDS | title + catch + description | detected_keywords only |
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup

from connpass_watcher.models.verdict import InterestVerdict, SpeakerVerdict

if TYPE_CHECKING:
    from connpass_watcher.models.event import Event

logger = logging.getLogger(__name__)

WHITESPACE_PATTERN = re.compile(r"\s+")

# Talk slots advertised in the title or catch
SLOT_KEYWORDS = ["LT", "登壇", "発表", "スピーカー", "speaker", "presenter", "lightning"]

# Call for proposals anywhere in the event text
CFP_KEYWORDS = [
    "CFP",
    "Call for Proposals",
    "Call for Papers",
    "発表者募集",
    "登壇者募集",
    "スピーカー募集",
    "LT募集",
    "LT枠募集",
    "発表枠募集",
    "募集中",
    "応募",
    "エントリー",
]

# General speaking-related vocabulary, reported but not decisive
SPEAKER_KEYWORDS = [
    "LT",
    "ライトニングトーク",
    "登壇",
    "発表",
    "スピーカー",
    "登壇者",
    "発表者",
    "CFP",
    "プロポーザル",
    "募集",
    "lightning talk",
    "speaker",
    "presenter",
    "call for proposals",
    "call for papers",
    "proposal",
]

ONLINE_KEYWORDS = ["オンライン", "online", "リモート", "remote", "zoom", "teams", "meet"]

LOCAL_REGION_KEYWORDS = ["東京", "tokyo", "渋谷", "新宿", "池袋", "秋葉原", "品川", "六本木"]


def strip_html(html: str | None) -> str:
    """Reduce markup to its visible text with whitespace collapsed."""
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    return WHITESPACE_PATTERN.sub(" ", text).strip()


def _contains_any(keywords: list[str], *texts: str | None) -> bool:
    haystacks = [t.lower() for t in texts if t]
    return any(kw.lower() in h for kw in keywords for h in haystacks)


def is_online_event(place: str | None, address: str | None, title: str | None) -> bool:
    """Check venue, address and title for online-event hints."""
    return _contains_any(ONLINE_KEYWORDS, place, address, title)


def is_local_event(place: str | None, address: str | None) -> bool:
    """Check venue and address for local-region hints."""
    return _contains_any(LOCAL_REGION_KEYWORDS, place, address)


def match_keywords(event: Event, keywords: list[str]) -> InterestVerdict:
    """Keyword-based interest matching.

    Score is the share of configured keywords found in the title, catch or
    stripped description, rounded to an integer percentage.
    """
    if not keywords:
        logger.debug(f"No keywords configured, skipping event {event.id}")
        return InterestVerdict()

    title = event.title.lower()
    catch = event.catch.lower()
    description = strip_html(event.description).lower()

    matched: list[str] = []
    for keyword in keywords:
        kw = keyword.lower()
        if kw in title or kw in catch or kw in description:
            if keyword not in matched:
                matched.append(keyword)

    score = round(len(matched) / len(keywords) * 100)

    logger.debug(f"Keyword matching for event {event.id}: {matched} (score={score})")

    return InterestVerdict(
        is_match=len(matched) > 0,
        score=min(score, 100),
        keyword_matches=matched,
    )


def analyze_speaker_opportunity(event: Event) -> SpeakerVerdict:
    """Detect talk slots and calls for proposals in an event."""
    title = event.title.lower()
    catch = event.catch.lower()
    description = strip_html(event.description).lower()
    combined = f"{title} {catch} {description}"

    detected: list[str] = []

    def record(keyword: str) -> None:
        if keyword not in detected:
            detected.append(keyword)

    has_lt_slot = False
    for keyword in SLOT_KEYWORDS:
        kw = keyword.lower()
        if kw in title or kw in catch:
            has_lt_slot = True
            record(keyword)

    has_cfp = False
    for keyword in CFP_KEYWORDS:
        if keyword.lower() in combined:
            has_cfp = True
            record(keyword)

    for keyword in SPEAKER_KEYWORDS:
        if keyword.lower() in combined:
            record(keyword)

    return SpeakerVerdict(
        has_opportunity=has_lt_slot or has_cfp,
        has_lt_slot=has_lt_slot,
        has_cfp=has_cfp,
        detected_keywords=detected,
    )
