"""Event classification: text heuristics and the hybrid classifier.

The classifier lives in ``connpass_watcher.matching.classifier``; it is not
re-exported here so that the models package can import the heuristics
without pulling in the LLM stack.
"""

from connpass_watcher.matching.text import (
    analyze_speaker_opportunity,
    is_local_event,
    is_online_event,
    match_keywords,
    strip_html,
)

__all__ = [
    "analyze_speaker_opportunity",
    "is_local_event",
    "is_online_event",
    "match_keywords",
    "strip_html",
]
