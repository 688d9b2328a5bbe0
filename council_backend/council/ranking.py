"""Parsing of Stage 2 "FINAL RANKING:" blocks and aggregate positions."""

import re
from typing import List, Dict, Sequence

from .models import RankingResult

_ENTRY = re.compile(r"^\s*\d+\.\s*Response\s+([A-Z]+)\s*$", re.MULTILINE)
_LOOSE_ENTRY = re.compile(r"(?:^|\n)\s*\d+\.\s*(?:Response\s+)?([A-Z]+)\b")


def parse_ranking_from_text(text: str) -> List[str]:
    """Parse response labels, best first, from a ranking reply.

    Reads the last "FINAL RANKING:" block. Strictly formatted entries
    ("1. Response A") are preferred; looser numbered entries are accepted
    when no strict entry is found.
    """
    blocks = text.split("FINAL RANKING:")
    if len(blocks) < 2:
        return []
    section = blocks[-1]

    matches = _ENTRY.findall(section) or _LOOSE_ENTRY.findall(section)
    labels = []
    for m in matches:
        label = f"Response {m}"
        if label not in labels:
            labels.append(label)
    return labels


def calculate_aggregate_rankings(rankings: Sequence[RankingResult]) -> Dict[str, int]:
    """Borda-style aggregate: label -> overall position (1 is best)."""
    scores: Dict[str, int] = {}
    for ranking in rankings:
        parsed = ranking.parsed_ranking
        for i, label in enumerate(parsed):
            scores[label] = scores.get(label, 0) + len(parsed) - i
    sorted_labels = sorted(scores.items(), key=lambda x: (-x[1], x[0]))
    return {label: rank + 1 for rank, (label, _) in enumerate(sorted_labels)}
