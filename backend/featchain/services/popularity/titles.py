"""Title families: variant recordings of one song grouped under one key.

"Song (Remix)", "Song - Radio Edit" and "Song (Live)" all belong to the
family ``song``. Pair statistics count distinct families, not raw
recordings.
"""

import re
from typing import Iterable

# Longest first so "radio edit" is stripped before "edit"
TITLE_SUFFIXES = sorted([
    'remix',
    'edit',
    'version',
    'live',
    'radio edit',
    'radio',
    'extended',
    'extended version',
    'acoustic',
    'acoustic version',
    'instrumental',
    'instrumental version',
    'demo',
    'demo version',
], key=len, reverse=True)

_PARENTHESIZED = re.compile(r'\s*[\(\[][^\)\]]*[\)\]]')
_DASH_SUFFIX = re.compile(r'\s+-\s+(?:' + '|'.join(re.escape(s) for s in TITLE_SUFFIXES) + r')\s*$')
_BARE_SUFFIX = re.compile(r'\s+(?:' + '|'.join(re.escape(s) for s in TITLE_SUFFIXES) + r')\s*$')
_PUNCTUATION = re.compile(r'[^\w\s-]')
_SPACES = re.compile(r'\s+')


def normalize_title_to_family(title: str) -> str:
    if not title or not isinstance(title, str):
        return ''
    normalized = title.strip().lower()
    # "(feat. X)" is content, not a variant marker
    normalized = re.sub(r'[\(\[]\s*(feat|ft)\.?\s+([^\)\]]*)[\)\]]', r' \1 \2', normalized)
    normalized = _PARENTHESIZED.sub('', normalized)
    normalized = _PUNCTUATION.sub(' ', normalized)
    normalized = _SPACES.sub(' ', normalized).strip()

    previous = None
    while previous != normalized:
        previous = normalized
        normalized = _DASH_SUFFIX.sub('', normalized)
        normalized = _BARE_SUFFIX.sub('', normalized)

    normalized = normalized.replace('-', ' ')
    return _SPACES.sub(' ', normalized).strip()


def count_title_families(titles: Iterable[str]) -> int:
    return len({f for f in (normalize_title_to_family(t) for t in titles) if f})
