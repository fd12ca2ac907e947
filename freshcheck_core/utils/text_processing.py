import re

_FILLER_OPENERS = re.compile(r"^(well|so|um|uh|okay|ok|now|hey|listen|look),?\s+", re.IGNORECASE)
_LEAD_INS = re.compile(r"^(what's even|what is even|that's|that is)\s+", re.IGNORECASE)
_REPORTED_SPEECH = re.compile(
    r"\b(someone told me that|I heard( that)?|I saw( that)?|they say|apparently|supposedly)\s+",
    re.IGNORECASE,
)
_QUOTED = re.compile(r'"([^"]+)"')
_ENTITY_ACTION = re.compile(
    r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)\s+"
    r"(released|announced|launched|unveiled|introduced|created|built|developed|acquired|bought|sold|hired|fired|quit)"
    r"\s+([^.?,]+)"
)
_DANGLING = re.compile(r"\s+(and|or|but)\s*$")

LONG_QUERY_CHARS = 200
TRUNCATED_QUERY_CHARS = 100

_SENTENCE_STARTERS = frozenset({
    "What", "Where", "When", "Who", "Why", "How", "Is", "Are", "Does", "Do", "Can", "Could",
    "Would", "Should", "Tell", "Please", "The", "A", "An", "I", "You", "We", "They", "He", "She", "It",
    "Whats", "Wheres", "Whens", "Whos", "Hows", "Whys", "Any", "Give", "Show", "Find",
})


def normalize_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", (text or "")).strip()


def truncate_query(query: str, max_chars: int) -> str:
    """Hard cap applied before classification so regex scans stay bounded."""
    if len(query) <= max_chars:
        return query
    return query[:max_chars]


def extract_search_query(query: str) -> str:
    """
    Turn a conversational question into a search string.

    Strips filler openers and reported-speech phrases. Inputs longer than 200
    chars are reduced to a quoted phrase, then to a subject+verb+object match,
    else to their first 100 chars. Dangling conjunctions are dropped last.
    """
    if not isinstance(query, str):
        return query

    cleaned = query.strip()
    cleaned = _FILLER_OPENERS.sub("", cleaned)
    cleaned = _LEAD_INS.sub("", cleaned)
    cleaned = _REPORTED_SPEECH.sub("", cleaned)

    if len(cleaned) > LONG_QUERY_CHARS:
        quoted = _QUOTED.search(cleaned)
        if quoted:
            return quoted.group(1)
        entity = _ENTITY_ACTION.search(cleaned)
        if entity:
            return " ".join(entity.groups()).strip()
        cleaned = cleaned[:TRUNCATED_QUERY_CHARS]

    # Applied repeatedly so "x and or" collapses fully.
    prev = None
    while prev != cleaned:
        prev = cleaned
        cleaned = _DANGLING.sub("", cleaned)
    return cleaned.strip()


def has_proper_nouns(query: str) -> bool:
    """Capitalized words (not a leading question word) or all-caps acronyms."""
    if not isinstance(query, str) or not query:
        return False

    for i, raw in enumerate(query.split()):
        word = re.sub(r"[^\w]", "", raw)
        if len(word) < 2:
            continue
        if re.match(r"^[A-Z][a-z]+", word):
            if i == 0 and word in _SENTENCE_STARTERS:
                continue
            return True
        if re.fullmatch(r"[A-Z]{2,}", word):
            return True
    return False
