import logging
import re
from typing import List

logger = logging.getLogger(__name__)

# --- 1. TextCleaner ---
def clean_text(t: str) -> str:
    if not t:
        return ""
    t = t.strip()
    t = t.replace("—", "-")
    t = t.replace("…", "...")
    t = t.replace(" ", " ")  # non-breaking spaces
    t = t.replace("’", "'")  # curly apostrophe
    return " ".join(t.split())  # collapse multiple spaces


# --- 2. Stop words ---
STOPWORDS = set("""
a about above after again against all am an and any are aren't as at be because been
before being below between both but by can can't cannot could couldn't did didn't do does
doesn't doing don't down during each few for from further get got had hadn't has hasn't
have haven't having he her here hers herself him himself his how i if in into is isn't it
it's its itself just let like ll me might more most must mustn't my myself no nor not of
off on once only or other ought our ours ourselves out over own re same shall shan't she
should shouldn't so some such than that the their theirs them themselves then there these
they this those through to too under until up ve very was wasn't we were weren't what when
where which while who whom why will with won't would wouldn't you your yours yourself
yourselves
""".split())

_WORD_RE = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")

# Words whose trailing "s" is not a plural marker
_KEEP_S = ("ss", "us", "is", "ous", "news", "series")


def lemmatize(token: str) -> str:
    """Light rule-based lemma: folds possessives and regular plurals."""
    if token.endswith("'s"):
        token = token[:-2]
    token = token.replace("'", "")
    if len(token) <= 3 or token.endswith(_KEEP_S):
        return token
    if token.endswith("ies") and len(token) > 4:
        return token[:-3] + "y"
    if token.endswith(("ches", "shes", "xes", "sses", "zes")):
        return token[:-2]
    if token.endswith("s"):
        return token[:-1]
    return token


def words(text: str) -> List[str]:
    """Lowercased raw word tokens in order of appearance."""
    return [m.group(0) for m in _WORD_RE.finditer(clean_text(text).lower())]


def tokenize(text: str) -> List[str]:
    """Lowercased, lemmatized word tokens in order of appearance."""
    return [lemmatize(w) for w in words(text)]


def extract_keywords(text: str, min_length: int = 3) -> List[str]:
    """
    Extract meaningful keywords from a string.

    Pipeline: tokenise -> drop stop words -> lemmatise -> drop short tokens ->
    de-duplicate preserving order.
    """
    seen = set()
    keywords = []
    for word in words(text):
        if word in STOPWORDS:
            continue
        tok = lemmatize(word)
        if len(tok) < min_length or tok in STOPWORDS or tok.isdigit():
            continue
        if tok not in seen:
            seen.add(tok)
            keywords.append(tok)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Keywords for {text[:40]!r}: {keywords}")
    return keywords


def normalize_tag(tag: str) -> str:
    """Canonical tag casing: 'grocery list' -> 'Grocery List'."""
    words = clean_text(tag).split()
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)
