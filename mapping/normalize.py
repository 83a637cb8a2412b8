import re

# Em, en, figure dashes, horizontal bar, minus sign, non-breaking hyphen
_DASHES = re.compile("[‐‑‒–—―−]")
# Curly/prime single and double quotes
_QUOTES = re.compile("[‘’‚‛“”„‟′″\"`]")
_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^a-z0-9 \-_]")


def normalize_field_name(name: str) -> str:
    """
    Canonical comparison key for a field display name.

    Lowercases, trims, collapses whitespace, folds unicode dashes to '-' and
    quote variants to an apostrophe, then drops anything outside
    [a-z0-9 -_]. Total: None and non-strings are stringified.
    """
    if name is None:
        return ""
    text = str(name).lower()
    text = _DASHES.sub("-", text)
    text = _QUOTES.sub("'", text)
    text = _WHITESPACE.sub(" ", text).strip()
    text = _DISALLOWED.sub("", text)
    # Dropping characters can leave doubled or edge spaces behind
    return _WHITESPACE.sub(" ", text).strip()


def strip_namespace(key: str) -> str:
    """'contact.business_type' -> 'business_type'."""
    if not key:
        return ""
    return key.strip().rsplit(".", 1)[-1]
