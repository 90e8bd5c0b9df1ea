import re

# xx, xxx, xx-YY, xx-Latn-IN ...
_TAG_RE = re.compile(r"^[A-Za-z]{2,3}(-[A-Za-z0-9]{2,8})*$")


def is_valid_tag(tag: str) -> bool:
    return bool(tag) and _TAG_RE.match(tag) is not None


def primary_subtag(tag: str) -> str:
    """'hi-IN' -> 'hi'"""
    return tag.split("-", 1)[0].lower()


def is_english(tag: str) -> bool:
    return tag.lower().startswith("en")


def same_language(a: str, b: str) -> bool:
    return primary_subtag(a) == primary_subtag(b)
