"""
URL slug generation for business listings
"""
import re

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """
    Lowercase, collapse every non-alphanumeric run into one hyphen and trim
    hyphens from both ends.

    >>> slugify("Kigali Construction Ltd!")
    'kigali-construction-ltd'
    """
    return _NON_ALNUM.sub("-", name.lower()).strip("-")
