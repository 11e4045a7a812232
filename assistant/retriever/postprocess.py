"""
Answer post-processing.

- Email addresses become markdown mailto links, outside fenced code only,
  without touching anything already inside a link. Idempotent.
- The navigation directive (<<ACTION:SCROLL_*>>) is validated and kept as a
  single terminal marker for the presentation layer.
"""

import re
from enum import Enum
from typing import Optional, Tuple

EMAIL_PATTERN = r"[a-zA-Z0-9_%+-][a-zA-Z0-9._%+-]*@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"

_FENCE_RE = re.compile(r"(```[\s\S]*?```)")

# Alternatives are tried left to right at each position, so an existing link
# is consumed whole before its inner address could match on its own.
# A bare address may not follow ")": that is where a previous rewrite ends,
# and text glued to it was already rejected on the first pass.
_EMAIL_TOKEN_RE = re.compile(
    r"(?P<link>\[[^\]\n]*\]\([^)\n]*\))"
    r"|(?P<mailto>mailto:" + EMAIL_PATTERN + r")"
    r"|\[(?P<bracketed>" + EMAIL_PATTERN + r")\](?!\()"
    r"|(?<![\w.%+\-\[)])(?P<bare>" + EMAIL_PATTERN + r")"
)

_ACTION_RE = re.compile(r"<?<?ACTION:SCROLL_([A-Z_]+)>?>?")


class NavigationTarget(str, Enum):
    """Page sections the presentation layer can scroll to"""
    EDUCATION = "EDUCATION"
    EXPERIENCE = "EXPERIENCE"
    PROJECTS = "PROJECTS"
    CERTIFICATIONS = "CERTIFICATIONS"
    CONTACT = "CONTACT"

    @property
    def marker(self) -> str:
        return f"<<ACTION:SCROLL_{self.value}>>"


def _link_emails(part: str) -> str:
    def replace(match: re.Match) -> str:
        email = match.group("bracketed") or match.group("bare")
        if email is None:
            return match.group(0)
        return f"[{email}](mailto:{email})"

    return _EMAIL_TOKEN_RE.sub(replace, part)


def normalize_emails(text: str) -> str:
    """Wrap plain and [bracketed] addresses as [addr](mailto:addr)."""
    if not text:
        return text
    parts = _FENCE_RE.split(text)
    return "".join(
        part if i % 2 == 1 else _link_emails(part)
        for i, part in enumerate(parts)
    )


def extract_navigation(text: str) -> Tuple[str, Optional[NavigationTarget]]:
    """
    Strip every action marker outside fenced code and report the last valid
    target. Markers quoted inside code fences are left as written.

    Returns:
        (text without markers, target or None)
    """
    target = None
    parts = _FENCE_RE.split(text or "")
    for i in range(0, len(parts), 2):
        for name in _ACTION_RE.findall(parts[i]):
            try:
                target = NavigationTarget(name)
            except ValueError:
                continue
        parts[i] = _ACTION_RE.sub("", parts[i])
    return "".join(parts).strip(), target


def finalize_navigation(text: str) -> Tuple[str, Optional[NavigationTarget]]:
    """Rewrite the answer so at most one valid marker remains, at the very end."""
    cleaned, target = extract_navigation(text)
    if target is None:
        return cleaned, None
    return f"{cleaned} {target.marker}".lstrip(), target
