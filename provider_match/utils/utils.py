import re
from typing import Iterable, List, Optional


def norm(s: Optional[str]) -> str:
    return (s or "").strip().lower()


def contains_any(text: Optional[str], patterns: Iterable[str]) -> bool:
    """Case-insensitive substring match of any pattern inside text."""
    haystack = norm(text)
    if not haystack:
        return False
    return any(p and norm(p) in haystack for p in patterns)


def any_contains_any(values: Iterable[str], patterns: Iterable[str]) -> bool:
    patterns = [p for p in patterns if p]
    return any(contains_any(v, patterns) for v in values)


def regex_any(patterns: Iterable[str]) -> List[re.Pattern]:
    """Case-insensitive literal regexes for MongoDB $in/$regex queries."""
    return [re.compile(re.escape(p.strip()), re.IGNORECASE) for p in patterns if p and p.strip()]


def regex_exact(value: str) -> re.Pattern:
    return re.compile(f"^{re.escape(value.strip())}$", re.IGNORECASE)


def parse_hhmm(value) -> Optional[int]:
    """Minutes since midnight for "HH:MM" (or "H:MM"), None when unparsable."""
    if not isinstance(value, str):
        return None
    parts = value.strip().split(":")
    if len(parts) < 2 or not parts[0].isdigit() or not parts[1][:2].isdigit():
        return None
    hour, minute = int(parts[0]), int(parts[1][:2])
    if hour == 24 and minute == 0:
        return 24 * 60
    if not (0 <= hour < 24 and 0 <= minute < 60):
        return None
    return hour * 60 + minute


def service_title(category: str) -> str:
    """'plumbing' -> 'Plumbing Services'"""
    cleaned = category.strip()
    return f"{cleaned[:1].upper()}{cleaned[1:]} Services" if cleaned else "Services"
