import re
from fractions import Fraction
from typing import Any, Optional

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def clean_md(text: str) -> str:
    """
    Sanitize markdown artifacts from text.
    Removes:
    - Leading headers (#, ##)
    - Bold markers (**, __)
    - Leading bullets (-, *)
    """
    if not text:
        return ""

    # Remove bolding (**text** -> text)
    text = re.sub(r"(\*\*|__)(.*?)\1", r"\2", text)

    # Remove leading headers (# Title -> Title)
    text = re.sub(r"^\s*#+\s+", "", text)

    # Remove leading bullets (- Item -> Item)
    text = re.sub(r"^\s*[-*•]\s+", "", text)

    return text.strip()


def clean_md_list(items: list[str]) -> list[str]:
    cleaned = [clean_md(i) for i in items if isinstance(i, str)]
    return [c for c in cleaned if c]


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` fence if present."""
    s = (text or "").strip()
    if s.startswith("```"):
        s = re.sub(r"^```[a-zA-Z]*\s*\n?", "", s)
        s = re.sub(r"\n?\s*```$", "", s)
    return s.strip()


def strip_html(html: str) -> str:
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", " ", html or "", flags=re.S | re.I)
    text = re.sub(r"<[^>]*>", " ", text)
    return re.sub(r"\s+", " ", text).strip()


def truncate(text: str, length: int) -> str:
    if text is None or len(text) <= length:
        return text
    return text[:length]


def to_base36(value: int) -> str:
    if value <= 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_BASE36[rem])
    return "".join(reversed(out))


def slugify(title: str, max_length: int = 80) -> str:
    s = (title or "").lower().strip()
    s = re.sub(r"\s+", "-", s)
    s = re.sub(r"[^a-z0-9-]", "", s)
    s = re.sub(r"-{2,}", "-", s).strip("-")
    return s[:max_length] or "recipe"


def normalize_name(name: Optional[str]) -> str:
    """Lower-case, trimmed, single-spaced key for ingredient matching."""
    return re.sub(r"\s+", " ", (name or "").strip().lower())


def normalize_cuisine(cuisine: Optional[str]) -> str:
    s = re.sub(r"\s+", " ", (cuisine or "").strip())
    return s.title() if s else "Other"


def parse_number(value: Any) -> Optional[float]:
    """
    Lenient number parsing for model output.

    Examples:
    - 2 -> 2.0
    - "1/2" -> 0.5
    - "1 1/2" -> 1.5
    - "400g" -> 400.0
    - "a pinch" -> None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return None

    mixed = re.match(r"^(\d+)\s+(\d+)\s*/\s*(\d+)", s)
    if mixed and int(mixed.group(3)):
        return float(int(mixed.group(1)) + Fraction(int(mixed.group(2)), int(mixed.group(3))))

    frac = re.match(r"^(\d+)\s*/\s*(\d+)", s)
    if frac and int(frac.group(2)):
        return float(Fraction(int(frac.group(1)), int(frac.group(2))))

    num = re.match(r"^-?\d+(?:\.\d+)?", s)
    if num:
        return float(num.group(0))
    return None


def parse_int(value: Any) -> Optional[int]:
    n = parse_number(value)
    return int(round(n)) if n is not None else None
