"""
WCAG colour contrast.

Relative luminance and contrast ratio per WCAG 2.x, readable-colour picking
and a scan of article HTML for text/background utility-class pairs whose
design-token colours fall below AA.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Tuple

WCAG_AA = 4.5
WCAG_AA_LARGE = 3.0
WCAG_AAA = 7.0
WCAG_AAA_LARGE = 4.5

DARK_FALLBACK = "#0b0b0c"
LIGHT_FALLBACK = "#fafafa"

# Design-token colours behind the site's text-*/bg-* utility classes.
TOKEN_COLORS: Dict[str, str] = {
    "text-fg": "#e0e0e0",
    "text-fg-strong": "#fafafa",
    "text-fg-muted": "#9e9e9e",
    "text-muted-foreground": "#9e9e9e",
    "text-foreground": "#e0e0e0",
    "bg-surface": "#1a1a1a",
    "bg-surface-2": "#242424",
    "bg-background": "#0d0d0d",
    "bg-muted": "#2e2e2e",
}

_HEX_RE = re.compile(r"^#?([a-f\d]{2})([a-f\d]{2})([a-f\d]{2})$", re.IGNORECASE)
_CLASSED_ELEMENT_RE = re.compile(r"<(\w+)[^>]*class=\"([^\"]*)\"[^>]*>")


@dataclass
class ContrastError:
    selector: str
    fg: str
    bg: str
    ratio: float
    required: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def hex_to_rgb(value: str) -> Optional[Tuple[int, int, int]]:
    match = _HEX_RE.match(value or "")
    if not match:
        return None
    return tuple(int(part, 16) for part in match.groups())  # type: ignore[return-value]


def relative_luminance(r: int, g: int, b: int) -> float:
    def channel(c: int) -> float:
        srgb = c / 255
        return srgb / 12.92 if srgb <= 0.03928 else ((srgb + 0.055) / 1.055) ** 2.4

    return 0.2126 * channel(r) + 0.7152 * channel(g) + 0.0722 * channel(b)


def contrast_ratio(color_a: str, color_b: str) -> float:
    """(L1 + 0.05) / (L2 + 0.05) with L1 the lighter colour; 1.0 if either is invalid."""
    rgb_a = hex_to_rgb(color_a)
    rgb_b = hex_to_rgb(color_b)
    if rgb_a is None or rgb_b is None:
        return 1.0
    lum_a = relative_luminance(*rgb_a)
    lum_b = relative_luminance(*rgb_b)
    lighter, darker = max(lum_a, lum_b), min(lum_a, lum_b)
    return (lighter + 0.05) / (darker + 0.05)


def pick_readable(candidates: List[str], bg: str, min_ratio: float = WCAG_AA) -> str:
    """Best-contrast candidate, or near-black/near-white if none reaches ``min_ratio``."""
    best_color = candidates[0] if candidates else ""
    best_ratio = 0.0
    for fg in candidates:
        ratio = contrast_ratio(fg, bg)
        if ratio > best_ratio:
            best_ratio, best_color = ratio, fg

    if best_ratio < min_ratio:
        bg_rgb = hex_to_rgb(bg)
        if bg_rgb is not None:
            return DARK_FALLBACK if relative_luminance(*bg_rgb) > 0.5 else LIGHT_FALLBACK
    return best_color


def meets_wcag_aa(fg: str, bg: str, large_text: bool = False) -> bool:
    return contrast_ratio(fg, bg) >= (WCAG_AA_LARGE if large_text else WCAG_AA)


def meets_wcag_aaa(fg: str, bg: str, large_text: bool = False) -> bool:
    return contrast_ratio(fg, bg) >= (WCAG_AAA_LARGE if large_text else WCAG_AAA)


def assert_contrast_for_html(
    html: str, token_colors: Optional[Dict[str, str]] = None,
) -> List[ContrastError]:
    """Find elements whose text-*/bg-* token pair fails WCAG AA.

    Headings (h1-h6) are judged as large text.
    """
    colors = token_colors or TOKEN_COLORS
    errors: List[ContrastError] = []

    for match in _CLASSED_ELEMENT_RE.finditer(html or ""):
        tag = match.group(1).lower()
        classes = match.group(2).split()
        text_class = next((c for c in classes if c.startswith("text-")), None)
        bg_class = next((c for c in classes if c.startswith("bg-")), None)
        if not text_class or not bg_class:
            continue

        fg = colors.get(text_class)
        bg = colors.get(bg_class)
        if not fg or not bg:
            continue

        ratio = contrast_ratio(fg, bg)
        required = WCAG_AA_LARGE if re.fullmatch(r"h[1-6]", tag) else WCAG_AA
        if ratio < required:
            errors.append(ContrastError(
                selector=f"{tag}.{'.'.join(classes)}",
                fg=fg,
                bg=bg,
                ratio=round(ratio, 2),
                required=required,
            ))
    return errors
