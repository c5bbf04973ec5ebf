"""
Text Processing Utilities
Greedy pixel-measured line wrapping and locale-aware uppercasing for banner text.
"""

import re
from typing import Callable, List

# Locales whose dotted/dotless i pairs don't follow the default case mapping
_DOTTED_I_LOCALES = ('tr', 'az')
# Lithuanian keeps the combining dot above after i/j when accented; it drops when uppercased
_COMBINING_DOT_ABOVE = '\u0307'


def wrap_text(text: str, max_width: float, measure: Callable[[str], float]) -> List[str]:
    """
    Wrap text into the fewest lines whose measured width fits max_width.

    Words are split on whitespace and never broken, so a single word wider than
    max_width ends up alone on its own (overlong) line. The last accumulated line
    is always pushed, which makes an empty string wrap to [''].
    """
    words = text.split()
    lines = []
    current_line = []

    for word in words:
        test_line = ' '.join(current_line + [word])
        if current_line and measure(test_line) > max_width:
            lines.append(' '.join(current_line))
            current_line = [word]
        else:
            current_line.append(word)

    lines.append(' '.join(current_line))
    return lines


def locale_upper(text: str, locale_tag: str) -> str:
    """Uppercase text the way the given locale expects (tr-TR: i -> İ, ı -> I)."""
    language = (locale_tag or '').lower().replace('_', '-').split('-', 1)[0]

    if language in _DOTTED_I_LOCALES:
        text = text.replace('i', 'İ').replace('ı', 'I')
    elif language == 'lt':
        text = re.sub(r'([iIjJ])' + _COMBINING_DOT_ABOVE, r'\1', text)

    return text.upper()
