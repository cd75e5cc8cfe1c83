"""
DOM utilities package
"""

from .geometry import get_bounding_box, style_override
from .loader import parse_html
from .opacity import effective_opacity
from .style import resolved_style
from .text import get_visible_text
from .visible import is_shown

__all__ = [
	'effective_opacity',
	'get_bounding_box',
	'get_visible_text',
	'is_shown',
	'parse_html',
	'resolved_style',
	'style_override',
]
