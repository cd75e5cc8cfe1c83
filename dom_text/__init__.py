"""
Visible text extraction for DOM trees
"""

from dom_text.config import DEFAULT_CONFIG, TextExtractionConfig
from dom_text.errors import InvalidArgumentError
from dom_text.utils import (
	effective_opacity,
	get_bounding_box,
	get_visible_text,
	is_shown,
	parse_html,
	resolved_style,
)
from dom_text.views import DOMDocumentNode, DOMElementNode, DOMTextNode, DOMTree

__all__ = [
	'DEFAULT_CONFIG',
	'DOMDocumentNode',
	'DOMElementNode',
	'DOMTextNode',
	'DOMTree',
	'InvalidArgumentError',
	'TextExtractionConfig',
	'effective_opacity',
	'get_bounding_box',
	'get_visible_text',
	'is_shown',
	'parse_html',
	'resolved_style',
]
