import logging
from collections.abc import Iterator
from contextlib import contextmanager

from dom_text.utils.style import resolved_style
from dom_text.views import Box, DOMElementNode

logger = logging.getLogger(__name__)


@contextmanager
def style_override(element: DOMElementNode, **properties: str) -> Iterator[DOMElementNode]:
	"""
	Temporarily sets inline style properties on an element.

	The previous inline values are put back when the block exits, whether it
	returns or raises. Keyword names use underscores for dashes.
	"""
	saved = {name.replace('_', '-'): element.style.get(name.replace('_', '-')) for name in properties}
	try:
		for name, value in properties.items():
			element.style[name.replace('_', '-')] = value
		yield element
	finally:
		for name, value in saved.items():
			element.style[name] = value


def get_bounding_box(element: DOMElementNode) -> Box:
	"""
	Measures the rendered box of an element.

	Graphics elements answer from their native bbox. Elements hidden with
	display:none report no size, so they are measured as an absolutely
	positioned, invisible inline box to find out whether they could have any
	extent at all.
	"""
	native = element.get_bbox()
	if native is not None:
		return native

	if resolved_style(element, 'display') != 'none':
		return Box(element.offset_width, element.offset_height)

	logger.debug(f'Measuring display:none element {element!r} with a temporary style override')
	with style_override(element, visibility='hidden', position='absolute', display='inline'):
		return Box(element.offset_width, element.offset_height)
