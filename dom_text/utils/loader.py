"""
Static HTML loader

Builds a DOMTree from markup without a browser. There is no style sheet
cascade and no layout engine here: computed styles come from user-agent
display defaults plus the `hidden` attribute, inline `style` attributes are
kept as the elements' inline styles, and an element only gets a box when its
width and height are both declared in pixels (inline style or attributes).
"""

import itertools
import logging
import re

from bs4 import BeautifulSoup
from bs4.element import Comment, NavigableString, PageElement, PreformattedString, Tag

from dom_text.views import DOMCommentNode, DOMContainerNode, DOMDocumentNode, DOMElementNode, DOMNode, DOMSvgElementNode, DOMTextNode, DOMTree

logger = logging.getLogger(__name__)

# User-agent default display values; anything else is inline
UA_DISPLAY = {
	'html': 'block',
	'body': 'block',
	'address': 'block',
	'article': 'block',
	'aside': 'block',
	'blockquote': 'block',
	'details': 'block',
	'dialog': 'block',
	'dd': 'block',
	'div': 'block',
	'dl': 'block',
	'dt': 'block',
	'fieldset': 'block',
	'figcaption': 'block',
	'figure': 'block',
	'footer': 'block',
	'form': 'block',
	'h1': 'block',
	'h2': 'block',
	'h3': 'block',
	'h4': 'block',
	'h5': 'block',
	'h6': 'block',
	'header': 'block',
	'hr': 'block',
	'main': 'block',
	'nav': 'block',
	'ol': 'block',
	'p': 'block',
	'pre': 'block',
	'section': 'block',
	'summary': 'block',
	'ul': 'block',
	'li': 'list-item',
	'table': 'table',
	'caption': 'table-caption',
	'thead': 'table-header-group',
	'tbody': 'table-row-group',
	'tfoot': 'table-footer-group',
	'tr': 'table-row',
	'td': 'table-cell',
	'th': 'table-cell',
	'button': 'inline-block',
	'input': 'inline-block',
	'select': 'inline-block',
	'textarea': 'inline-block',
	'area': 'none',
	'base': 'none',
	'datalist': 'none',
	'head': 'none',
	'link': 'none',
	'meta': 'none',
	'noscript': 'none',
	'param': 'none',
	'script': 'none',
	'style': 'none',
	'template': 'none',
	'title': 'none',
}

_PIXEL_LENGTH = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(?:px)?\s*$', re.IGNORECASE)


def _parse_length(value: str | None) -> float | None:
	if not value:
		return None
	match = _PIXEL_LENGTH.match(value)
	return float(match.group(1)) if match else None


def _declared_box(element: DOMElementNode) -> dict[str, float] | None:
	width = _parse_length(element.style.get('width') or element.attributes.get('width'))
	height = _parse_length(element.style.get('height') or element.attributes.get('height'))
	if width is None or height is None:
		return None
	return {'x': 0.0, 'y': 0.0, 'width': width, 'height': height}


def _build_element(tag: Tag, node_id: int, frame_url: str, is_svg: bool) -> DOMElementNode:
	attributes = {name: ' '.join(value) if isinstance(value, list) else value for name, value in tag.attrs.items()}
	element_class = DOMSvgElementNode if is_svg else DOMElementNode
	element = element_class(node_id=node_id, backend_node_id=node_id, frame_url=frame_url, tag=tag.name, attributes=attributes)

	if 'hidden' in attributes:
		display = 'none'
	elif is_svg:
		display = 'inline'
	else:
		display = UA_DISPLAY.get(element.tag, 'inline')
	# visibility is inherited unless declared
	element.computed_styles = {'display': display, 'visibility': 'inherit'}
	element.bounding_box = _declared_box(element)
	return element


def _build_node(source: PageElement, node_id: int, frame_url: str, in_svg: bool) -> tuple[DOMNode | None, bool]:
	if isinstance(source, Tag):
		name = source.name.lower()
		is_svg = name == 'svg' or (in_svg and name != 'foreignobject')
		return _build_element(source, node_id, frame_url, is_svg), is_svg
	if isinstance(source, Comment):
		return DOMCommentNode(node_id=node_id, backend_node_id=node_id, frame_url=frame_url, text=str(source)), in_svg
	if isinstance(source, PreformattedString):
		# doctype, CDATA, processing instructions
		return None, in_svg
	if isinstance(source, NavigableString):
		return DOMTextNode(node_id=node_id, backend_node_id=node_id, frame_url=frame_url, text=str(source)), in_svg
	return None, in_svg


def parse_html(markup: str, frame_url: str = 'about:blank') -> DOMTree:
	"""
	Parse markup into a DOMTree whose document is the top-level document.

	Args:
	    markup: HTML source
	    frame_url: URL recorded on every node

	Returns:
	    DOMTree: tree rooted at a DOMDocumentNode
	"""
	soup = BeautifulSoup(markup, 'html.parser')
	ids = itertools.count(1)
	document_id = next(ids)
	document = DOMDocumentNode(node_id=document_id, backend_node_id=document_id, frame_url=frame_url)

	stack: list[tuple[Tag, DOMContainerNode, bool]] = [(soup, document, False)]
	while stack:
		source, target, in_svg = stack.pop()
		for child in source.children:
			node, child_in_svg = _build_node(child, next(ids), frame_url, in_svg)
			if node is None:
				continue
			target.append_child(node)
			if isinstance(child, Tag) and isinstance(node, DOMElementNode):
				stack.append((child, node, child_in_svg))

	logger.debug(f'Parsed {len(document.find_all(lambda e: True))} elements from markup')
	return DOMTree(document)
