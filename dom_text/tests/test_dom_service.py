"""
Test for DOMService - builds a DOM tree from raw CDP payloads and reads visible text.
The CDP session is replaced by an in-process fake that answers with canned
protocol responses, so no browser is needed.
"""

import logging
from types import SimpleNamespace
from typing import Any

import pytest

from dom_text.errors import InvalidArgumentError
from dom_text.service import DOMService
from dom_text.views import DOMDocumentNode, DOMElementNode, DOMSvgElementNode, DOMTextNode, DOMTree

logging.basicConfig(level=logging.DEBUG)

PAGE_URL = 'https://example.com/'
FRAME_URL = 'https://example.com/frame'


def _node(node_id: int, node_type: int, node_name: str, children: list | None = None, **extra: Any) -> dict[str, Any]:
	node = {'nodeId': node_id, 'backendNodeId': node_id + 100, 'nodeType': node_type, 'nodeName': node_name}
	if children is not None:
		node['children'] = children
	node.update(extra)
	return node


def _element(node_id: int, name: str, children: list | None = None, attributes: list[str] | None = None, **extra: Any):
	return _node(node_id, 1, name.upper(), children or [], attributes=attributes or [], **extra)


def _text(node_id: int, value: str) -> dict[str, Any]:
	return _node(node_id, 3, '#text', nodeValue=value)


FRAME_DOCUMENT = _node(
	20,
	9,
	'#document',
	[_element(21, 'html', [_element(22, 'body', [_text(23, 'Framed')])])],
	documentURL=FRAME_URL,
)

DOCUMENT = _node(
	1,
	9,
	'#document',
	[
		_node(2, 10, 'html'),
		_element(
			3,
			'html',
			[
				_element(4, 'head', [_element(5, 'title', [_text(6, 'Page')])]),
				_element(
					7,
					'body',
					[
						_element(8, 'div', [_text(9, 'Hello'), _element(10, 'span', [_text(11, ' world')])], ['id', 'main']),
						_element(12, 'div', [_text(13, 'Secret')], ['style', 'display:none']),
						_element(14, 'iframe', [], ['src', FRAME_URL], contentDocument=FRAME_DOCUMENT),
						_node(15, 8, '#comment', nodeValue='note'),
						_node(16, 1, 'svg', [_node(17, 1, 'rect', [])]),
					],
				),
			],
		),
	],
	documentURL=PAGE_URL,
)

# Computed styles are requested as display, visibility, opacity, position
STRINGS = ['block', 'visible', '1', 'static', 'inline']
BLOCK = [0, 1, 2, 3]
INLINE = [4, 1, 2, 3]

SNAPSHOT = {
	'strings': STRINGS,
	'documents': [
		{
			'nodes': {
				'backendNodeId': [101, 103, 104, 105, 106, 107, 108, 109, 110, 111, 112, 113, 114, 116, 117],
				'nodeType': [9, 1, 1, 1, 3, 1, 1, 3, 1, 3, 1, 3, 1, 1, 1],
			},
			'layout': {
				# html, body, div#main, "Hello", span, " world", iframe, svg, rect
				'nodeIndex': [1, 5, 6, 7, 8, 9, 12, 13, 14],
				'styles': [BLOCK, BLOCK, BLOCK, INLINE, INLINE, INLINE, INLINE, INLINE, INLINE],
				'bounds': [
					[0, 0, 800, 600],
					[8, 8, 784, 584],
					[8, 8, 784, 20],
					[8, 8, 40, 20],
					[48, 8, 50, 20],
					[48, 8, 50, 20],
					[8, 28, 300, 150],
					[8, 180, 20, 20],
					[8, 180, 10, 10],
				],
			},
		},
		{
			'nodes': {'backendNodeId': [120, 121, 122, 123], 'nodeType': [9, 1, 1, 3]},
			'layout': {
				'nodeIndex': [1, 2, 3],
				'styles': [BLOCK, BLOCK, INLINE],
				'bounds': [[0, 0, 300, 150], [8, 8, 284, 134], [8, 8, 50, 20]],
			},
		},
	],
}


class FakeCDPSession:
	"""Answers CDP calls from a table of canned responses"""

	def __init__(self, responses: dict[str, Any]):
		self.responses = responses
		self.calls: list[tuple[str, dict | None]] = []

	async def send(self, method: str, params: dict | None = None):
		self.calls.append((method, params))
		response = self.responses.get(method)
		if isinstance(response, Exception):
			raise response
		if callable(response):
			return response(params)
		if response is None:
			raise RuntimeError(f'unexpected CDP call {method}')
		return response


def _query_selector(params: dict) -> dict:
	return {'nodeId': {'#main': 8, 'body': 7}.get(params['selector'], 0)}


def _computed_style(params: dict) -> dict:
	# head and the display:none div are looked up; the title under head is not
	display = {4: 'none', 12: 'none'}[params['nodeId']]
	return {'computedStyle': [{'name': 'display', 'value': display}]}


def _service(**overrides: Any) -> tuple[DOMService, FakeCDPSession]:
	responses = {
		'DOM.getDocument': {'root': DOCUMENT},
		'DOMSnapshot.captureSnapshot': SNAPSHOT,
		'DOM.querySelector': _query_selector,
		'DOM.enable': {},
		'CSS.enable': {},
		'CSS.getComputedStyleForNode': _computed_style,
	}
	responses.update(overrides)
	session = FakeCDPSession(responses)
	page = SimpleNamespace(url=PAGE_URL, frames=[])
	return DOMService(page, SimpleNamespace(), session), session


class TestDOMService:
	"""Test suite for the DOMService implementation"""

	async def test_basic_dom_building(self):
		"""Builds documents, elements, text and comment nodes"""
		service, session = _service()
		dom_tree = await service.build_dom_tree()

		assert isinstance(dom_tree, DOMTree)
		assert isinstance(dom_tree.root, DOMDocumentNode)
		assert dom_tree.root.is_top_level
		assert dom_tree.document_element.tag == 'html'

		main = dom_tree.root.find_by_id('main')
		assert main is not None
		assert main.owner_document is dom_tree.root
		assert [type(child) for child in main.children] == [DOMTextNode, DOMElementNode]
		# whitespace of text nodes is kept
		assert main.children[1].children[0].text == ' world'

		svg_nodes = dom_tree.root.find_all(lambda e: e.tag in ('svg', 'rect'))
		assert all(isinstance(e, DOMSvgElementNode) for e in svg_nodes)

		assert session.calls[0] == ('DOM.getDocument', {'depth': -1, 'pierce': True})

	async def test_iframe_document(self):
		"""Same-process iframe documents are nested below their iframe element"""
		service, _ = _service()
		dom_tree = await service.build_dom_tree()

		iframe = dom_tree.root.find_all(lambda e: e.tag == 'iframe')[0]
		framed = iframe.children[0]
		assert isinstance(framed, DOMDocumentNode)
		assert framed.frame_element is iframe
		assert not framed.is_top_level
		assert framed.frame_url == FRAME_URL
		assert framed.document_element.owner_document is framed

		assert DOMTree(framed).get_visible_text() == 'Framed'

	async def test_enrichment(self):
		"""Computed styles and boxes are copied from the snapshot"""
		service, _ = _service()
		dom_tree = await service.build_dom_tree()

		main = dom_tree.root.find_by_id('main')
		assert main.computed_styles == {'display': 'block', 'visibility': 'visible', 'opacity': '1', 'position': 'static'}
		assert main.bounding_box == {'x': 8, 'y': 8, 'width': 784, 'height': 20}

		# no layout object: not rendered
		head = dom_tree.root.find_all(lambda e: e.tag == 'head')[0]
		assert head.computed_styles['display'] == 'none'
		assert head.bounding_box is None

		framed_body = dom_tree.root.find_all(lambda e: e.backend_node_id == 122)[0]
		assert framed_body.computed_styles['display'] == 'block'

	async def test_unrendered_elements_are_looked_up(self):
		"""Elements without a layout row get their display from the CSS domain"""
		service, session = _service()
		dom_tree = await service.build_dom_tree()

		lookups = [params['nodeId'] for method, params in session.calls if method == 'CSS.getComputedStyleForNode']
		assert lookups == [4, 12]
		title = dom_tree.root.find_all(lambda e: e.tag == 'title')[0]
		assert title.computed_styles['display'] == 'none'

	async def test_unavailable_css_domain_keeps_unrendered_elements_hidden(self):
		service, _ = _service(**{'CSS.enable': RuntimeError('CSS agent unavailable')})
		dom_tree = await service.build_dom_tree()

		secret = dom_tree.root.find_all(lambda e: e.node_id == 12)[0]
		assert secret.computed_styles['display'] == 'none'
		assert dom_tree.get_visible_text() == 'Page\nHello world'

	async def test_document_visible_text(self):
		service, _ = _service()
		assert await service.get_visible_text() == 'Page\nHello world'

	async def test_visible_text_by_selector(self):
		service, session = _service()
		assert await service.get_visible_text(selector='#main') == 'Hello world'
		assert ('DOM.querySelector', {'nodeId': 1, 'selector': '#main'}) in session.calls

	async def test_visible_text_by_node_id(self):
		service, _ = _service()
		assert await service.get_visible_text(node_id=10) == 'world'

	async def test_selector_without_match(self):
		service, _ = _service()
		with pytest.raises(InvalidArgumentError):
			await service.get_visible_text(selector='#missing')

	async def test_node_id_of_text_node(self):
		service, _ = _service()
		with pytest.raises(InvalidArgumentError):
			await service.get_visible_text(node_id=9)

	async def test_tree_is_cached(self):
		service, session = _service()
		first = await service.get_dom_tree()
		second = await service.get_dom_tree()
		assert first is second
		assert [method for method, _ in session.calls].count('DOM.getDocument') == 1

		service.clear_cache()
		assert await service.get_dom_tree() is not first

	async def test_missing_root(self):
		service, _ = _service(**{'DOM.getDocument': {}})
		with pytest.raises(RuntimeError):
			await service.build_dom_tree()

	async def test_failed_snapshot_leaves_tree_unenriched(self):
		service, _ = _service(**{'DOMSnapshot.captureSnapshot': RuntimeError('snapshot failed')})
		dom_tree = await service.build_dom_tree()

		main = dom_tree.root.find_by_id('main')
		assert main.computed_styles == {}
		assert main.bounding_box is None
		# no block displays without computed styles, inline display:none still applies
		assert dom_tree.get_visible_text() == 'PageHello world'
