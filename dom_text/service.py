import asyncio
import logging
from typing import Any

from playwright.async_api import BrowserContext, CDPSession, Page

from dom_text.config import DEFAULT_CONFIG, TextExtractionConfig
from dom_text.errors import InvalidArgumentError
from dom_text.utils.enrichment import enrich_dom_tree
from dom_text.utils.text import get_visible_text
from dom_text.views import (
	DOMCommentNode,
	DOMDocumentNode,
	DOMElementNode,
	DOMNode,
	DOMSvgElementNode,
	DOMTextNode,
	DOMTree,
	NodeType,
)

# @file purpose: Defines DOMService for snapshotting a page into a DOMTree using raw CDP calls

logger = logging.getLogger(__name__)


class DOMService:
	"""
	Service for building DOM trees using raw Chrome DevTools Protocol (CDP) calls
	and reading the visible text of their elements.

	The tree keeps every text node as-is (whitespace included), the documents of
	iframes as nested document nodes, and is enriched with the computed styles
	and layout boxes the visibility rules need.
	"""

	def __init__(
		self,
		page: Page,
		context: BrowserContext,
		cdp_session: CDPSession,
		config: TextExtractionConfig = DEFAULT_CONFIG,
	):
		self.page: Page = page
		self.context: BrowserContext = context
		self.cdp_session: CDPSession = cdp_session
		self.config: TextExtractionConfig = config
		self.dom_tree: DOMTree | None = None
		# Per-build frame bookkeeping
		self.processed_frames: set[str] = set()
		self.processed_iframe_nodes: set[int] = set()
		self.sessions: dict[str, CDPSession] = {}
		self.session_frame_urls: dict[CDPSession, str] = {}
		self.iframe_depth = 0

	async def set_page(self, page: Page):
		"""Set the page to work with"""
		self.page = page
		self.cdp_session = await page.context.new_cdp_session(page)
		self.dom_tree = None

	def clear_cache(self) -> None:
		"""Forget the cached tree; the next call snapshots the page again"""
		self.dom_tree = None

	async def get_dom_tree(self) -> DOMTree:
		"""Get the cached DOM tree or build a new one"""
		if self.dom_tree is None:
			return await asyncio.wait_for(self.build_dom_tree(), timeout=self.config.snapshot_timeout)
		return self.dom_tree

	async def get_visible_text(self, selector: str | None = None, node_id: int | None = None) -> str:
		"""
		Visible text of the element matching a CSS selector or a CDP node id,
		or of the whole document when neither is given.
		"""
		dom_tree = await self.get_dom_tree()

		if selector is not None:
			result = await self.cdp_session.send('DOM.querySelector', {'nodeId': dom_tree.root.node_id, 'selector': selector})
			node_id = result.get('nodeId') or None
			if node_id is None:
				raise InvalidArgumentError('get_visible_text', selector, f'{selector!r} does not match any element')

		if node_id is None:
			element = dom_tree.document_element
		else:
			# Node ids belong to the main session; iframe documents are not searched
			element = next((e for e in dom_tree.root.iter_elements() if e.node_id == node_id), None)
		if element is None:
			raise InvalidArgumentError('get_visible_text', node_id, f'node {node_id} is not an element of the current tree')

		return get_visible_text(element, self.config)

	async def build_dom_tree(self) -> DOMTree:
		"""
		Build a DOM tree including main document, iframes, and shadow roots.
		The tree is enriched with computed styles and layout boxes.
		"""
		try:
			logger.info(f'Snapshotting DOM of {self.page.url}')

			# Fresh bookkeeping for every build
			self.processed_frames.clear()
			self.processed_iframe_nodes.clear()
			self.sessions.clear()
			self.session_frame_urls.clear()
			self.iframe_depth = 0

			doc_result = await self.cdp_session.send('DOM.getDocument', {'depth': -1, 'pierce': True})

			root_node = doc_result.get('root')
			if not root_node:
				raise ValueError('DOM.getDocument returned no root node')

			document_url = root_node.get('documentURL', self.page.url)
			self.session_frame_urls[self.cdp_session] = document_url
			root_document = await self._traverse_node_recursive(root_node, document_url)

			if not isinstance(root_document, DOMDocumentNode):
				raise ValueError('DOM.getDocument root is not a document node')

			self.dom_tree = DOMTree(root_document)

			await enrich_dom_tree(self.dom_tree, self.sessions, self.session_frame_urls, self.cdp_session, self.config)

			logger.info(f'DOM tree ready: {len(self.dom_tree.get_all_elements())} elements')
			return self.dom_tree

		except Exception as e:
			logger.error(f'Could not build DOM tree: {e}')
			raise RuntimeError(f'Failed to build DOM tree from CDP data: {e}') from e

	async def _traverse_node_recursive(
		self,
		cdp_node: dict[str, Any],
		frame_url: str,
		in_svg: bool = False,
		frame_element: DOMElementNode | None = None,
	) -> DOMNode | None:
		"""
		Convert a CDP node and its subtree, descending into shadow roots and frame documents.
		"""
		node_id = cdp_node.get('nodeId')
		if node_id is None:
			raise ValueError(f'CDP node without nodeId: {cdp_node}')
		backend_node_id = cdp_node.get('backendNodeId')
		if backend_node_id is None:
			raise ValueError(f'CDP node without backendNodeId: {cdp_node}')

		node_type = cdp_node.get('nodeType', 0)
		node_name = cdp_node.get('nodeName', '')

		if node_type == NodeType.DOCUMENT:
			document_url = cdp_node.get('documentURL') or frame_url
			document = DOMDocumentNode(
				node_id=node_id,
				backend_node_id=backend_node_id,
				frame_url=document_url,
				frame_element=frame_element,
			)
			for child in cdp_node.get('children', []):
				child_node = await self._traverse_child(child, document_url, False)
				if child_node:
					document.append_child(child_node)
			return document

		elif node_type == NodeType.ELEMENT:
			attributes = {}
			attrs_list = cdp_node.get('attributes', [])
			for i in range(0, len(attrs_list) - 1, 2):
				attributes[attrs_list[i]] = attrs_list[i + 1]

			tag = node_name.lower()
			is_svg = tag == 'svg' or (in_svg and tag != 'foreignobject')
			element_class = DOMSvgElementNode if is_svg else DOMElementNode
			element = element_class(
				node_id=node_id,
				backend_node_id=backend_node_id,
				frame_url=frame_url,
				tag=tag,
				attributes=attributes,
			)

			for child in cdp_node.get('children', []):
				child_node = await self._traverse_child(child, frame_url, is_svg)
				if child_node:
					element.append_child(child_node)

			# Shadow roots are DOCUMENT_FRAGMENT nodes, their children are rendered in place of the host's
			for shadow_root in cdp_node.get('shadowRoots', []):
				if shadow_root.get('nodeType') == NodeType.DOCUMENT_FRAGMENT:
					for shadow_child in shadow_root.get('children', []):
						child_node = await self._traverse_child(shadow_child, frame_url, is_svg)
						if child_node:
							element.append_child(child_node)

			if tag in ('iframe', 'frame'):
				await self._attach_frame_document(element, cdp_node, frame_url)

			return element

		elif node_type == NodeType.TEXT:
			return DOMTextNode(
				node_id=node_id, backend_node_id=backend_node_id, frame_url=frame_url, text=cdp_node.get('nodeValue', '')
			)

		elif node_type == NodeType.COMMENT:
			return DOMCommentNode(
				node_id=node_id, backend_node_id=backend_node_id, frame_url=frame_url, text=cdp_node.get('nodeValue', '')
			)

		elif node_type == NodeType.DOCTYPE:
			return None

		elif node_type == NodeType.DOCUMENT_FRAGMENT:
			# Fragments are only expected under shadowRoots
			logger.error(f'Unexpected DOCUMENT_FRAGMENT in normal traversal: node_id={node_id}')
			return None

		logger.debug(f'Unhandled node type {node_type}: {node_name}')
		return None

	async def _traverse_child(self, cdp_node: dict[str, Any], frame_url: str, in_svg: bool) -> DOMNode | None:
		try:
			return await self._traverse_node_recursive(cdp_node, frame_url, in_svg)
		except Exception as e:
			logger.error(f'Skipping child node: {e}')
			return None

	async def _attach_frame_document(self, element: DOMElementNode, cdp_node: dict[str, Any], frame_url: str) -> None:
		logger.debug(f'Found iframe element: src={element.attributes.get("src", "")}, backend_node_id={element.backend_node_id}')
		if element.backend_node_id in self.processed_iframe_nodes:
			logger.debug(f'Skipping already processed iframe node: {element.backend_node_id}')
			return
		self.processed_iframe_nodes.add(element.backend_node_id)

		# Same-process iframes come with their document already pierced
		content_document = cdp_node.get('contentDocument')
		if content_document:
			logger.debug(f'Using pierced contentDocument of frame {element.backend_node_id}')
			document = await self._traverse_node_recursive(content_document, frame_url, frame_element=element)
		else:
			document = await self._process_iframe_content(element)
		if document:
			element.append_child(document)

	async def _process_iframe_content(self, iframe_element: DOMElementNode) -> DOMDocumentNode | None:
		"""
		Process out-of-process iframe content through its own CDP session.
		"""
		frame_url = iframe_element.attributes.get('src', '')
		if self.iframe_depth >= self.config.max_iframe_depth:
			logger.warning(f'Maximum iframe depth ({self.config.max_iframe_depth}) reached, skipping frame: {frame_url}')
			return None

		if not frame_url or frame_url in self.processed_frames:
			logger.debug(f'Skipping already processed frame: {frame_url}')
			return None

		self.processed_frames.add(frame_url)
		self.iframe_depth += 1

		try:
			return await asyncio.wait_for(
				self._process_iframe_with_playwright_cdp(iframe_element, frame_url),
				timeout=self.config.iframe_timeout,
			)
		except TimeoutError:
			logger.warning(f'Timeout processing iframe content for frame {frame_url}')
			return None
		except Exception as e:
			logger.warning(f'Error processing iframe content for frame {frame_url}: {e}')
			return None
		finally:
			self.iframe_depth -= 1

	async def _get_frame_session(self, frame_url: str) -> CDPSession | None:
		"""
		Get a CDP session for the frame loaded from frame_url.
		"""
		for frame in self.page.frames:
			if frame.url == frame_url:
				return await asyncio.wait_for(self.context.new_cdp_session(frame), timeout=self.config.cdp_call_timeout)
		return None

	async def _process_iframe_with_playwright_cdp(self, iframe_element: DOMElementNode, frame_url: str) -> DOMDocumentNode | None:
		"""Fetch the document of an out-of-process frame through a session attached to it"""
		frame_cdp_session = await self._get_frame_session(frame_url)
		if not frame_cdp_session:
			logger.warning(f'Could not create CDP session for iframe: {frame_url}')
			return None

		logger.debug(f'Getting DOM document for frame: {frame_url}')
		frame_doc_result = await asyncio.wait_for(
			frame_cdp_session.send('DOM.getDocument', {'depth': -1, 'pierce': True}),
			timeout=self.config.cdp_call_timeout,
		)

		root = frame_doc_result.get('root')
		if not root:
			logger.warning(f'Frame {frame_url} returned no document root')
			return None

		iframe_document_url = root.get('documentURL', frame_url)
		logger.debug(f'Frame document loaded from {iframe_document_url}')
		self.session_frame_urls[frame_cdp_session] = iframe_document_url
		self.sessions[iframe_document_url] = frame_cdp_session
		document = await self._traverse_node_recursive(root, iframe_document_url, frame_element=iframe_element)
		return document if isinstance(document, DOMDocumentNode) else None
