"""
DOM Enrichment Utility

This module copies computed styles and layout boxes from a CDP
DOMSnapshot.captureSnapshot result onto the elements of a DOMTree, so the
visibility rules can run on the tree without talking to the browser again.
"""

import logging
from typing import Any

from playwright.async_api import CDPSession

from dom_text.config import DEFAULT_CONFIG, TextExtractionConfig
from dom_text.views import DOMElementNode, DOMTree, NodeType

logger = logging.getLogger(__name__)


class DOMEnricher:
	"""
	Enriches DOM elements with computed styles and layout data.
	"""

	def __init__(self, config: TextExtractionConfig = DEFAULT_CONFIG):
		self.config = config

	async def enrich_dom_tree(
		self,
		dom_tree: DOMTree,
		sessions: dict[str, CDPSession],
		session_frame_urls: dict[CDPSession, str],
		main_session: CDPSession,
	) -> int:
		"""
		Copy snapshot styles and boxes onto every element of the tree.

		Args:
		    dom_tree: The DOM tree to enrich
		    sessions: CDP sessions of out-of-process iframes, by frame URL
		    session_frame_urls: Mapping of sessions to frame URLs
		    main_session: Main CDP session

		Returns:
		    int: number of enriched elements
		"""
		elements = dom_tree.get_all_elements()
		logger.info(f'Capturing layout snapshots for {len(elements)} elements')

		# frame_url -> backend_node_id -> element
		by_frame: dict[str, dict[int, DOMElementNode]] = {}
		for element in elements:
			by_frame.setdefault(element.frame_url, {})[element.backend_node_id] = element

		iframe_sessions = [session for session in sessions.values() if session is not main_session]
		iframe_urls = {session_frame_urls.get(session) for session in iframe_sessions}

		# The main snapshot also covers same-process iframe documents
		main_node_map: dict[int, DOMElementNode] = {}
		for frame_url, backend_node_map in by_frame.items():
			if frame_url not in iframe_urls:
				main_node_map.update(backend_node_map)
		main_frame_url = session_frame_urls.get(main_session, 'unknown')
		enriched = await self._enrich_session_nodes(main_session, main_frame_url, main_node_map)

		for session in iframe_sessions:
			frame_url = session_frame_urls.get(session, 'unknown')
			backend_node_map = by_frame.get(frame_url)
			if not backend_node_map:
				logger.debug(f'No elements to enrich for frame {frame_url}')
				continue
			enriched += await self._enrich_session_nodes(session, frame_url, backend_node_map)

		logger.info(f'DOM tree enrichment completed ({enriched} elements)')
		return enriched

	async def _enrich_session_nodes(self, session: CDPSession, frame_url: str, backend_node_map: dict[int, DOMElementNode]) -> int:
		"""
		Capture one snapshot through `session` and apply it to the elements of `frame_url`.
		"""
		try:
			logger.debug(f'Capturing snapshot for frame {frame_url}')
			snapshot = await session.send(
				'DOMSnapshot.captureSnapshot',
				{
					'computedStyles': self.config.computed_styles,
					'includePaintOrder': False,
					'includeDOMRects': True,
				},
			)
		except Exception as e:
			logger.warning(f'Layout snapshot failed for frame {frame_url}: {e}')
			return 0

		matched = self.process_snapshot_data(snapshot, frame_url, backend_node_map)

		unrendered = [
			element
			for element in backend_node_map.values()
			if element.bounding_box is None and element.computed_styles.get('display') == 'none'
		]
		if unrendered:
			await self._resolve_unrendered_displays(session, unrendered)
		return matched

	async def _resolve_unrendered_displays(self, session: CDPSession, elements: list[DOMElementNode]) -> None:
		"""
		Look up the actual display of elements the snapshot has no layout row for.

		Chromium creates no layout object for `display: contents` (the default of
		<slot>) either, so `none` is only kept where the computed style says so.
		Elements come in document order; descendants of a confirmed `display: none`
		element are not looked up. When a lookup fails the element stays hidden.
		"""
		try:
			await session.send('DOM.enable')
			await session.send('CSS.enable')
		except Exception as e:
			logger.warning(f'Computed style lookups unavailable, {len(elements)} unrendered elements stay hidden: {e}')
			return

		hidden: set[int] = set()
		rendered = 0
		for element in elements:
			if self._has_hidden_ancestor(element, hidden):
				continue
			try:
				result = await session.send('CSS.getComputedStyleForNode', {'nodeId': element.node_id})
			except Exception as e:
				logger.debug(f'Computed style lookup failed for {element!r}: {e}')
				hidden.add(id(element))
				continue

			display = next(
				(prop.get('value') for prop in result.get('computedStyle', []) if prop.get('name') == 'display'),
				'none',
			)
			element.computed_styles['display'] = display
			if display == 'none':
				hidden.add(id(element))
			else:
				rendered += 1

		logger.debug(f'{rendered} of {len(elements)} unrendered elements are displayed')

	@staticmethod
	def _has_hidden_ancestor(element: DOMElementNode, hidden: set[int]) -> bool:
		parent = element.parent_element
		while parent is not None:
			if id(parent) in hidden:
				return True
			parent = parent.parent_element
		return False

	def process_snapshot_data(self, snapshot: dict[str, Any], frame_url: str, backend_node_map: dict[int, DOMElementNode]) -> int:
		"""
		Apply a captureSnapshot result to the elements in `backend_node_map` and return how many were matched.
		"""
		documents = snapshot.get('documents', [])
		strings = snapshot.get('strings', [])

		if not documents:
			logger.debug(f'Empty snapshot for frame {frame_url}')
			return 0

		matched = 0
		for snapshot_document in documents:
			nodes = snapshot_document.get('nodes', {})
			layout = snapshot_document.get('layout', {})

			backend_ids = nodes.get('backendNodeId', [])
			node_types = nodes.get('nodeType', [])

			# Layout data only exists for rendered nodes
			node_to_layout = {node_idx: layout_idx for layout_idx, node_idx in enumerate(layout.get('nodeIndex', []))}
			style_rows = layout.get('styles', [])
			bound_rows = layout.get('bounds', [])

			for node_idx, backend_id in enumerate(backend_ids):
				if node_idx >= len(node_types) or node_types[node_idx] != NodeType.ELEMENT:
					continue

				element = backend_node_map.get(backend_id)
				if element is None:
					continue

				layout_idx = node_to_layout.get(node_idx)
				if layout_idx is None:
					# No layout object: hidden until the computed display says otherwise
					element.computed_styles['display'] = 'none'
					element.bounding_box = None
				else:
					if layout_idx < len(style_rows):
						self._parse_style_array(element, style_rows[layout_idx], strings)
					if layout_idx < len(bound_rows):
						self._extract_bounds(element, bound_rows[layout_idx])
				matched += 1

		logger.debug(f'Applied snapshot to {matched} elements of frame {frame_url}')
		return matched

	def _parse_style_array(self, element: DOMElementNode, style_array: list[int], strings: list[str]) -> None:
		"""
		Store the computed style values of one layout row on `element`.

		The style array holds one index into `strings` per requested
		computed style, in request order.
		"""
		names = self.config.computed_styles
		values = {}
		for position, string_idx in enumerate(style_array):
			if position < len(names) and 0 <= string_idx < len(strings):
				values[names[position]] = strings[string_idx]

		if values:
			element.computed_styles.update(values)

	def _extract_bounds(self, element: DOMElementNode, bounds: list[float]) -> None:
		if len(bounds) >= 4:
			x, y, width, height = bounds[:4]
			element.bounding_box = {'x': x, 'y': y, 'width': width, 'height': height}


async def enrich_dom_tree(
	dom_tree: DOMTree,
	sessions: dict[str, CDPSession],
	session_frame_urls: dict[CDPSession, str],
	main_session: CDPSession,
	config: TextExtractionConfig = DEFAULT_CONFIG,
) -> int:
	"""
	Enrich `dom_tree` with a one-off :class:`DOMEnricher`.

	Args:
	    dom_tree: The DOM tree to enrich
	    sessions: CDP sessions of out-of-process iframes, by frame URL
	    session_frame_urls: Mapping of sessions to frame URLs
	    main_session: Main CDP session
	    config: extraction configuration (computed styles to capture)
	"""
	return await DOMEnricher(config).enrich_dom_tree(dom_tree, sessions, session_frame_urls, main_session)
