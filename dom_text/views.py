from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional


class NodeType(IntEnum):
	"""DOM Node Types (same numbering as CDP)"""

	ELEMENT = 1
	TEXT = 3
	COMMENT = 8
	DOCUMENT = 9
	DOCTYPE = 10
	DOCUMENT_FRAGMENT = 11  # Shadow root


@dataclass(frozen=True)
class Box:
	width: float = 0.0
	height: float = 0.0

	@property
	def is_empty(self) -> bool:
		return not (self.width > 0 and self.height > 0)


class InlineStyle:
	"""
	Mutable inline style declaration of an element (the `style` attribute).

	Setting a property to an empty string removes it, like
	CSSStyleDeclaration in a browser.
	"""

	def __init__(self, css_text: str = ''):
		self._properties: dict[str, str] = {}
		self.css_text = css_text

	@property
	def css_text(self) -> str:
		return ' '.join(f'{name}: {value};' for name, value in self._properties.items())

	@css_text.setter
	def css_text(self, value: str) -> None:
		self._properties.clear()
		for declaration in (value or '').split(';'):
			name, sep, prop_value = declaration.partition(':')
			if not sep:
				continue
			prop_value = prop_value.replace('!important', '').strip()
			self[name] = prop_value

	def get(self, name: str, default: str = '') -> str:
		return self._properties.get(name.strip().lower(), default)

	def __getitem__(self, name: str) -> str:
		return self.get(name)

	def __setitem__(self, name: str, value: str) -> None:
		name = name.strip().lower()
		if not name:
			return
		if value:
			self._properties[name] = value
		else:
			self._properties.pop(name, None)

	def __contains__(self, name: object) -> bool:
		return isinstance(name, str) and name.strip().lower() in self._properties

	def __iter__(self) -> Iterator[str]:
		return iter(self._properties)

	def __len__(self) -> int:
		return len(self._properties)

	def to_dict(self) -> dict[str, str]:
		return dict(self._properties)

	def __repr__(self) -> str:
		return f'InlineStyle({self.css_text!r})'


class SnapshotLayout:
	"""
	Answers offset geometry from a layout snapshot.

	A box is only reported while the element and all its ancestors take part in
	rendering under their *current* style, so a temporary inline override of
	`display` is honoured the way a live reflow would honour it.
	"""

	def measure(self, element: 'DOMElementNode') -> Box:
		current: DOMElementNode | None = element
		while current is not None:
			display = current.style.get('display') or current.computed_styles.get('display', '')
			if display == 'none':
				return Box()
			current = current.parent_element
		bounds = element.bounding_box
		if not bounds:
			return Box()
		return Box(float(bounds.get('width', 0.0)), float(bounds.get('height', 0.0)))


DEFAULT_LAYOUT = SnapshotLayout()


class DOMNode:
	"""
	Base node for any node in the DOM tree.
	"""

	node_type: NodeType

	def __init__(self, node_id: int = 0, backend_node_id: int = 0, frame_url: str = ''):
		# CDP node identifier
		self.node_id: int = node_id
		# CDP backend node identifier
		self.backend_node_id: int = backend_node_id
		# URL of the document this node was loaded from
		self.frame_url: str = frame_url
		# Pointer to parent node (None for root)
		self.parent: Optional['DOMContainerNode'] = None
		# Document the node belongs to (None for detached nodes)
		self.owner_document: Optional['DOMDocumentNode'] = None

	def set_owner_document(self, document: 'DOMDocumentNode') -> None:
		self.owner_document = document

	@property
	def parent_element(self) -> Optional['DOMElementNode']:
		"""Nearest ancestor that is an element (stops at documents)"""
		parent = self.parent
		return parent if isinstance(parent, DOMElementNode) else None

	@property
	def text_content(self) -> str:
		return ''


class DOMContainerNode(DOMNode):
	"""
	Node that owns an ordered list of children (elements and documents).
	"""

	def __init__(self, node_id: int = 0, backend_node_id: int = 0, frame_url: str = ''):
		super().__init__(node_id, backend_node_id, frame_url)
		# Children in order
		self.children: list[DOMNode] = []

	def append_child(self, node: DOMNode) -> None:
		node.parent = self
		self.children.append(node)
		document = self if isinstance(self, DOMDocumentNode) else self.owner_document
		if document is not None and not isinstance(node, DOMDocumentNode):
			node.set_owner_document(document)

	def set_owner_document(self, document: 'DOMDocumentNode') -> None:
		stack: list[DOMNode] = [self]
		while stack:
			node = stack.pop()
			node.owner_document = document
			# Nested documents (iframe content) keep their own descendants
			if isinstance(node, DOMContainerNode) and not isinstance(node, DOMDocumentNode):
				stack.extend(child for child in node.children if not isinstance(child, DOMDocumentNode))

	@property
	def text_content(self) -> str:
		parts: list[str] = []
		stack: list[DOMNode] = list(reversed(self.children))
		while stack:
			node = stack.pop()
			if isinstance(node, DOMTextNode):
				parts.append(node.text)
			elif isinstance(node, DOMElementNode):
				stack.extend(reversed(node.children))
		return ''.join(parts)

	def iter_elements(self) -> Iterator['DOMElementNode']:
		"""Yields descendant elements (self included) in document order, without entering nested documents."""
		stack: list[DOMNode] = [self]
		while stack:
			node = stack.pop()
			if isinstance(node, DOMElementNode):
				yield node
			if isinstance(node, DOMContainerNode) and (node is self or not isinstance(node, DOMDocumentNode)):
				stack.extend(reversed(node.children))

	# --------- Searches -------------

	def find_all(self, predicate: Callable[['DOMElementNode'], bool]) -> list['DOMElementNode']:
		"""
		Traverses the subtree (nested documents included) and returns all
		DOMElementNode instances for which predicate(e) is True.
		"""
		results: list[DOMElementNode] = []
		stack: list[DOMNode] = [self]
		while stack:
			node = stack.pop()
			if isinstance(node, DOMElementNode) and predicate(node):
				results.append(node)
			if isinstance(node, DOMContainerNode):
				stack.extend(reversed(node.children))
		return results

	def find_by_id(self, element_id: str) -> Optional['DOMElementNode']:
		matches = self.find_all(lambda e: e.attributes.get('id') == element_id)
		return matches[0] if matches else None

	def iter_usemap_referrers(self, map_name: str) -> Iterator['DOMElementNode']:
		"""Elements declaring usemap="#<map_name>", in document order, without entering nested documents."""
		target = f'#{map_name}'
		return (element for element in self.iter_elements() if element.attributes.get('usemap') == target)


class DOMElementNode(DOMContainerNode):
	"""
	Node that represents an HTML element, with tag, attributes,
	inline and computed styles and list of children.
	"""

	node_type = NodeType.ELEMENT

	def __init__(
		self,
		node_id: int = 0,
		backend_node_id: int = 0,
		frame_url: str = '',
		tag: str = '',
		attributes: dict[str, str] | None = None,
	):
		super().__init__(node_id, backend_node_id, frame_url)
		# Lowercased tag name
		self.tag: str = tag.lower()
		# Raw attributes; `style` is also parsed into `self.style`
		self.attributes: dict[str, str] = attributes or {}
		# Inline style declaration, mutable
		self.style: InlineStyle = InlineStyle(self.attributes.get('style', ''))
		# Computed styles snapshot (e.g. display, visibility, opacity…)
		self.computed_styles: dict[str, Any] = {}
		# Bounding box from layout data
		self.bounding_box: dict[str, float] | None = None

	@property
	def name(self) -> str:
		return self.attributes.get('name', '')

	@property
	def type(self) -> str:
		if self.tag == 'input':
			return self.attributes.get('type', 'text')
		return self.attributes.get('type', '')

	@property
	def layout(self) -> SnapshotLayout:
		if self.owner_document is not None:
			return self.owner_document.layout
		return DEFAULT_LAYOUT

	@property
	def offset_width(self) -> float:
		return self.layout.measure(self).width

	@property
	def offset_height(self) -> float:
		return self.layout.measure(self).height

	def get_bbox(self) -> Box | None:
		"""Native bounding box primitive; only graphics elements have one"""
		return None

	def find_ancestor(self, predicate: Callable[['DOMElementNode'], bool]) -> Optional['DOMElementNode']:
		"""Nearest element ancestor (self excluded) matching predicate"""
		p = self.parent_element
		while p is not None:
			if predicate(p):
				return p
			p = p.parent_element
		return None

	def __repr__(self) -> str:
		return f'<{self.tag} node_id={self.node_id}>'


class DOMSvgElementNode(DOMElementNode):
	"""
	SVG graphics element. Exposes getBBox() from its recorded layout box.
	"""

	def get_bbox(self) -> Box | None:
		if self.bounding_box is None:
			return Box()
		return Box(float(self.bounding_box.get('width', 0.0)), float(self.bounding_box.get('height', 0.0)))


class DOMTextNode(DOMNode):
	"""
	Pure text node. Keeps the raw character data, whitespace included.
	"""

	node_type = NodeType.TEXT

	def __init__(self, node_id: int = 0, backend_node_id: int = 0, frame_url: str = '', text: str = ''):
		super().__init__(node_id, backend_node_id, frame_url)
		self.text: str = text

	@property
	def text_content(self) -> str:
		return self.text

	def __repr__(self) -> str:
		return f'#text {self.text!r}'


class DOMCommentNode(DOMNode):
	node_type = NodeType.COMMENT

	def __init__(self, node_id: int = 0, backend_node_id: int = 0, frame_url: str = '', text: str = ''):
		super().__init__(node_id, backend_node_id, frame_url)
		self.text: str = text


class DOMDocumentNode(DOMContainerNode):
	"""
	Document node. The top-level document has no frame element; documents
	loaded in iframes point back at the iframe element hosting them.
	"""

	node_type = NodeType.DOCUMENT

	def __init__(
		self,
		node_id: int = 0,
		backend_node_id: int = 0,
		frame_url: str = '',
		frame_element: DOMElementNode | None = None,
		layout: SnapshotLayout | None = None,
	):
		super().__init__(node_id, backend_node_id, frame_url)
		self.frame_element: DOMElementNode | None = frame_element
		self.layout: SnapshotLayout = layout or DEFAULT_LAYOUT

	@property
	def is_top_level(self) -> bool:
		return self.frame_element is None

	@property
	def document_element(self) -> DOMElementNode | None:
		for child in self.children:
			if isinstance(child, DOMElementNode):
				return child
		return None


class DOMTree:
	"""
	Encapsulates a complete DOM tree (with its document) and offers
	convenience search methods.
	"""

	def __init__(self, root: DOMDocumentNode):
		self.root = root

	@property
	def document_element(self) -> DOMElementNode | None:
		return self.root.document_element

	# --------- Search methods -------------

	def get_all_elements(self) -> list[DOMElementNode]:
		return self.root.find_all(lambda e: True)

	def get_visible_elements(self) -> list[DOMElementNode]:
		from dom_text.utils.visible import is_shown

		return self.root.find_all(lambda e: is_shown(e))

	# --------- Text -------------

	def get_visible_text(self) -> str:
		from dom_text.utils.text import get_visible_text

		if self.document_element is None:
			return ''
		return get_visible_text(self.document_element)
