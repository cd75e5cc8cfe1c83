from collections.abc import Callable
from enum import Enum

from dom_text.config import DEFAULT_CONFIG, TextExtractionConfig
from dom_text.errors import InvalidArgumentError
from dom_text.utils.geometry import get_bounding_box
from dom_text.utils.opacity import effective_opacity
from dom_text.utils.style import resolved_style
from dom_text.views import DOMContainerNode, DOMElementNode


class ElementKind(Enum):
	"""Element types that carry their own visibility rule"""

	TITLE = 'title'
	OPTION = 'option'
	OPTGROUP = 'optgroup'
	MAP = 'map'
	AREA = 'area'
	INPUT = 'input'
	OTHER = '*'

	@classmethod
	def of(cls, element: DOMElementNode) -> 'ElementKind':
		try:
			return cls(element.tag)
		except ValueError:
			return cls.OTHER


# A kind rule returns a final answer, or None to continue with the generic checks
KindRule = Callable[[DOMElementNode, bool, TextExtractionConfig], bool | None]


def _title_rule(element: DOMElementNode, ignore_opacity: bool, config: TextExtractionConfig) -> bool | None:
	# Only the title of the document presented to the user is shown
	document = element.owner_document
	return document is None or document.is_top_level


def _option_rule(element: DOMElementNode, ignore_opacity: bool, config: TextExtractionConfig) -> bool | None:
	select = element.find_ancestor(lambda e: e.tag == 'select')
	return select is not None and is_shown(select, ignore_opacity, config)


def _find_usemap_referrer(element: DOMElementNode, map_name: str) -> DOMElementNode | None:
	scope: DOMContainerNode | None = element.owner_document
	if scope is None:
		# Detached subtree: search from its topmost element
		scope = element
		while scope.parent_element is not None:
			scope = scope.parent_element

	ancestors: set[int] = set()
	current: DOMElementNode | None = element
	while current is not None:
		ancestors.add(id(current))
		current = current.parent_element

	# Skip referrers whose own visibility leads back to this map
	for candidate in scope.iter_usemap_referrers(map_name):
		if id(candidate) in ancestors or ElementKind.of(candidate) in (ElementKind.MAP, ElementKind.AREA):
			continue
		return candidate
	return None


def _map_rule(element: DOMElementNode, ignore_opacity: bool, config: TextExtractionConfig) -> bool | None:
	if not element.name:
		return False
	referrer = _find_usemap_referrer(element, element.name)
	return referrer is not None and is_shown(referrer, ignore_opacity, config)


def _area_rule(element: DOMElementNode, ignore_opacity: bool, config: TextExtractionConfig) -> bool | None:
	image_map = element.find_ancestor(lambda e: e.tag == 'map')
	return image_map is not None and is_shown(image_map, ignore_opacity, config)


def _input_rule(element: DOMElementNode, ignore_opacity: bool, config: TextExtractionConfig) -> bool | None:
	if element.type.lower() == 'hidden':
		return False
	return None


_KIND_RULES: dict[ElementKind, KindRule] = {
	ElementKind.TITLE: _title_rule,
	ElementKind.OPTION: _option_rule,
	ElementKind.OPTGROUP: _option_rule,
	ElementKind.MAP: _map_rule,
	ElementKind.AREA: _area_rule,
	ElementKind.INPUT: _input_rule,
}


def _is_displayed(element: DOMElementNode) -> bool:
	current: DOMElementNode | None = element
	while current is not None:
		if resolved_style(current, 'display') == 'none':
			return False
		current = current.parent_element
	return True


def _has_extent(element: DOMElementNode) -> bool:
	# Text anywhere in the subtree is enough; otherwise some element needs a real box
	if element.text_content.strip():
		return True
	stack = [element]
	while stack:
		current = stack.pop()
		if not get_bounding_box(current).is_empty:
			return True
		stack.extend(child for child in reversed(current.children) if isinstance(child, DOMElementNode))
	return False


def is_shown(node: DOMElementNode, ignore_opacity: bool = False, config: TextExtractionConfig = DEFAULT_CONFIG) -> bool:
	"""
	Determines if an element is visible to a user.

	Element kinds with special semantics (title, option/optgroup, map, area,
	hidden input) are decided by their own rule. Everything else must not be
	visibility:hidden, must not sit under display:none, and must have either
	text or a non-empty box somewhere in its subtree.

	Args:
	    node: DOMElementNode to check
	    ignore_opacity: skip the zero-opacity check (only applies with config.opacity_gate)
	    config: extraction configuration

	Returns:
	    bool: True if the element is shown, False otherwise

	Raises:
	    InvalidArgumentError: if node is not an element
	"""
	if not isinstance(node, DOMElementNode):
		raise InvalidArgumentError('is_shown', node)

	rule = _KIND_RULES.get(ElementKind.of(node))
	if rule is not None:
		verdict = rule(node, ignore_opacity, config)
		if verdict is not None:
			return verdict

	if resolved_style(node, 'visibility') == 'hidden':
		return False

	if not _is_displayed(node):
		return False

	if config.opacity_gate and not ignore_opacity and effective_opacity(node) == 0:
		return False

	return _has_extent(node)
