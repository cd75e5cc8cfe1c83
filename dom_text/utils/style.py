import re

from dom_text.config import DEFAULT_CONFIG, TextExtractionConfig
from dom_text.views import DOMElementNode

_CAMEL_CASE = re.compile(r'(?<!^)([A-Z])')


def css_property_name(name: str) -> str:
	"""fontSize -> font-size; CSS names pass through unchanged"""
	return _CAMEL_CASE.sub(r'-\1', name.strip()).lower()


def resolved_style(element: DOMElementNode, property_name: str) -> str:
	"""
	Returns the cascaded value of a style property.

	The inline declaration wins over the computed snapshot. A value of
	'inherit' is resolved from the nearest ancestor element; an empty string
	means no element on the way to the root declares the property.
	"""
	name = css_property_name(property_name)
	current: DOMElementNode | None = element
	while current is not None:
		value = current.style.get(name) or current.computed_styles.get(name)
		if value != 'inherit':
			return str(value) if value is not None else ''
		current = current.parent_element
	return ''


def is_block_display(element: DOMElementNode, config: TextExtractionConfig = DEFAULT_CONFIG) -> bool:
	return resolved_style(element, 'display') in config.block_displays
