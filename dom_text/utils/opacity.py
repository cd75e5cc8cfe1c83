import math

from dom_text.utils.style import resolved_style
from dom_text.views import DOMElementNode


def _own_opacity(element: DOMElementNode) -> float:
	value = resolved_style(element, 'opacity')
	if not value:
		return 1.0
	try:
		opacity = float(value)
	except ValueError:
		return 1.0
	if not math.isfinite(opacity):
		return 1.0
	return min(max(opacity, 0.0), 1.0)


def effective_opacity(element: DOMElementNode) -> float:
	"""Own opacity multiplied by the opacity of every ancestor element."""
	opacity = 1.0
	current: DOMElementNode | None = element
	while current is not None:
		opacity *= _own_opacity(current)
		current = current.parent_element
	return opacity
