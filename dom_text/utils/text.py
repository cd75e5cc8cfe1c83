import logging
import re

from dom_text.config import DEFAULT_CONFIG, TextExtractionConfig
from dom_text.errors import InvalidArgumentError
from dom_text.utils.style import is_block_display
from dom_text.utils.visible import is_shown
from dom_text.views import DOMElementNode, DOMNode, DOMTextNode

logger = logging.getLogger(__name__)

WHITESPACE_RUN = re.compile(r'[\s\xa0]+')

# Work stack actions
_ENTER = 0
_LEAVE = 1


class TextCollector:
	"""
	Collects the visible text below an element, line by line.

	Lines start out as a single empty line. <br> opens a new line, block
	elements open one before and after themselves when the current line has
	text, and text nodes append their whitespace-collapsed data when their
	parent element is shown.
	"""

	def __init__(self, config: TextExtractionConfig = DEFAULT_CONFIG):
		self.config = config
		self.lines: list[str] = ['']
		self._shown: dict[int, bool] = {}

	def _break_line(self) -> None:
		if self.lines[-1]:
			self.lines.append('')

	def _parent_shown(self, element: DOMElementNode) -> bool:
		key = id(element)
		if key not in self._shown:
			self._shown[key] = is_shown(element, ignore_opacity=True, config=self.config)
		return self._shown[key]

	def _append_text(self, node: DOMTextNode) -> None:
		parent = node.parent_element
		if parent is None or not self._parent_shown(parent):
			return
		text = WHITESPACE_RUN.sub(' ', node.text)
		line = self.lines.pop()
		if line.endswith(' ') and text.startswith(' '):
			text = text[1:]
		self.lines.append(line + text)

	def collect(self, root: DOMElementNode) -> list[str]:
		stack: list[tuple[int, DOMNode]] = [(_ENTER, root)]
		while stack:
			action, node = stack.pop()
			if action == _LEAVE:
				self._break_line()
				continue

			if isinstance(node, DOMTextNode):
				self._append_text(node)
				continue
			if not isinstance(node, DOMElementNode):
				continue

			if node.tag == 'br':
				self.lines.append('')
				continue

			if is_block_display(node, self.config):
				self._break_line()
				stack.append((_LEAVE, node))
			stack.extend((_ENTER, child) for child in reversed(node.children))
		return self.lines


def get_visible_text(element: DOMElementNode, config: TextExtractionConfig = DEFAULT_CONFIG) -> str:
	"""
	Returns the text of an element as a user would see it.

	Raises:
	    InvalidArgumentError: if element is not an element node
	"""
	if not isinstance(element, DOMElementNode):
		raise InvalidArgumentError('get_visible_text', element)

	lines = TextCollector(config).collect(element)
	logger.debug(f'Collected {len(lines)} lines of text from {element!r}')
	return '\n'.join(line.strip() for line in lines).strip()
