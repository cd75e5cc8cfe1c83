from dataclasses import dataclass, field

# Computed styles captured from DOMSnapshot; the visibility rules only read these
SNAPSHOT_COMPUTED_STYLES = [
	'display',
	'visibility',
	'opacity',
	'position',
]


@dataclass(frozen=True)
class TextExtractionConfig:
	"""Configuration for visibility checks and visible text extraction."""

	# display values that put an element on its own lines
	block_displays: frozenset[str] = frozenset({'block', 'inline-block'})
	# When set, an effective opacity of 0 hides an element unless the caller ignores opacity
	opacity_gate: bool = False
	computed_styles: list[str] = field(default_factory=lambda: list(SNAPSHOT_COMPUTED_STYLES))
	snapshot_timeout: float = 30.0
	iframe_timeout: float = 10.0
	cdp_call_timeout: float = 5.0
	max_iframe_depth: int = 3


DEFAULT_CONFIG = TextExtractionConfig()
