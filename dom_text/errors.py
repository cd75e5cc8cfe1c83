"""Custom exceptions."""


class InvalidArgumentError(ValueError):
	"""Raised when an operation is given something that does not refer to a DOM element."""

	def __init__(self, operation: str, argument: object, detail: str | None = None) -> None:
		self.operation = operation
		self.argument = argument
		self.detail = detail or f'must be of type Element, got {type(argument).__name__}'
		super().__init__(f'Argument to {operation} {self.detail}')
