"""Errors raised by the financials service."""
from typing import Dict, List


class DealValidationError(ValueError):
    """
    Raised when a save is attempted with required deal fields still empty.

    ``missing_fields`` maps each offending deal id to the labels of the
    fields it is missing. Nothing is persisted when this is raised.
    """

    def __init__(self, missing_fields: Dict[str, List[str]]):
        self.missing_fields = missing_fields
        count = sum(len(labels) for labels in missing_fields.values())
        super().__init__(
            f"{count} required field(s) missing across {len(missing_fields)} deal(s)"
        )
