"""Address history aggregation.

Provides request validation and the history cursor, the transaction
assembler and the address summary engine.
"""

from explorer_api.history.assembler import assemble, group_movements
from explorer_api.history.cursor import HistoryCursor, parse_date_from, validate_addresses
from explorer_api.history.summary import AddressSummaryEngine

__all__ = [
    "AddressSummaryEngine",
    "HistoryCursor",
    "assemble",
    "group_movements",
    "parse_date_from",
    "validate_addresses",
]
