"""Transaction submission proxy."""

from explorer_api.submit.client import TxSubmitClient

__all__ = ["TxSubmitClient"]
