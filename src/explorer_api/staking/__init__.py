"""Stake account delegation and reward reconciliation."""

from explorer_api.staking.reconciler import StakeAccountReconciler, active_delegation

__all__ = ["StakeAccountReconciler", "active_delegation"]
