"""Stake account reconciler.

Resolves a staking address into its delegation and reward state:
current pool, stake key status, lifetime rewards and the projected
payout schedule for the epochs currently in the reward pipeline.

Rewards lag delegation by a fixed number of epochs. With a delay of 3,
the stake snapshot taken for epoch E-3 is what gets paid while epoch E
runs, so the pipeline at any moment covers epochs E-3 through E.
"""

from __future__ import annotations

from bisect import bisect_right
from datetime import timedelta

from explorer_api.config import StakingSettings
from explorer_api.exceptions import InvalidRequestError
from explorer_api.gateway.base import ChainGateway
from explorer_api.logging import get_logger
from explorer_api.models import (
    Amount,
    DelegationEpoch,
    DelegationEvent,
    PoolRef,
    RewardProjection,
    StakeAccount,
)

logger = get_logger(__name__)

REWARD_DATE_FORMAT = "%d.%m.%Y %H:%M"


def active_delegation(
    history: list[DelegationEpoch], rewarded_epoch: int
) -> DelegationEpoch | None:
    """Delegation in force for rewarded_epoch, with its epoch clamped up to it.

    Walks the (epoch ascending) history backward to the latest entry at or
    before rewarded_epoch. Returns None if every entry is later.
    """
    for entry in reversed(history):
        if entry.epoch <= rewarded_epoch:
            return DelegationEpoch(
                epoch=max(entry.epoch, rewarded_epoch),
                pool_hash_id=entry.pool_hash_id,
                pool_hash=entry.pool_hash,
            )
    return None


class StakeAccountReconciler:
    """Resolves delegation, reward totals and reward schedules.

    Queries run strictly in order (account id, then everything keyed by
    it). Nothing is cached between calls: account ids are only meaningful
    within one request.

    Args:
        gateway: Chain database gateway.
        settings: Reward delay and epoch calendar anchor.
    """

    def __init__(self, gateway: ChainGateway, settings: StakingSettings) -> None:
        self._gateway = gateway
        self._settings = settings

    async def resolve_account(self, stake_address: str) -> int | None:
        """Internal id for a staking address, or None if it was never seen."""
        if not stake_address:
            raise InvalidRequestError("Account is empty.")
        return await self._gateway.resolve_stake_account(stake_address)

    async def current_delegation(self, account_id: int) -> PoolRef | None:
        """Pool of the latest delegation; None if the pool has since retired."""
        pool = await self._gateway.current_delegation_target(account_id)
        if pool is None:
            logger.debug("no_active_delegation", account_id=account_id)
        return pool

    async def total_rewards(self, account_id: int) -> Amount:
        """Exact sum of every reward and reserve payout to the account."""
        ledger = await self._gateway.reward_ledger(account_id)
        return Amount.total(entry.amount for entry in ledger)

    def reward_date(self, epoch: int) -> str:
        """UTC payout date for epoch, extrapolated from the calendar anchor."""
        offset = timedelta(
            days=(epoch - self._settings.anchor_epoch) * self._settings.epoch_length_days
        )
        return f"{(self._settings.anchor_date + offset).strftime(REWARD_DATE_FORMAT)} UTC"

    async def next_reward_schedule(
        self, account_id: int, current_epoch: int
    ) -> list[RewardProjection]:
        """One projection per epoch from current_epoch - delay to current_epoch.

        Each epoch is mapped to the pool of the delegation entry at that
        epoch, or carried forward from the nearest earlier entry. Epochs
        with no earlier entry at all have no pool yet.
        """
        delay = self._settings.reward_delay_epochs
        rewarded_epoch = current_epoch - delay
        window = range(rewarded_epoch, rewarded_epoch + delay + 1)

        history = sorted(
            await self._gateway.delegation_history(account_id),
            key=lambda entry: entry.epoch,
        )
        if not history:
            return [
                RewardProjection(for_epoch=epoch, reward_date=self.reward_date(epoch))
                for epoch in window
            ]

        # The epoch being paid out now is backed by the delegation active at
        # its snapshot; later epochs in the window carry forward from there
        active = active_delegation(history, rewarded_epoch)
        logger.debug(
            "reward_schedule_resolved",
            account_id=account_id,
            rewarded_epoch=rewarded_epoch,
            active_epoch=active.epoch if active else None,
            active_pool=active.pool_hash if active else None,
        )

        projections = [
            RewardProjection(
                for_epoch=rewarded_epoch,
                reward_date=self.reward_date(rewarded_epoch),
                pool_hash=active.pool_hash if active else None,
            )
        ]
        epochs = [entry.epoch for entry in history]
        for epoch in window[1:]:
            position = bisect_right(epochs, epoch) - 1
            pool_hash = history[position].pool_hash if position >= 0 else None
            projections.append(
                RewardProjection(
                    for_epoch=epoch,
                    reward_date=self.reward_date(epoch),
                    pool_hash=pool_hash,
                )
            )
        return projections

    async def account_info(self, stake_address: str) -> StakeAccount:
        """Full delegation and reward state for a staking address.

        An address never seen on chain yields a default-valued account,
        not an error.
        """
        account_id = await self.resolve_account(stake_address)
        current_epoch = await self._gateway.current_epoch()
        if account_id is None:
            logger.debug("stake_account_not_found", stake_address=stake_address)
            return StakeAccount(staking_address=stake_address, current_epoch=current_epoch)

        delegation = await self.current_delegation(account_id)
        has_active_key = await self._gateway.has_active_staking_key(account_id)
        rewards = await self.total_rewards(account_id)
        schedule = await self.next_reward_schedule(account_id, current_epoch)

        logger.debug(
            "account_info_calculated",
            account_id=account_id,
            current_epoch=current_epoch,
            delegated=delegation is not None,
        )
        return StakeAccount(
            staking_address=stake_address,
            current_epoch=current_epoch,
            account_internal_id=account_id,
            current_delegation_target=delegation,
            has_active_key=has_active_key,
            total_rewards=rewards,
            next_reward_schedule=schedule,
        )

    async def stake_pools(self) -> list[PoolRef]:
        """All pools that are not retired."""
        return await self._gateway.stake_pools()

    async def delegation_events(
        self, stake_address: str, limit: int | None = None
    ) -> list[DelegationEvent]:
        """Delegation certificates of the account, newest first.

        An address never seen on chain has no delegations.
        """
        account_id = await self.resolve_account(stake_address)
        if account_id is None:
            return []
        return await self._gateway.delegations(account_id, limit=limit)
