"""
Driver account services: virtual accounts (inbound), bank accounts
(outbound payouts) and wallets.
"""

import logging
import secrets
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ridepool.app.core.config import settings
from ridepool.app.core.exceptions import (
    ResourceNotFoundError, InvalidInputError, DependencyFailureError
)
from ridepool.app.db.transaction import atomic, lock_one
from ridepool.app.domain.driver_records import get_or_create_wallet
from ridepool.app.models.bank_account import BankAccount
from ridepool.app.models.enums import UserRole
from ridepool.app.models.user import User
from ridepool.app.models.virtual_account import VirtualAccount
from ridepool.app.models.wallet import Wallet

logger = logging.getLogger("ridepool.accounts")

ACCOUNT_NUMBER_ATTEMPTS = 5


def generate_account_number() -> str:
    """'SR' followed by 8 random digits."""
    return f"SR{secrets.randbelow(90_000_000) + 10_000_000}"


async def _get_driver(db: AsyncSession, driver_id: int) -> User:
    driver = await db.get(User, driver_id)
    if driver is None or driver.role != UserRole.DRIVER:
        raise ResourceNotFoundError("Driver", driver_id)
    return driver


class VirtualAccountService:

    @staticmethod
    async def get_by_driver(db: AsyncSession, driver_id: int) -> Optional[VirtualAccount]:
        return await db.scalar(
            select(VirtualAccount)
            .where(VirtualAccount.driver_id == driver_id)
            .execution_options(populate_existing=True)
        )

    @staticmethod
    async def get_by_account_number(db: AsyncSession, account_number: str) -> Optional[VirtualAccount]:
        return await db.scalar(
            select(VirtualAccount)
            .where(VirtualAccount.account_number == account_number)
            .execution_options(populate_existing=True)
        )

    @staticmethod
    async def get_or_create(db: AsyncSession, driver_id: int) -> VirtualAccount:
        """
        Return the driver's virtual account, issuing one on first use.

        A unique-constraint violation means either a concurrent request
        created the driver's account first (return that one) or the random
        number collided (try another).

        Raises:
            ResourceNotFoundError: If the user is not a driver
            DependencyFailureError: If no free account number was found
        """
        existing = await VirtualAccountService.get_by_driver(db, driver_id)
        if existing is not None:
            return existing

        driver = await _get_driver(db, driver_id)
        account_name = f"SpotRoute - {driver.name}"

        for attempt in range(1, ACCOUNT_NUMBER_ATTEMPTS + 1):
            account = VirtualAccount(
                driver_id=driver_id,
                account_number=generate_account_number(),
                bank_name=settings.virtual_account_bank_name,
                bank_code=settings.virtual_account_bank_code,
                account_name=account_name,
                is_active=True,
            )
            try:
                async with atomic(db):
                    db.add(account)
            except IntegrityError:
                existing = await VirtualAccountService.get_by_driver(db, driver_id)
                if existing is not None:
                    return existing
                logger.warning("Virtual account number collision for driver %s (attempt %s)", driver_id, attempt)
                continue

            logger.info("Virtual account %s issued to driver %s", account.account_number, driver_id)
            return account

        raise DependencyFailureError("Could not allocate a virtual account number")

    @staticmethod
    async def deactivate(db: AsyncSession, driver_id: int) -> VirtualAccount:
        """Stop accepting payments into the driver's virtual account."""
        async with atomic(db):
            account = await VirtualAccountService.get_by_driver(db, driver_id)
            if account is None:
                raise ResourceNotFoundError("Virtual account")
            account = await lock_one(db, VirtualAccount, account.id)
            account.is_active = False

        logger.info("Virtual account %s deactivated", account.account_number)
        return account


class BankAccountService:

    @staticmethod
    async def get_by_driver(db: AsyncSession, driver_id: int) -> Optional[BankAccount]:
        return await db.scalar(
            select(BankAccount)
            .where(BankAccount.driver_id == driver_id)
            .execution_options(populate_existing=True)
        )

    @staticmethod
    async def upsert(
        db: AsyncSession,
        driver_id: int,
        account_number: str,
        bank_name: str,
        bank_code: str,
        account_name: str
    ) -> BankAccount:
        """
        Create or replace the driver's payout bank account.

        Any change resets verification; payouts stay PENDING until an
        admin verifies the new details.
        """
        fields = {
            "account_number": (account_number or "").strip(),
            "bank_name": (bank_name or "").strip(),
            "bank_code": (bank_code or "").strip(),
            "account_name": (account_name or "").strip(),
        }
        missing = [k for k, v in fields.items() if not v]
        if missing:
            raise InvalidInputError("Bank account details are incomplete", details={"missing": missing})

        await _get_driver(db, driver_id)

        async with atomic(db):
            await lock_one(db, User, driver_id)
            account = await BankAccountService.get_by_driver(db, driver_id)
            if account is None:
                account = BankAccount(driver_id=driver_id, is_verified=False, **fields)
                db.add(account)
            else:
                for key, value in fields.items():
                    setattr(account, key, value)
                account.is_verified = False

        logger.info("Bank account for driver %s saved (unverified)", driver_id)
        return account

    @staticmethod
    async def verify(db: AsyncSession, driver_id: int) -> BankAccount:
        """Admin: mark the driver's bank account verified for payouts."""
        async with atomic(db):
            account = await BankAccountService.get_by_driver(db, driver_id)
            if account is None:
                raise ResourceNotFoundError("Bank account")
            account = await lock_one(db, BankAccount, account.id)
            account.is_verified = True

        logger.info("Bank account for driver %s verified", driver_id)
        return account


class WalletService:

    @staticmethod
    async def get_wallet(db: AsyncSession, driver_id: int) -> Wallet:
        """Driver's wallet, created empty on first access."""
        wallet = await db.scalar(select(Wallet).where(Wallet.driver_id == driver_id))
        if wallet is not None:
            return wallet

        await _get_driver(db, driver_id)
        async with atomic(db):
            await lock_one(db, User, driver_id)
            wallet = await get_or_create_wallet(db, driver_id)
        return wallet
