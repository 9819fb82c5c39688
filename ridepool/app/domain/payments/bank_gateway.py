"""
Bank transfer gateway.

Outbound transfers to drivers' bank accounts. The platform has no live
bank integration yet, so transfers are simulated and settle immediately.
"""

import logging
import time
import uuid
from decimal import Decimal

from ridepool.app.models.bank_account import BankAccount

logger = logging.getLogger("ridepool.payments.gateway")


class BankTransferGateway:

    @staticmethod
    async def transfer(bank_account: BankAccount, amount: Decimal, narration: str) -> str:
        """
        Send `amount` to the account.

        Returns:
            The gateway transfer reference
        """
        reference = f"TRF-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9].upper()}"
        logger.info(
            "Simulated transfer %s of %s to %s (%s): %s",
            reference, amount, bank_account.account_name, bank_account.account_number, narration
        )
        return reference
