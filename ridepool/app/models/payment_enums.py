"""
Payment ledger enumerations.
"""

import enum


class TransactionType(str, enum.Enum):
    """Ledger entry type enumeration."""
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"  # Rider money landed in a virtual account
    COMMISSION_DEDUCTED = "COMMISSION_DEDUCTED"  # Platform cut of a received payment
    DRIVER_PAYOUT = "DRIVER_PAYOUT"  # Transfer to the driver's bank account
    REFUND = "REFUND"


class TransactionStatus(str, enum.Enum):
    """Ledger entry status enumeration."""
    PENDING = "PENDING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    PROCESSING = "PROCESSING"


class PayoutPendingReason(str, enum.Enum):
    """Why a payout was recorded without moving money."""
    BANK_ACCOUNT_NOT_SETUP = "BANK_ACCOUNT_NOT_SETUP"
    BANK_ACCOUNT_NOT_VERIFIED = "BANK_ACCOUNT_NOT_VERIFIED"
