"""Customer loyalty points and tier engine."""

from motoshop_engine.loyalty.admin_service import LoyaltyAdminService
from motoshop_engine.loyalty.ledger_service import LoyaltyService
from motoshop_engine.loyalty.rule_store import RuleVersionStore
from motoshop_engine.loyalty.tier_evaluator import TierEvaluator, select_tier
from motoshop_engine.loyalty.types import (
    EarnResult,
    RedeemResult,
    RedemptionPreview,
    ReversalResult,
    TierEvaluationBasis,
    TransactionType,
)

__all__ = [
    "EarnResult",
    "LoyaltyAdminService",
    "LoyaltyService",
    "RedeemResult",
    "RedemptionPreview",
    "ReversalResult",
    "RuleVersionStore",
    "TierEvaluationBasis",
    "TierEvaluator",
    "TransactionType",
    "select_tier",
]
