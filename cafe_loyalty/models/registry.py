# Import every model so Base.metadata knows all tables (create_all / alembic).
from cafe_loyalty.models.loyalty_tier import LoyaltyTier  # noqa: F401
from cafe_loyalty.models.account import LoyaltyAccount  # noqa: F401
from cafe_loyalty.models.loyalty_transaction import LoyaltyTransaction  # noqa: F401
from cafe_loyalty.models.promotion import LoyaltyPromotion  # noqa: F401
from cafe_loyalty.models.reward import LoyaltyReward  # noqa: F401
from cafe_loyalty.models.redemption import LoyaltyRedemption  # noqa: F401
from cafe_loyalty.models.challenge import LoyaltyChallenge  # noqa: F401
from cafe_loyalty.models.challenge_progress import ChallengeProgress  # noqa: F401
from cafe_loyalty.models.program_settings import LoyaltyProgramSettings  # noqa: F401
