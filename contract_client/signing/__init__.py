from .eligibility import (
    SigningOutcome,
    SigningAction,
    SigningDecision,
    evaluate,
    is_participant,
    find_user_signature,
)
