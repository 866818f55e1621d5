"""
API Package

HTTP collaborators and the payload-to-domain boundary.
"""

from .client import AuthApi, ContractApi
from .mapper import (
    IdentityNormalizer,
    PayloadMapper,
    MalformedPayload,
    map_refreshed_token,
    map_verification_result,
)
