"""
Contract Client Core

Decision logic shared by every screen of the contract-management client:

- session: token expiry, single-flight refresh, forced logout
- signing: signature eligibility (pure)
- integrity: two-step integrity verification
- api: HTTP collaborators and identity normalization
- views: per-view controllers built on tagged operation states

DIRECTION OF DEPENDENCY:
========================
views -> (signing, integrity, api) -> session -> contracts
"""

__version__ = "0.1.0"


def build_client(*args, **kwargs):
    """
    Build a fully wired ContractClient.

    Usage:
        from contract_client import build_client
        async with build_client() as client:
            token = await client.session.ensure_valid()
    """
    from .facade import build_client as _build
    return _build(*args, **kwargs)
