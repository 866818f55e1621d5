from .verifier import IntegrityVerifier, DEFAULT_FAILURE_MESSAGE
