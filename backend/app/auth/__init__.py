from app.auth.jwks import AuthIdentity, KeySetFetchError, TokenValidationError, TokenValidator

__all__ = ["AuthIdentity", "KeySetFetchError", "TokenValidationError", "TokenValidator"]
