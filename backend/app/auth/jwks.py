"""
Bearer token validation against a remote JSON Web Key Set.

The validator keeps the key set in memory and only goes to the network when
a token names a key that is not cached or when the cache has expired. A
refresh always replaces the whole key map; a failed refresh leaves the
previous map in place and rejects the token that triggered it.

Only asymmetric algorithms are accepted:
- RSA: RS256 / RS384 / RS512
- ECDSA: ES256 / ES384 / ES512
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
from jose import jwk, jwt
from jose.exceptions import JOSEError

logger = logging.getLogger(__name__)

RSA_ALGORITHMS = ("RS256", "RS384", "RS512")
EC_ALGORITHMS = ("ES256", "ES384", "ES512")
ALLOWED_ALGORITHMS = RSA_ALGORITHMS + EC_ALGORITHMS

EC_CURVE_ALGORITHMS = {"P-256": "ES256", "P-384": "ES384", "P-521": "ES512"}

# Claim names searched for identity hints, in priority order
METADATA_CLAIMS = ("user_metadata", "raw_user_meta_data")
USERNAME_CLAIMS = ("username", "preferred_username", "user_name")
DISPLAY_NAME_CLAIMS = ("display_name", "full_name", "name")


class TokenValidationError(Exception):
    """Raised when a bearer token cannot be trusted"""

    pass


class KeySetFetchError(TokenValidationError):
    """Raised when the key set cannot be fetched or contains no usable key"""

    pass


@dataclass
class AuthIdentity:
    """Trusted identity extracted from a verified token."""

    user_id: str
    email: str = ""
    username: str = ""
    display_name: str = ""
    claims: Dict[str, Any] = field(default_factory=dict)


# ============================================================================
# Claim extraction
# ============================================================================

ClaimStrategy = Callable[[Dict[str, Any]], Optional[str]]


def _first_string(source: Dict[str, Any], names: Tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = source.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def top_level_claim(names: Tuple[str, ...]) -> ClaimStrategy:
    def extract(claims: Dict[str, Any]) -> Optional[str]:
        return _first_string(claims, names)

    return extract


def nested_claim(container: str, names: Tuple[str, ...]) -> ClaimStrategy:
    def extract(claims: Dict[str, Any]) -> Optional[str]:
        nested = claims.get(container)
        if not isinstance(nested, dict):
            return None
        return _first_string(nested, names)

    return extract


def claim_strategies(names: Tuple[str, ...]) -> List[ClaimStrategy]:
    """Top-level claims first, then each metadata object in order."""
    return [top_level_claim(names)] + [nested_claim(container, names) for container in METADATA_CLAIMS]


USERNAME_STRATEGIES = claim_strategies(USERNAME_CLAIMS)
DISPLAY_NAME_STRATEGIES = claim_strategies(DISPLAY_NAME_CLAIMS)


def extract_claim(claims: Dict[str, Any], strategies: List[ClaimStrategy]) -> str:
    for strategy in strategies:
        value = strategy(claims)
        if value:
            return value
    return ""


def same_issuer(got: Any, expected: str) -> bool:
    """Exact match after trimming whitespace and trailing slashes; empty never matches."""

    def normalize(value: Any) -> str:
        if not isinstance(value, str):
            return ""
        return value.strip().rstrip("/")

    return normalize(got) != "" and normalize(got) == normalize(expected)


# ============================================================================
# Key set
# ============================================================================


def parse_jwk(raw: Any) -> Optional[Dict[str, Any]]:
    """
    Return the JWK if it is a usable RSA or EC public key, else None.

    Keys without a kid, with an unknown kty, missing members or that fail
    to construct are skipped rather than failing the whole set.
    """
    if not isinstance(raw, dict):
        return None
    kid = raw.get("kid")
    if not isinstance(kid, str) or not kid:
        return None

    kty = raw.get("kty")
    if kty == "RSA":
        if not raw.get("n") or not raw.get("e"):
            return None
        algorithm = "RS256"
    elif kty == "EC":
        algorithm = EC_CURVE_ALGORITHMS.get(raw.get("crv"))
        if not algorithm or not raw.get("x") or not raw.get("y"):
            return None
    else:
        return None

    try:
        jwk.construct(raw, algorithm)
    except (JOSEError, ValueError, TypeError) as e:
        logger.warning(f"Skipping unusable JWK kid={kid}: {e}")
        return None
    return dict(raw)


class KeyCache:
    """
    kid -> JWK map with one expiry for the whole set.

    The map is never mutated in place: replace() swaps in a new dict, so a
    snapshot handed to a reader stays consistent while a refresh runs.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._keys: Dict[str, Dict[str, Any]] = {}
        self._expires_at = 0.0

    def snapshot(self) -> Tuple[Dict[str, Dict[str, Any]], bool]:
        """Return (keys, fresh)."""
        with self._lock:
            return self._keys, time.monotonic() < self._expires_at

    def replace(self, keys: Dict[str, Dict[str, Any]], ttl_seconds: float) -> None:
        with self._lock:
            self._keys = keys
            self._expires_at = time.monotonic() + ttl_seconds

    def clear(self) -> None:
        with self._lock:
            self._keys = {}
            self._expires_at = 0.0


class TokenValidator:
    """Verifies bearer tokens against a cached remote key set."""

    def __init__(
        self,
        issuer: str,
        jwks_url: str,
        cache_ttl_seconds: float = 600,
        timeout_seconds: float = 5.0,
        http_client: Optional[httpx.Client] = None,
    ):
        self.issuer = issuer
        self.jwks_url = jwks_url
        self.cache_ttl_seconds = cache_ttl_seconds
        self._http = http_client or httpx.Client(timeout=timeout_seconds)
        self._cache = KeyCache()

    def close(self) -> None:
        self._http.close()

    def refresh(self) -> Dict[str, Dict[str, Any]]:
        """Fetch the full key set and replace the cache. Raises KeySetFetchError."""
        try:
            response = self._http.get(self.jwks_url)
        except httpx.HTTPError as e:
            logger.warning(f"JWKS request to {self.jwks_url} failed: {e}")
            raise KeySetFetchError(f"key set request failed: {e}") from e

        if response.status_code != 200:
            logger.warning(f"JWKS request to {self.jwks_url} returned {response.status_code}")
            raise KeySetFetchError(f"key set request returned {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise KeySetFetchError("key set response is not valid JSON") from e

        raw_keys = body.get("keys") if isinstance(body, dict) else None
        if not isinstance(raw_keys, list):
            raise KeySetFetchError("key set response has no keys array")

        keys: Dict[str, Dict[str, Any]] = {}
        for raw in raw_keys:
            parsed = parse_jwk(raw)
            if parsed is not None:
                keys[parsed["kid"]] = parsed
        if not keys:
            raise KeySetFetchError("key set contains no usable keys")

        self._cache.replace(keys, self.cache_ttl_seconds)
        logger.info(f"JWKS refreshed from {self.jwks_url}: {len(keys)} key(s)")
        return keys

    def _signing_key(self, kid: str) -> Dict[str, Any]:
        keys, fresh = self._cache.snapshot()

        if kid:
            if fresh and kid in keys:
                return keys[kid]
            keys = self.refresh()
            if kid not in keys:
                raise TokenValidationError(f"kid not found: {kid}")
            return keys[kid]

        # No kid: only unambiguous when the set holds exactly one key
        if fresh and len(keys) == 1:
            return next(iter(keys.values()))
        keys = self.refresh()
        if len(keys) != 1:
            raise TokenValidationError("token has no kid and the key set is ambiguous")
        return next(iter(keys.values()))

    def validate(self, token: str) -> AuthIdentity:
        """
        Verify a bearer token and extract its identity claims.

        Raises:
            TokenValidationError: malformed token, unsupported algorithm,
                unknown key, bad signature, expired token, issuer mismatch
                or missing subject
            KeySetFetchError: the key set was needed but could not be loaded
        """
        token = (token or "").strip()
        if not token:
            raise TokenValidationError("empty token")

        try:
            header = jwt.get_unverified_header(token)
        except JOSEError as e:
            raise TokenValidationError(f"malformed token: {e}") from e

        algorithm = header.get("alg")
        if algorithm not in ALLOWED_ALGORITHMS:
            raise TokenValidationError(f"unsupported signing algorithm: {algorithm}")

        kid = header.get("kid")
        key = self._signing_key(kid if isinstance(kid, str) else "")

        try:
            claims = jwt.decode(token, key, algorithms=[algorithm], options={"verify_aud": False})
        except JOSEError as e:
            raise TokenValidationError(f"invalid token: {e}") from e

        if not same_issuer(claims.get("iss"), self.issuer):
            raise TokenValidationError("invalid issuer")

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject.strip():
            raise TokenValidationError("token has no subject")

        email = claims.get("email")
        return AuthIdentity(
            user_id=subject.strip(),
            email=email.strip() if isinstance(email, str) else "",
            username=extract_claim(claims, USERNAME_STRATEGIES),
            display_name=extract_claim(claims, DISPLAY_NAME_STRATEGIES),
            claims=claims,
        )
