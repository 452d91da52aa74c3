"""
Cache Key Taxonomy

Standardized cache key construction so that no module concatenates key
strings by hand. Keys follow ``<entity>:<id>[:<suffix>]``; pattern keys end
in ``:*`` and are meant for ``invalidate_pattern``.

Example:
    CacheKeys.user("123")                  # "user:123"
    CacheKeys.user_organizations("123")    # "user:123:organizations"
    CacheKeys.organization_pattern("456")  # "organization:456:*"
"""

from typing import NewType, Optional
from urllib.parse import quote

CacheKey = NewType("CacheKey", str)

# Same unreserved set as JavaScript's encodeURIComponent
_EMAIL_SAFE_CHARS = "-_.!~*'()"


def hash_string(value: str) -> str:
    """Deterministic, non-cryptographic 32-bit hash (djb2-xor).

    Used only to bound the length of keys derived from unstable request
    context such as a cookie header.

    Returns:
        8 lower-case hex digits
    """
    h = 5381
    for char in value:
        h = ((h * 33) ^ ord(char)) & 0xFFFFFFFF
    return f"{h:08x}"


def _request_fingerprint(cookie_header: Optional[str], request_id: Optional[str]) -> str:
    source = cookie_header or ""
    if request_id:
        source = f"{request_id}|{source}"
    return hash_string(source)


def _encode_email_part(value: str) -> str:
    return quote(value.strip().lower(), safe=_EMAIL_SAFE_CHARS)


class CacheKeys:
    """Namespaced cache key constructors.

    Constructors never perform I/O, never raise and do not validate their
    inputs; callers must not pass empty identifiers.
    """

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @staticmethod
    def user(user_id: str) -> CacheKey:
        return CacheKey(f"user:{user_id}")

    @staticmethod
    def user_organizations(user_id: str) -> CacheKey:
        return CacheKey(f"user:{user_id}:organizations")

    @staticmethod
    def user_sessions(user_id: str) -> CacheKey:
        return CacheKey(f"user:{user_id}:sessions")

    @staticmethod
    def user_pattern(user_id: Optional[str] = None) -> CacheKey:
        """Pattern for one user's derived keys, or for every user key."""
        if user_id:
            return CacheKey(f"user:{user_id}:*")
        return CacheKey("user:*")

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    @staticmethod
    def organization(organization_id: str) -> CacheKey:
        return CacheKey(f"organization:{organization_id}")

    @staticmethod
    def organization_members(organization_id: str) -> CacheKey:
        return CacheKey(f"organization:{organization_id}:members")

    @staticmethod
    def organization_subscription(organization_id: str) -> CacheKey:
        return CacheKey(f"organization:{organization_id}:subscription")

    @staticmethod
    def organization_pattern(organization_id: Optional[str] = None) -> CacheKey:
        if organization_id:
            return CacheKey(f"organization:{organization_id}:*")
        return CacheKey("organization:*")

    # ------------------------------------------------------------------
    # Billing provider
    # ------------------------------------------------------------------

    @staticmethod
    def stripe_products() -> CacheKey:
        return CacheKey("stripe:products")

    @staticmethod
    def stripe_customer(customer_id: str) -> CacheKey:
        return CacheKey(f"stripe:customer:{customer_id}")

    @staticmethod
    def stripe_subscription(subscription_id: str) -> CacheKey:
        return CacheKey(f"stripe:subscription:{subscription_id}")

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    @staticmethod
    def user_activity(user_id: str, limit: int = 10) -> CacheKey:
        return CacheKey(f"activity:user:{user_id}:limit:{limit}")

    @staticmethod
    def organization_activity(organization_id: str, limit: int = 10) -> CacheKey:
        return CacheKey(f"activity:organization:{organization_id}:limit:{limit}")

    # ------------------------------------------------------------------
    # Rate limiting and sessions
    # ------------------------------------------------------------------

    @staticmethod
    def rate_limit(ip: str, endpoint: str) -> CacheKey:
        return CacheKey(f"ratelimit:{endpoint}:{ip}")

    @staticmethod
    def session(session_id: str) -> CacheKey:
        return CacheKey(f"session:{session_id}")

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    @staticmethod
    def user_notifications(user_id: str, limit: int = 20, offset: int = 0) -> CacheKey:
        return CacheKey(f"notifications:user:{user_id}:limit:{limit}:offset:{offset}")

    @staticmethod
    def user_unread_notifications(user_id: str) -> CacheKey:
        return CacheKey(f"notifications:user:{user_id}:unread")

    @staticmethod
    def user_notification_pattern(user_id: str) -> CacheKey:
        return CacheKey(f"notifications:user:{user_id}:*")

    # ------------------------------------------------------------------
    # Email idempotency
    # ------------------------------------------------------------------

    @staticmethod
    def email(template: str, recipient: str, context: Optional[str] = None) -> CacheKey:
        """Key marking an email as already sent.

        Components are trimmed, lower-cased and URL-encoded so that a
        recipient address containing ``:`` cannot shift the key layout.
        """
        base = f"email:{_encode_email_part(template)}:{_encode_email_part(recipient)}"
        if context:
            return CacheKey(f"{base}:{_encode_email_part(context)}")
        return CacheKey(base)

    # ------------------------------------------------------------------
    # Request-scoped server context
    # ------------------------------------------------------------------

    @staticmethod
    def server_session(cookie_header: Optional[str], request_id: Optional[str] = None) -> CacheKey:
        """Hydrated auth session for the caller identified by its cookies."""
        return CacheKey(f"server:session:{_request_fingerprint(cookie_header, request_id)}")

    @staticmethod
    def server_organization(
        cookie_header: Optional[str],
        user_id: str,
        request_id: Optional[str] = None,
    ) -> CacheKey:
        fingerprint = _request_fingerprint(cookie_header, request_id)
        return CacheKey(f"server:organization:{user_id}:{fingerprint}")

    @staticmethod
    def server_context(cookie_header: Optional[str], request_id: Optional[str] = None) -> CacheKey:
        return CacheKey(f"server:context:{_request_fingerprint(cookie_header, request_id)}")

    # ------------------------------------------------------------------
    # Generic
    # ------------------------------------------------------------------

    @staticmethod
    def custom(namespace: str, identifier: str) -> CacheKey:
        """Key for one-off cached values, e.g. ``custom("admin", "latest-statistics")``."""
        return CacheKey(f"{namespace}:{identifier}")

    @staticmethod
    def pattern(prefix: str) -> CacheKey:
        """Pattern matching every key derived from ``prefix``."""
        return CacheKey(f"{prefix}:*")
