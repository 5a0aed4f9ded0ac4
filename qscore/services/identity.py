"""Sign-in gate for principals handed over by the OAuth provider."""

from __future__ import annotations

from typing import Optional

from qscore.config.settings import settings
from qscore.services.errors import PrincipalRejectedError
from qscore.services.types import TeamMember


def email_domain(email: str) -> str:
    _, _, domain = email.strip().rpartition("@")
    return domain.lower()


def is_allowed_email(email: Optional[str], allowed_domain: Optional[str] = None) -> bool:
    if not email or "@" not in email:
        return False
    return email_domain(email) == (allowed_domain or settings.ALLOWED_EMAIL_DOMAIN).lower()


def member_from_principal(
    email: Optional[str],
    name: Optional[str],
    avatar: Optional[str] = None,
    *,
    allowed_domain: Optional[str] = None,
) -> TeamMember:
    """Map an authenticated principal to a member record, or refuse it."""

    if not is_allowed_email(email, allowed_domain):
        raise PrincipalRejectedError("email domain is not allowed")
    member_id = email.strip().lower()
    display_name = (name or "").strip() or member_id.split("@", 1)[0]
    return TeamMember(id=member_id, name=display_name, avatar=avatar or None)
