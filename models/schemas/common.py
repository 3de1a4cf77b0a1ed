PASSWORD_MIN_LENGTH = 12


def normalize_email(raw):
    """Canonical stored form of an email: surrounding whitespace stripped, lower-cased.

    Applied identically on register, login, forgot-password, check-email and
    third-party sign-in linking, so `A@x.com` and `a@x.com` are one account.
    """
    return raw.strip().lower() if isinstance(raw, str) else raw


def mask_email(email: str | None) -> str:
    """a***@x.com style masking for log lines."""
    if not email or "@" not in email:
        return "***"
    local, domain = email.split("@", 1)
    return f"{local[:1]}***@{domain}"


def mask_secret(value: str | None) -> str:
    if not value:
        return ""
    return value[:8] + "..."
