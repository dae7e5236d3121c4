"""Email normalization and masking."""


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


def _mask_part(part: str) -> str:
    if len(part) <= 1:
        return "*"
    if len(part) == 2:
        return part[0] + "*"
    return part[0] + "*" * (len(part) - 2) + part[-1]


def mask_email(email: str) -> str:
    """
    Redact an email for display to a caller who has not proven ownership.

    First and last character of the local part and of the first domain
    label stay visible; the remaining domain labels (the TLD) are kept.

    >>> mask_email("maria.lopez@example.com")
    'm*********z@e*****e.com'
    """
    local, sep, domain = email.partition("@")
    if not sep:
        return _mask_part(email)
    label, dot, rest = domain.partition(".")
    return f"{_mask_part(local)}@{_mask_part(label)}{dot}{rest}"
