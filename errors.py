"""
Errors raised by export actions.

Layout problems (inconsistent band inches, a text run that never converges)
are recovered where they happen and only logged; nothing here covers them.
"""


class CardExportError(RuntimeError):
    """Base class for failures of an export action."""


class CaptureFailed(CardExportError):
    """Off-screen rendering or encoding failed. Not retried automatically."""


class ShareUnavailable(CardExportError):
    """No share target is available on this platform."""


class SaveUnavailable(CardExportError):
    """The save-to-library capability is missing and the share fallback failed too."""


class PermissionDenied(CardExportError):
    """The user declined the permission needed to save to the library."""
