"""
Correlate package: turn webhook payloads into Events that reference the issue a pull request is for.
"""

from .digest import digest_pr, digest_comment, DigestError
from .models import Event

__all__ = ["digest_pr", "digest_comment", "DigestError", "Event"]
