"""Centralized SQLModel imports to ensure metadata is populated."""

from tokenvault.models import user as _user  # noqa: F401
from tokenvault.models import session_record as _session_record  # noqa: F401
