from .networks import NETWORK_PROFILES, NetworkProfile
from .settings import (
    Settings,
    get_settings,
    settings_public_summary,
    validate_for_env,
)
from .redaction import redact_key_material, redact_secrets, safe_error_detail

__all__ = [
    "NETWORK_PROFILES",
    "NetworkProfile",
    "Settings",
    "get_settings",
    "settings_public_summary",
    "validate_for_env",
    "redact_key_material",
    "redact_secrets",
    "safe_error_detail",
]
