"""privacy-gate — PII gating and privacy-tier routing for LLM chat."""

from .patterns import detect_pii
from .redactor import sanitize_text, sanitize_messages, restore_pii, merge_placeholder_maps
from .vault import PlaceholderVault
from .router import (
    route_for, process_messages_for_privacy, restore_response_pii,
    CredentialPool, PrivacyRoutedResult,
)
from .middleware import PrivacyMiddleware
from .streaming import StreamingRestorer
from .encryption import EncryptionSession, EncryptionError
from .config import create_middleware, load_config, load_from_yaml
from .types import (
    PIIType, PrivacyTier, PrivacyRoute, Detection, Position,
    SanitizationResult, MessageSanitizationResult,
)

__all__ = [
    "detect_pii",
    "sanitize_text", "sanitize_messages", "restore_pii", "merge_placeholder_maps",
    "PlaceholderVault",
    "route_for", "process_messages_for_privacy", "restore_response_pii",
    "CredentialPool", "PrivacyRoutedResult",
    "PrivacyMiddleware",
    "StreamingRestorer",
    "EncryptionSession", "EncryptionError",
    "create_middleware", "load_config", "load_from_yaml",
    "PIIType", "PrivacyTier", "PrivacyRoute", "Detection", "Position",
    "SanitizationResult", "MessageSanitizationResult",
]
__version__ = "0.1.0"
