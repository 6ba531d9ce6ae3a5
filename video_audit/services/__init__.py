"""
Brand audit services package.
"""
from video_audit.services.request_builder import (
    AuditRequest,
    AuditValidationError,
    PLATFORMS,
    build_messages
)
from video_audit.services.llm_client import (
    CompletionError,
    ResponseParseError,
    call_completion,
    parse_audit_response
)
from video_audit.services.audit_orchestrator import run_audit

__all__ = [
    'AuditRequest',
    'AuditValidationError',
    'PLATFORMS',
    'build_messages',
    'CompletionError',
    'ResponseParseError',
    'call_completion',
    'parse_audit_response',
    'run_audit'
]
