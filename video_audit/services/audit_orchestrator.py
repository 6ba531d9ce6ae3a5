"""
Audit orchestrator - coordinates one brand audit end to end.
Validates the request, builds the prompt, calls the LLM and parses the reply.
"""
import logging
import time

from video_audit.services.request_builder import AuditRequest, build_messages
from video_audit.services.llm_client import call_completion, parse_audit_response

logger = logging.getLogger(__name__)


def run_audit(audit_request: AuditRequest) -> dict:
    """
    Run a single brand audit.

    Args:
        audit_request: The submitted platform, input mode, content and credential.

    Returns:
        The parsed audit result, exactly as the model returned it.

    Raises:
        AuditValidationError: If content or credential is missing (no call is made).
        CompletionError: If the completion endpoint fails.
        ResponseParseError: If the reply is not a JSON object.
    """
    audit_request.validate()

    logger.info(
        f"Starting brand audit: platform={audit_request.platform}, "
        f"mode={audit_request.input_mode}, {len(audit_request.content)} chars"
    )
    start_time = time.time()

    messages = build_messages(
        audit_request.platform,
        audit_request.input_mode,
        audit_request.content
    )
    raw = call_completion(messages, audit_request.credential)
    result = parse_audit_response(raw)

    duration = time.time() - start_time
    logger.info(
        f"Audit complete: platform={audit_request.platform}, action={result.get('action')}, "
        f"score={result.get('score')}, duration={duration:.2f}s"
    )

    return result
