"""
Request builder for WiBiz brand audits.
Turns the submitted form into the two-message conversation sent to the LLM.
"""
import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

PLATFORMS = ["TikTok", "Instagram", "Facebook", "YouTube", "X (Twitter)", "LinkedIn"]
DEFAULT_PLATFORM = "TikTok"

PLATFORM_ICONS = {
    "TikTok": "♪",
    "Instagram": "◈",
    "Facebook": "ƒ",
    "YouTube": "▶",
    "X (Twitter)": "𝕏",
    "LinkedIn": "in",
}

INPUT_MODES = ["script", "url"]
DEFAULT_INPUT_MODE = "script"

SYSTEM_PROMPT = '''You are a senior brand strategist for WiBiz — a Singapore-based AI automation and CRM solutions company. Your job is to audit video scripts or descriptions against WiBiz's brand standards.

WiBiz Brand Standards:
- Core Services: AI automation, CRM solutions, business process automation, lead generation
- Brand Voice: Professional yet approachable, forward-thinking, results-driven, Singapore market savvy
- Must Include: Clear value proposition, technology focus, CRM or automation mention
- Hook: First 3 seconds must grab attention
- CTA: Must have a clear call-to-action
- Platform Fit: Content must match platform's native style and audience

Return ONLY valid JSON (no markdown, no explanation) in this exact format:
{
  "platform": "detected or inputted platform",
  "brand_alignment": "Yes / No / Partially",
  "crm_mention": "Yes / No / Partially",
  "action": "Keep / Revise / Delete",
  "score": 0-100,
  "hook_strength": "Strong / Moderate / Weak",
  "cta_present": true or false,
  "verdict": "one sentence summary",
  "issues": ["issue 1", "issue 2"],
  "suggestions": ["suggestion 1", "suggestion 2"],
  "revised_angle": "A one paragraph suggested revision angle for the script"
}'''

URL_MESSAGE_TEMPLATE = "Please audit this video content for the {platform} platform.\nVideo URL: {content}"

SCRIPT_MESSAGE_TEMPLATE = "Please audit this video script/description for the {platform} platform:\n\n{content}"

MISSING_CONTENT_MESSAGE = "Please provide a video URL or script."
MISSING_CREDENTIAL_MESSAGE = "Please enter your Groq API key."


class AuditValidationError(ValueError):
    """Raised when a submitted audit is missing its content or credential."""
    pass


def normalize_platform(platform: Optional[str]) -> str:
    """Return a known platform name, falling back to the default."""
    if platform in PLATFORMS:
        return platform
    if platform:
        logger.warning(f"Unknown platform '{platform}', using {DEFAULT_PLATFORM}")
    return DEFAULT_PLATFORM


def normalize_input_mode(input_mode: Optional[str]) -> str:
    """Return 'script' or 'url'."""
    if input_mode in INPUT_MODES:
        return input_mode
    return DEFAULT_INPUT_MODE


class AuditRequest:
    """
    One brand audit submission.

    Built per submit and discarded once the completion call resolves.
    The credential is kept out of repr() so it never lands in a log line.
    """

    def __init__(self, platform: str, input_mode: str, content: str, credential: str):
        self.platform = normalize_platform(platform)
        self.input_mode = normalize_input_mode(input_mode)
        self.content = (content or "").strip()
        self.credential = (credential or "").strip()

    @classmethod
    def from_form(
        cls,
        platform: Optional[str],
        input_mode: Optional[str],
        script: Optional[str],
        video_url: Optional[str],
        api_key: Optional[str],
        default_api_key: Optional[str] = None
    ) -> "AuditRequest":
        """
        Build a request from the HTML form fields.

        Only the field matching the selected input mode is used as content.
        A blank api_key falls back to the server-side default key.
        """
        mode = normalize_input_mode(input_mode)
        content = video_url if mode == "url" else script
        credential = (api_key or "").strip() or (default_api_key or "")
        return cls(platform, mode, content, credential)

    def validate(self) -> None:
        """
        Check preconditions before any network call.

        Raises:
            AuditValidationError: If content or credential is empty.
        """
        if not self.content:
            raise AuditValidationError(MISSING_CONTENT_MESSAGE)
        if not self.credential:
            raise AuditValidationError(MISSING_CREDENTIAL_MESSAGE)

    def __repr__(self) -> str:
        return (
            f"AuditRequest(platform={self.platform!r}, input_mode={self.input_mode!r}, "
            f"content_length={len(self.content)})"
        )


def build_user_message(platform: str, input_mode: str, content: str) -> str:
    """Embed the script, or a one-line URL instruction, for the chosen platform."""
    template = URL_MESSAGE_TEMPLATE if input_mode == "url" else SCRIPT_MESSAGE_TEMPLATE
    return template.format(platform=platform, content=content)


def build_messages(platform: str, input_mode: str, content: str) -> List[Dict[str, str]]:
    """
    Build the two-message conversation for the completion endpoint.

    Args:
        platform: Target platform name.
        input_mode: 'script' or 'url'.
        content: Trimmed script text or video URL.

    Returns:
        System message (verbatim SYSTEM_PROMPT) followed by the user message.
    """
    return [
        {
            "role": "system",
            "content": SYSTEM_PROMPT
        },
        {
            "role": "user",
            "content": build_user_message(platform, input_mode, content)
        }
    ]
