"""
Display helpers for the audit dashboard.
Purely cosmetic: none of these change the stored audit result.
"""
from typing import Any, Dict, Optional, Tuple

GOOD = "#00e676"
WARNING = "#ffd600"
BAD = "#ff1744"

DECISION_STYLES = {
    "Keep": {"bg": "#0d3d2e", "border": GOOD, "text": GOOD, "label": "✓ KEEP"},
    "Revise": {"bg": "#3d2f00", "border": WARNING, "text": WARNING, "label": "△ REVISE"},
    "Delete": {"bg": "#3d0d0d", "border": BAD, "text": BAD, "label": "✕ DELETE"},
}


def decision_style(action: Any) -> Dict[str, str]:
    """Colors and label for the Keep/Revise/Delete card; unknown actions look like Revise."""
    if isinstance(action, str) and action in DECISION_STYLES:
        return DECISION_STYLES[action]
    return DECISION_STYLES["Revise"]


def score_color(score: Any) -> str:
    """
    Three-band color for the brand score.

    >= 75 is good, >= 45 is a warning, anything lower (or non-numeric) is bad.
    """
    if isinstance(score, bool):
        return BAD
    try:
        value = float(score)
    except (TypeError, ValueError):
        return BAD
    if value >= 75:
        return GOOD
    if value >= 45:
        return WARNING
    return BAD


def hook_color(hook_strength: Any) -> str:
    if hook_strength == "Strong":
        return GOOD
    if hook_strength == "Moderate":
        return WARNING
    return BAD


def crm_color(crm_mention: Any) -> str:
    if crm_mention == "Yes":
        return GOOD
    if crm_mention == "Partially":
        return WARNING
    return BAD


def cta_style(cta_present: Any) -> Tuple[str, str]:
    """Label and color for the CTA line; any truthy value counts as present."""
    if cta_present:
        return "✓ Present", GOOD
    return "✕ Missing", BAD


def display_platform(result: Optional[dict], selected_platform: str) -> str:
    # Model-reported platform wins over the one picked in the form
    platform = (result or {}).get("platform") or selected_platform
    return str(platform).upper()


def register_template_helpers(app) -> None:
    """Expose the display helpers as Jinja globals."""
    app.jinja_env.globals.update(
        decision_style=decision_style,
        score_color=score_color,
        hook_color=hook_color,
        crm_color=crm_color,
        cta_style=cta_style,
        display_platform=display_platform
    )
