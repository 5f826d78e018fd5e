"""
Stage transition rules.

Statuses form a single line; a stage operation is accepted from its entry
status or any status after it (forward-closed). That lets a user step back
and regenerate from any point already reached.

Pipeline flow:
    draft → analyzed → script_review ⇄ script_approved →
    storyboard_review ⇄ storyboard_approved →
    assets_review ⇄ assets_approved → rendering → ready
"""

from storyreel.errors import InvalidStatusError, ValidationError
from storyreel.models import STAGE_ORDER, ProjectStatus, Stage


S = ProjectStatus

STATUS_SEQUENCE = [
    S.DRAFT,
    S.ANALYZED,
    S.SCRIPT_REVIEW,
    S.SCRIPT_APPROVED,
    S.STORYBOARD_REVIEW,
    S.STORYBOARD_APPROVED,
    S.ASSETS_REVIEW,
    S.ASSETS_APPROVED,
    S.RENDERING,
    S.READY,
]

GENERATABLE_STAGES = (Stage.ANALYSIS, Stage.SCRIPT, Stage.STORYBOARD, Stage.ASSETS)
APPROVABLE_STAGES = (Stage.SCRIPT, Stage.STORYBOARD, Stage.ASSETS)

# Canonical status from which a stage is first generated
ENTRY_STATUS = {
    Stage.ANALYSIS: S.DRAFT,
    Stage.SCRIPT: S.ANALYZED,
    Stage.STORYBOARD: S.SCRIPT_APPROVED,
    Stage.ASSETS: S.STORYBOARD_APPROVED,
}

# Status written after a successful generate
GENERATED_STATUS = {
    Stage.ANALYSIS: S.ANALYZED,
    Stage.SCRIPT: S.SCRIPT_REVIEW,
    Stage.STORYBOARD: S.STORYBOARD_REVIEW,
    Stage.ASSETS: S.ASSETS_REVIEW,
}

REVIEW_STATUS = {
    Stage.SCRIPT: S.SCRIPT_REVIEW,
    Stage.STORYBOARD: S.STORYBOARD_REVIEW,
    Stage.ASSETS: S.ASSETS_REVIEW,
}

APPROVED_STATUS = {
    Stage.SCRIPT: S.SCRIPT_APPROVED,
    Stage.STORYBOARD: S.STORYBOARD_APPROVED,
    Stage.ASSETS: S.ASSETS_APPROVED,
}

# One checkpoint back: the status from which the rejected stage is regenerated
REJECTED_STATUS = {
    Stage.SCRIPT: S.ANALYZED,
    Stage.STORYBOARD: S.SCRIPT_APPROVED,
    Stage.ASSETS: S.STORYBOARD_APPROVED,
}

RENDER_STATUS = S.ASSETS_APPROVED


def rank(status: ProjectStatus) -> int:
    """Position of a status on the pipeline line (-1 for ``failed``)."""
    try:
        return STATUS_SEQUENCE.index(status)
    except ValueError:
        return -1


def at_or_after(start: ProjectStatus) -> list[ProjectStatus]:
    """Forward-closed acceptance set starting at ``start``."""
    return STATUS_SEQUENCE[rank(start):]


def generate_accepts(stage: Stage) -> list[ProjectStatus]:
    """Statuses from which ``stage`` may be (re)generated."""
    return at_or_after(ENTRY_STATUS[stage])


def approve_accepts(stage: Stage) -> list[ProjectStatus]:
    """Statuses from which ``stage`` may be approved or rejected."""
    return at_or_after(REVIEW_STATUS[stage])


def downstream_of(stage: Stage) -> list[Stage]:
    """Stages after ``stage`` in pipeline order."""
    return STAGE_ORDER[STAGE_ORDER.index(stage) + 1:]


def parse_stage(value: str | Stage, allowed: tuple[Stage, ...]) -> Stage:
    """Parse a stage name, rejecting stages the operation does not support."""
    try:
        stage = Stage(value)
    except ValueError:
        raise ValidationError(f"Unknown stage '{value}'")
    if stage not in allowed:
        names = ", ".join(s.value for s in allowed)
        raise ValidationError(f"Stage '{stage.value}' not supported here. Must be one of: {names}")
    return stage


def require_status(
    current: ProjectStatus,
    accepted: list[ProjectStatus],
    action: str,
) -> None:
    """Raise InvalidStatusError unless ``current`` is accepted."""
    if current not in accepted:
        names = ", ".join(s.value for s in accepted)
        raise InvalidStatusError(
            f"Cannot {action}. Video status is '{current.value}' but must be one of: {names}"
        )
