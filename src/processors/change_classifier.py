from __future__ import annotations

from entity_graph.models import ChangeField, ChangeType

from .similarity import similarity

RETRACTION_MARKERS = ("retracted", "withdrawn", "removed", "deleted", "correction:")
CORRECTION_MARKERS = ("corrected", "updated", "fixed", "error", "correction")
CLARIFICATION_MARKERS = ("clarification", "clarified", "added context", "editor's note")

MAJOR_REWRITE_BELOW = 0.5
MINOR_EDIT_FROM = 0.8


def _newly_present(markers: tuple[str, ...], previous: str, new: str) -> bool:
    return any(marker in new and marker not in previous for marker in markers)


def classify_change(previous_value: str, new_value: str, field: ChangeField) -> ChangeType:
    """Classify an edit between two versions of an article field.

    Editorial markers that appear only in the new text decide first
    (retraction, then correction, then clarification). Otherwise the size of
    the rewrite decides: large rewrites are corrections, moderate ones are
    corrections for titles and updates elsewhere, small ones are updates.
    """
    previous = previous_value.lower()
    new = new_value.lower()

    if _newly_present(RETRACTION_MARKERS, previous, new):
        return "retraction"
    if _newly_present(CORRECTION_MARKERS, previous, new):
        return "correction"
    if _newly_present(CLARIFICATION_MARKERS, previous, new):
        return "clarification"

    score = similarity(previous_value, new_value)
    if score < MAJOR_REWRITE_BELOW:
        return "correction"
    if score < MINOR_EDIT_FROM:
        return "correction" if field == "title" else "update"
    return "update"
