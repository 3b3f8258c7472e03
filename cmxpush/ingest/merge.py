# cmxpush/ingest/merge.py

"""
Freshness rule deciding what one probe does to the stored record for its client.
"""

from enum import Enum
from typing import Optional

from cmxpush.utils.validate import ClientRecord, Probe


class MergeAction(str, Enum):
    OVERWRITE = "overwrite"
    DELETE_PLACEHOLDER = "delete_placeholder"
    NOOP = "noop"


def decide(stored_millis: int, incoming_millis: Optional[int]) -> MergeAction:
    """
    Choose the effect of an observation on a stored record.

    Parameters
    ----------
    stored_millis
        `seen_millis` of the stored record; 0 marks a placeholder that has
        never received a positive timestamp.
    incoming_millis
        `last_seen_millis` of the observation. Missing or negative values
        compare as 0.

    Returns
    -------
    MergeAction
        OVERWRITE when the observation is strictly newer, DELETE_PLACEHOLDER
        when it is not and the record is still a placeholder, NOOP otherwise.
    """
    incoming = max(incoming_millis or 0, 0)
    if incoming > stored_millis:
        return MergeAction.OVERWRITE
    if stored_millis == 0:
        return MergeAction.DELETE_PLACEHOLDER
    return MergeAction.NOOP


def apply_probe(record: ClientRecord, probe: Probe) -> ClientRecord:
    """
    Return a copy of `record` carrying every mutable field from `probe`.
    """
    loc = probe.location
    return record.model_copy(
        update={
            "seen_at": probe.last_seen,
            "seen_millis": probe.last_seen_millis,
            "lat": loc.lat,
            "lng": loc.lng,
            "unc": loc.unc,
            "n_samples": loc.n_samples,
        }
    )
