"""
Ingestion of location batches pushed by the CMX Location Push API.

A batch is parsed, its shared secret checked, and every probe that carries a
location fix is merged into the client store under the freshness rule in
`cmxpush.ingest.merge`.
"""

import hmac
import threading
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs

from pydantic import ValidationError

from cmxpush.config import Settings
from cmxpush.exceptions import AuthenticationFailure, MalformedPayload, ObservationSkipped
from cmxpush.ingest.merge import MergeAction, apply_probe, decide
from cmxpush.storage.dao import ClientStore
from cmxpush.utils.log import get_logger
from cmxpush.utils.validate import EventBatch, Probe

logger = get_logger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass
class IngestResult:
    """
    Tally of what one pushed batch did to the store.
    """
    authenticated: bool = True
    overwritten: int = 0
    evicted: int = 0
    unchanged: int = 0
    skipped: int = 0

    def record(self, action: MergeAction) -> None:
        match action:
            case MergeAction.OVERWRITE:
                self.overwritten += 1
            case MergeAction.DELETE_PLACEHOLDER:
                self.evicted += 1
            case MergeAction.NOOP:
                self.unchanged += 1


class EventIngestor:
    """
    Authenticates pushed batches and merges their probes into a ClientStore.
    """

    def __init__(self, store: ClientStore, settings: Settings) -> None:
        self.store = store
        self._secret = settings.secret
        self._rejected = 0
        self._rejected_lock = threading.Lock()

    @property
    def rejected_posts(self) -> int:
        """Number of batches dropped for carrying the wrong secret."""
        return self._rejected

    def parse(self, body: bytes | str, content_type: str | None = None) -> EventBatch:
        """
        Decode a pushed body into an EventBatch.

        The body is either the JSON document itself, or a urlencoded form whose
        `data` field holds it.

        Raises
        ------
        MalformedPayload
            If the body is not a JSON object carrying a string `secret`.
        """
        document: bytes | str = body
        if content_type and content_type.split(";")[0].strip().lower() == FORM_CONTENT_TYPE:
            try:
                text = body.decode("utf-8") if isinstance(body, bytes) else body
            except UnicodeDecodeError as exc:
                raise MalformedPayload("form body is not valid UTF-8") from exc
            fields = parse_qs(text)
            if not fields.get("data"):
                raise MalformedPayload("form body has no 'data' field")
            document = fields["data"][0]
        try:
            return EventBatch.model_validate_json(document)
        except ValidationError as exc:
            raise MalformedPayload(f"unparsable event batch: {exc.error_count()} error(s)") from exc

    def authenticate(self, batch: EventBatch) -> None:
        """
        Raises
        ------
        AuthenticationFailure
            If the batch secret is not exactly the configured one.
        """
        if not hmac.compare_digest(batch.secret.encode("utf-8"), self._secret.encode("utf-8")):
            raise AuthenticationFailure("batch secret does not match")

    def ingest(self, body: bytes | str, content_type: str | None = None) -> IngestResult:
        """
        Process one pushed body end to end.

        Malformed bodies raise MalformedPayload before anything is touched,
        except that `probing` is only inspected once the secret matches. A
        wrong secret is logged and counted, and the result comes back with
        `authenticated=False`; callers answer the provider the same way in both
        cases.
        """
        batch = self.parse(body, content_type)
        try:
            self.authenticate(batch)
        except AuthenticationFailure:
            with self._rejected_lock:
                self._rejected += 1
            logger.warning("got post with bad secret, batch dropped")
            return IngestResult(authenticated=False)
        if not isinstance(batch.probing, list):
            raise MalformedPayload("event batch has no probing list")

        result = IngestResult()
        for raw in batch.probing:
            try:
                probe = self._to_probe(raw)
            except ObservationSkipped as exc:
                result.skipped += 1
                logger.debug("skipping probe for %s: %s", exc.mac, exc.reason)
                continue
            result.record(self.merge(probe))
        logger.debug("batch done: %s", result)
        return result

    def merge(self, probe: Probe) -> MergeAction:
        """
        Apply one located probe to the store as a single per-MAC unit.
        """
        mac = probe.client_mac
        loc = probe.location
        logger.info(
            "client %s seen on ap %s with rssi %s on %s (%d) at (%s, %s)",
            mac, probe.ap_mac, probe.rssi, probe.last_seen,
            probe.last_seen_millis, loc.lat, loc.lng,
            extra={
                "mac": mac,
                "ap_mac": probe.ap_mac,
                "rssi": probe.rssi,
                "seen_millis": probe.last_seen_millis,
            },
        )
        with self.store.lock(mac):
            record = self.store.get_or_create(mac)
            action = decide(record.seen_millis, probe.last_seen_millis)
            if action is MergeAction.OVERWRITE:
                self.store.save(apply_probe(record, probe))
            elif action is MergeAction.DELETE_PLACEHOLDER:
                self.store.delete(mac)
                logger.info(
                    "dropped placeholder for %s: no usable timestamp", mac,
                    extra={"mac": mac, "action": action.value},
                )
        logger.debug(
            "%s -> %s (stored %d, incoming %d)",
            mac, action.value, record.seen_millis, probe.last_seen_millis,
            extra={"mac": mac, "action": action.value},
        )
        return action

    @staticmethod
    def _to_probe(raw: Any) -> Probe:
        mac = raw.get("client_mac") if isinstance(raw, dict) else None
        if isinstance(raw, dict) and raw.get("location") is None:
            raise ObservationSkipped("no location fix", mac)
        try:
            return Probe.model_validate(raw)
        except ValidationError as exc:
            raise ObservationSkipped(f"invalid probe: {exc.error_count()} error(s)", mac) from exc
