"""
Audit emitter for security-relevant events.

Recording is best-effort: fingerprinting, the public IP lookup and the write
itself may all fail, and none of it may break the business operation that
triggered the event. Failures are logged on the ``academy_admin.audit``
channel and surface as a None id.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from academy_admin.models import AuditAction, AuditEntityType, AuditLogEntry
from academy_admin.services.client_fingerprint import (
    ClientFingerprint, lookup_public_ip, mask_ip, parse_user_agent,
)

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger('academy_admin.audit')


@dataclass
class AuditEvent:
    """What happened, independent of who did it."""
    action: AuditAction
    entity_type: AuditEntityType
    entity_id: Optional[str] = None
    summary_key: Optional[str] = None
    summary_params: Optional[Dict[str, Any]] = None
    before_data: Optional[Dict[str, Any]] = None
    after_data: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    branch_id: Optional[str] = None


def _enum_value(enum_cls, value):
    """Coerce to the enum's value; unknown values raise ValueError."""
    if isinstance(value, enum_cls):
        return value.value
    return enum_cls(value).value


class AuditEmitter:
    """Builds audit entries and appends them through the tenant backend."""

    def __init__(self, backend, ip_lookup_url: Optional[str] = None, ip_lookup_timeout: float = 3):
        self.backend = backend
        self.ip_lookup_url = ip_lookup_url
        self.ip_lookup_timeout = ip_lookup_timeout

    def record(self, actor_role: str, event: AuditEvent, context=None) -> Optional[str]:
        """
        Append one audit entry. Never raises.

        Args:
            actor_role: Role of the real actor (also while impersonating)
            event: AuditEvent describing the action
            context: Optional AccessContext for actor, tenant and client data

        Returns:
            The new entry id, or None if anything failed
        """
        try:
            entry = self._build_entry(actor_role, event, context)
            entry_id = self.backend.append_audit_log(entry)
            logger.info(f"Audit: {entry['action']} {entry['entity_type']} by {actor_role} ({entry_id})")
            return entry_id
        except Exception as e:
            # Audit failures must not break business logic
            audit_logger.error(f"Failed to record audit event {event!r}: {e}")
            return None

    def _build_entry(self, actor_role, event, context) -> dict:
        actor = context.actor if context is not None else None
        user_agent = context.user_agent if context is not None else None
        fingerprint = self._fingerprint(user_agent)
        ip_address = self._client_ip(context)

        return {
            'actor_id': actor.actor_id if actor else None,
            'actor_role': actor_role,
            'tenant_id': context.effective_tenant_id if context is not None else None,
            'branch_id': event.branch_id or (actor.branch_id if actor else None),
            'action': _enum_value(AuditAction, event.action),
            'entity_type': _enum_value(AuditEntityType, event.entity_type),
            'entity_id': event.entity_id,
            'summary_key': event.summary_key,
            'summary_params': event.summary_params,
            'before_data': event.before_data,
            'after_data': event.after_data,
            'event_metadata': event.metadata,
            'ip_address': ip_address,
            'ip_masked': mask_ip(ip_address),
            'user_agent': user_agent[:500] if user_agent else None,
            'device_name': fingerprint.device_name,
            'os_name': fingerprint.os_name,
            'browser_name': fingerprint.browser_name,
            'is_mobile': fingerprint.is_mobile,
        }

    def _fingerprint(self, user_agent) -> ClientFingerprint:
        try:
            return parse_user_agent(user_agent)
        except Exception as e:
            audit_logger.warning(f"User agent parsing failed: {e}")
            return ClientFingerprint()

    def _client_ip(self, context) -> Optional[str]:
        if context is not None and context.client_ip:
            return context.client_ip
        if not self.ip_lookup_url:
            return None
        try:
            return lookup_public_ip(self.ip_lookup_url, self.ip_lookup_timeout)
        except Exception as e:
            audit_logger.warning(f"IP lookup failed: {e}")
            return None


def get_changed_fields(before: Optional[dict], after: Optional[dict]) -> List[str]:
    """
    Keys, over the union of both dicts, whose serialised values differ.

    A key missing on one side differs from any value on the other, None
    included. Returns [] when either side is None.
    """
    if before is None or after is None:
        return []

    missing = object()

    def serialise(value):
        if value is missing:
            return missing
        return json.dumps(value, sort_keys=True, default=str)

    changed = []
    for key in sorted(set(before) | set(after), key=str):
        if serialise(before.get(key, missing)) != serialise(after.get(key, missing)):
            changed.append(key)
    return changed


def impersonation_event(tenant_id: str, session_id: str, started: bool) -> AuditEvent:
    """Audit event for entering or leaving support mode."""
    return AuditEvent(
        action=AuditAction.CREATE if started else AuditAction.UPDATE,
        entity_type=AuditEntityType.AUTH,
        entity_id=session_id,
        summary_key='audit.impersonation.started' if started else 'audit.impersonation.ended',
        summary_params={'tenant_id': tenant_id},
        metadata={'impersonation_session_id': session_id, 'tenant_id': tenant_id},
    )


def list_audit_logs(
    db_session,
    tenant_id: str = None,
    actor_id: str = None,
    action: str = None,
    entity_type: str = None,
    limit: int = 100,
    offset: int = 0,
):
    """Read audit entries, newest first."""
    query = db_session.query(AuditLogEntry)
    if tenant_id:
        query = query.filter(AuditLogEntry.tenant_id == tenant_id)
    if actor_id:
        query = query.filter(AuditLogEntry.actor_id == actor_id)
    if action:
        query = query.filter(AuditLogEntry.action == action)
    if entity_type:
        query = query.filter(AuditLogEntry.entity_type == entity_type)
    return query.order_by(AuditLogEntry.created_at.desc()).offset(offset).limit(limit).all()


_emitter: Optional[AuditEmitter] = None


def init_audit(app, backend) -> AuditEmitter:
    """Initialize the audit emitter singleton."""
    global _emitter
    lookup_url = app.config.get('IP_LOOKUP_URL') if app.config.get('IP_LOOKUP_ENABLED') else None
    _emitter = AuditEmitter(backend, lookup_url, app.config.get('IP_LOOKUP_TIMEOUT', 3))
    app.extensions['audit'] = _emitter
    return _emitter


def get_emitter() -> AuditEmitter:
    """Get audit emitter instance."""
    if _emitter is None:
        raise RuntimeError("Audit emitter not initialized.")
    return _emitter


def record(actor_role: str, event: AuditEvent, context=None) -> Optional[str]:
    """Record through the application emitter. Never raises."""
    try:
        emitter = get_emitter()
    except RuntimeError as e:
        audit_logger.error(f"Audit event dropped: {e}")
        return None
    return emitter.record(actor_role, event, context)
