# tests/compliance/test_triage_service.py
import asyncio
from uuid import uuid4

import pytest

from betguard.core.exceptions import AlertNotFoundError, AlertStateConflictError, InvalidInputError
from betguard.models.enums import AlertSeverity, AlertStatus, AlertType
from betguard.schemas.alert import AlertDraft, AlertFilter


def draft(alert_type=AlertType.LARGE_TRANSACTION, severity=AlertSeverity.HIGH, **metadata):
    return AlertDraft(alert_type=alert_type, severity=severity, description=f"{alert_type.value} detected", metadata=metadata)


@pytest.mark.asyncio
async def test_create_alerts_assigns_consecutive_sequences(triage_service):
    user_id = uuid4()

    first = await triage_service.create_alerts(user_id, [draft(), draft(AlertType.RAPID_DEPOSITS, AlertSeverity.MEDIUM)])
    second = await triage_service.create_alerts(user_id, [draft(AlertType.VELOCITY_CHECK, AlertSeverity.MEDIUM)])

    assert [a.sequence for a in first + second] == [1, 2, 3]
    assert all(a.status == AlertStatus.OPEN for a in first + second)
    assert first[0].audit_trail[0]["event"] == "created"
    assert first[0].audit_trail[0]["actor"] == "system"


@pytest.mark.asyncio
async def test_concurrent_creation_keeps_sequences_unique(triage_service):
    user_id = uuid4()

    batches = await asyncio.gather(*(triage_service.create_alerts(user_id, [draft()]) for _ in range(5)))

    sequences = sorted(alert.sequence for batch in batches for alert in batch)
    assert sequences == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_sequences_are_per_user(triage_service):
    a = await triage_service.create_alerts(uuid4(), [draft()])
    b = await triage_service.create_alerts(uuid4(), [draft()])
    assert a[0].sequence == b[0].sequence == 1


@pytest.mark.asyncio
async def test_empty_drafts_create_nothing(triage_service):
    assert await triage_service.create_alerts(uuid4(), []) == []


@pytest.mark.asyncio
async def test_assign_moves_open_alert_to_investigating(triage_service):
    [alert] = await triage_service.create_alerts(uuid4(), [draft()])

    assigned = await triage_service.assign(alert.id, "reviewer-1")

    assert assigned.status == AlertStatus.INVESTIGATING
    assert assigned.assigned_to == "reviewer-1"
    entry = assigned.audit_trail[-1]
    assert entry["event"] == "assigned"
    assert entry["details"]["from_status"] == "open"
    assert entry["details"]["to_status"] == "investigating"

    reassigned = await triage_service.assign(alert.id, "reviewer-2", actor="lead")
    assert reassigned.status == AlertStatus.INVESTIGATING
    assert reassigned.assigned_to == "reviewer-2"
    assert reassigned.audit_trail[-1]["actor"] == "lead"


@pytest.mark.asyncio
async def test_assign_requires_reviewer(triage_service):
    [alert] = await triage_service.create_alerts(uuid4(), [draft()])
    with pytest.raises(InvalidInputError):
        await triage_service.assign(alert.id, "   ")


@pytest.mark.asyncio
async def test_unknown_alert_raises_not_found(triage_service):
    with pytest.raises(AlertNotFoundError):
        await triage_service.assign(uuid4(), "reviewer-1")
    with pytest.raises(AlertNotFoundError):
        await triage_service.get_alert(uuid4())


@pytest.mark.asyncio
async def test_close_requires_notes_and_terminal_status(triage_service):
    [alert] = await triage_service.create_alerts(uuid4(), [draft()])

    with pytest.raises(InvalidInputError):
        await triage_service.update_status(alert.id, AlertStatus.RESOLVED, notes="  ")
    with pytest.raises(InvalidInputError):
        await triage_service.update_status(alert.id, AlertStatus.INVESTIGATING, notes="looking")

    closed = await triage_service.update_status(
        alert.id, AlertStatus.FALSE_POSITIVE, notes="known traveller", resolution="no action"
    )
    assert closed.status == AlertStatus.FALSE_POSITIVE
    assert closed.investigation_notes == "known traveller"
    assert closed.resolution == "no action"
    assert closed.resolved_at is not None
    assert closed.audit_trail[-1]["event"] == "status_changed"


@pytest.mark.asyncio
async def test_unknown_status_is_invalid_input(triage_service):
    [alert] = await triage_service.create_alerts(uuid4(), [draft()])

    with pytest.raises(InvalidInputError, match="Unknown alert status 'closed'"):
        await triage_service.update_status(alert.id, "closed", notes="done")

    unchanged = await triage_service.get_alert(alert.id)
    assert unchanged.status == AlertStatus.OPEN


@pytest.mark.asyncio
async def test_terminal_alert_rejects_further_changes(triage_service):
    [alert] = await triage_service.create_alerts(uuid4(), [draft()])
    await triage_service.update_status(alert.id, AlertStatus.RESOLVED, notes="refund confirmed")

    with pytest.raises(AlertStateConflictError):
        await triage_service.update_status(alert.id, AlertStatus.FALSE_POSITIVE, notes="again")
    with pytest.raises(AlertStateConflictError):
        await triage_service.assign(alert.id, "reviewer-1")
    with pytest.raises(AlertStateConflictError):
        await triage_service.escalate(alert.id, reason="late")

    stored = await triage_service.get_alert(alert.id)
    assert stored.status == AlertStatus.RESOLVED
    assert len(stored.audit_trail) == 2


@pytest.mark.asyncio
async def test_escalate_raises_severity_up_to_critical(triage_service):
    [alert] = await triage_service.create_alerts(uuid4(), [draft(severity=AlertSeverity.MEDIUM)])
    await triage_service.assign(alert.id, "reviewer-1")

    escalated = await triage_service.escalate(alert.id, reason="linked accounts", senior_reviewer="senior-1")
    assert escalated.severity == AlertSeverity.HIGH
    assert escalated.assigned_to == "senior-1"
    assert escalated.status == AlertStatus.INVESTIGATING
    assert escalated.investigation_notes == "Escalated: linked accounts"

    escalated = await triage_service.escalate(alert.id, reason="chargebacks")
    escalated = await triage_service.escalate(alert.id, reason="still open")
    assert escalated.severity == AlertSeverity.CRITICAL
    assert escalated.assigned_to == "senior-1"
    assert escalated.investigation_notes.endswith("Escalated: chargebacks\n\nEscalated: still open")
    assert escalated.audit_trail[-1]["details"]["from_severity"] == "critical"
    assert escalated.audit_trail[-1]["details"]["to_severity"] == "critical"


@pytest.mark.asyncio
async def test_escalate_validation(triage_service):
    [alert] = await triage_service.create_alerts(uuid4(), [draft()])
    with pytest.raises(InvalidInputError):
        await triage_service.escalate(alert.id, reason=" ")
    with pytest.raises(InvalidInputError):
        await triage_service.escalate(alert.id, reason="ok", senior_reviewer="  ")


@pytest.mark.asyncio
async def test_active_alerts_filters(triage_service):
    user_a, user_b = uuid4(), uuid4()
    a_alerts = await triage_service.create_alerts(
        user_a, [draft(AlertType.SUSPICIOUS_LOGIN), draft(AlertType.VELOCITY_CHECK, AlertSeverity.MEDIUM)]
    )
    await triage_service.create_alerts(user_b, [draft(AlertType.SUSPICIOUS_LOGIN)])
    await triage_service.update_status(a_alerts[0].id, AlertStatus.RESOLVED, notes="ok")

    everything = await triage_service.get_active_alerts()
    assert len(everything) == 2

    only_a = await triage_service.get_active_alerts(AlertFilter(user_id=user_a))
    assert [a.alert_type for a in only_a] == [AlertType.VELOCITY_CHECK]

    high = await triage_service.get_active_alerts(AlertFilter(severity=AlertSeverity.HIGH))
    assert [a.user_id for a in high] == [user_b]

    logins = await triage_service.get_active_alerts(AlertFilter(alert_type=AlertType.SUSPICIOUS_LOGIN, limit=1))
    assert len(logins) == 1


@pytest.mark.asyncio
async def test_last_alert_times(triage_service):
    user_id = uuid4()
    [alert] = await triage_service.create_alerts(user_id, [draft(AlertType.RAPID_DEPOSITS, AlertSeverity.MEDIUM)])

    times = await triage_service.last_alert_times(
        user_id, [AlertType.RAPID_DEPOSITS, AlertType.VELOCITY_CHECK], alert.triggered_at
    )

    assert times == {AlertType.RAPID_DEPOSITS: alert.triggered_at}
