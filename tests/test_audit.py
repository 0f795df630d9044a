"""Tests for the audit logger."""

from finance_tracker.audit import AuditLogger, create_correlation_id
from finance_tracker.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_without_sink(self):
        """Test that local-only logging succeeds."""
        assert AuditLogger().log(AuditEventBuilder.goal_deleted("g1")) is True

    def test_sink_receives_events(self):
        """Test that helper methods forward built events to the sink."""
        events = []
        audit_logger = AuditLogger(sink=events.append)
        correlation_id = create_correlation_id()

        audit_logger.log_goal_synced("g1", "200.00", "500.00", correlation_id=correlation_id)
        audit_logger.log_external_service_error("gemini", "timeout", correlation_id=correlation_id)

        assert [e.event_type for e in events] == [
            AuditEventType.GOAL_SYNCED,
            AuditEventType.EXTERNAL_SERVICE_ERROR,
        ]
        assert events[0].details == {"previous_amount": "200.00", "new_amount": "500.00"}
        assert events[1].severity == AuditSeverity.ERROR
        assert {e.correlation_id for e in events} == {correlation_id}

    def test_failing_sink_does_not_raise(self):
        """Test that a broken sink is reported, never raised."""
        def broken(event):
            raise RuntimeError("panel closed")

        assert AuditLogger(sink=broken).log(AuditEventBuilder.goal_deleted("g1")) is False

    def test_correlation_ids_are_unique(self):
        """Test correlation id generation."""
        assert create_correlation_id() != create_correlation_id()
