"""
Tests for the change feed and live collection snapshots.
"""
from unittest.mock import Mock

import pytest
from django.db import DatabaseError

from apps.cashier.models import PaymentTypeChoices
from apps.cashier.services import process_payment
from apps.clinical.models import Visit, VisitStatusChoices
from apps.clinical.services import complete_visit, create_visit, waiting_room
from apps.core.observability import metrics
from apps.realtime.feed import (
    OP_DELETE,
    OP_INSERT,
    OP_UPDATE,
    ChangeEvent,
    dispatch,
    publish,
    subscribe,
    subscriber_count,
)
from apps.realtime.snapshot import CollectionSnapshot


def _waiting_room_row(pk):
    return waiting_room().filter(id=pk).first()


@pytest.mark.django_db
class TestChangeFeed:

    def test_events_delivered_after_commit(self, django_capture_on_commit_callbacks, reception_ctx, patient, doctor):
        received = []
        subscribe('visit', received.append)

        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            visit, _n, _p = create_visit(reception_ctx, patient.id, doctor.id)
            assert received == []

        for callback in callbacks:
            callback()
        assert ChangeEvent('visit', OP_INSERT, str(visit.id)) in received

    def test_only_subscribed_table(self, django_capture_on_commit_callbacks, reception_ctx, waiting_visit):
        visits, payments = [], []
        subscribe('visit', visits.append)
        subscribe('payment', payments.append)

        with django_capture_on_commit_callbacks(execute=True):
            payment = process_payment(reception_ctx, PaymentTypeChoices.OTHER, amount='10')

        assert payments == [ChangeEvent('payment', OP_INSERT, str(payment.id))]
        assert visits == []

    def test_update_and_delete_ops(self, django_capture_on_commit_callbacks, make_patient):
        events = []
        subscribe('patient', events.append)

        with django_capture_on_commit_callbacks(execute=True):
            patient = make_patient()
            patient.phone = '0799999999'
            patient.save()
            pk = str(patient.pk)
            patient.delete()

        assert [e.op for e in events] == [OP_INSERT, OP_UPDATE, OP_DELETE]
        assert {e.pk for e in events} == {pk}

    def test_unsubscribe(self):
        callback = Mock()
        unsubscribe = subscribe('visit', callback)
        assert subscriber_count('visit') == 1

        unsubscribe()
        unsubscribe()

        dispatch(ChangeEvent('visit', OP_UPDATE, '1'))
        callback.assert_not_called()
        assert subscriber_count('visit') == 0

    def test_failing_subscriber_does_not_break_others(self):
        good = Mock()
        subscribe('visit', Mock(side_effect=RuntimeError('render failed')))
        subscribe('visit', good)
        before = metrics.exceptions_total.labels(
            exception_type='RuntimeError', location='realtime.dispatch'
        )._value.get()

        dispatch(ChangeEvent('visit', OP_UPDATE, '1'))

        good.assert_called_once()
        after = metrics.exceptions_total.labels(
            exception_type='RuntimeError', location='realtime.dispatch'
        )._value.get()
        assert after == before + 1

    def test_failing_subscriber_does_not_fail_the_write(self, django_capture_on_commit_callbacks,
                                                        reception_ctx, patient, doctor):
        subscribe('visit', Mock(side_effect=RuntimeError('boom')))

        with django_capture_on_commit_callbacks(execute=True):
            visit, _n, _p = create_visit(reception_ctx, patient.id, doctor.id)

        assert Visit.objects.filter(id=visit.id).exists()

    def test_publish_returns_event(self):
        event = publish('lab_request', OP_UPDATE, 42)

        assert event == ChangeEvent('lab_request', OP_UPDATE, '42')


@pytest.mark.django_db
class TestCollectionSnapshot:

    def test_refresh_loads_rows(self, reception_ctx, make_patient, doctor):
        visits = [create_visit(reception_ctx, make_patient().id, doctor.id)[0] for _ in range(2)]
        snapshot = CollectionSnapshot('waiting_room', order_by=lambda v: v.queue_number)

        assert snapshot.refresh(waiting_room) is True

        assert snapshot.loaded
        assert len(snapshot) == 2
        assert [v.id for v in snapshot.rows()] == [v.id for v in visits]
        assert visits[0].id in snapshot

    def test_failed_refresh_keeps_previous_rows(self, waiting_visit):
        snapshot = CollectionSnapshot('waiting_room')
        snapshot.refresh(waiting_room)

        assert snapshot.refresh(Mock(side_effect=DatabaseError('connection lost'))) is False

        assert len(snapshot) == 1
        assert snapshot.get(waiting_visit.id).id == waiting_visit.id

    def test_apply_adds_and_removes_rows(self, reception_ctx, doctor_ctx, make_patient, doctor):
        snapshot = CollectionSnapshot('waiting_room')
        snapshot.refresh(waiting_room)
        patient = make_patient()
        visit, _n, _p = create_visit(reception_ctx, patient.id, doctor.id)

        snapshot.apply(ChangeEvent('visit', OP_INSERT, str(visit.id)), _waiting_room_row)
        assert visit.id in snapshot

        complete_visit(doctor_ctx, patient.id, [{'name': 'Paracetamol'}])
        snapshot.apply(ChangeEvent('visit', OP_UPDATE, str(visit.id)), _waiting_room_row)
        assert visit.id not in snapshot

    def test_apply_patches_changed_row(self, waiting_visit):
        snapshot = CollectionSnapshot('unpaid_visits')
        snapshot.refresh(lambda: Visit.objects.values('id', 'status'))
        Visit.objects.filter(id=waiting_visit.id).update(status=VisitStatusChoices.LAB_READY)

        snapshot.apply(
            ChangeEvent('visit', OP_UPDATE, str(waiting_visit.id)),
            lambda pk: Visit.objects.values('id', 'status').get(id=pk),
        )

        assert snapshot.get(waiting_visit.id)['status'] == VisitStatusChoices.LAB_READY

    def test_delete_does_not_read(self, waiting_visit):
        snapshot = CollectionSnapshot('waiting_room')
        snapshot.refresh(waiting_room)
        fetch_one = Mock()

        assert snapshot.apply(ChangeEvent('visit', OP_DELETE, str(waiting_visit.id)), fetch_one) is True

        fetch_one.assert_not_called()
        assert len(snapshot) == 0

    def test_failed_row_read_keeps_snapshot(self, waiting_visit):
        snapshot = CollectionSnapshot('waiting_room')
        snapshot.refresh(waiting_room)

        applied = snapshot.apply(
            ChangeEvent('visit', OP_UPDATE, str(waiting_visit.id)),
            Mock(side_effect=DatabaseError('timeout')),
        )

        assert applied is False
        assert waiting_visit.id in snapshot

    def test_follow_tracks_commits(self, django_capture_on_commit_callbacks, reception_ctx, make_patient, doctor):
        snapshot = CollectionSnapshot('waiting_room')
        snapshot.refresh(waiting_room)
        unsubscribe = snapshot.follow('visit', _waiting_room_row)

        with django_capture_on_commit_callbacks(execute=True):
            visit, _n, _p = create_visit(reception_ctx, make_patient().id, doctor.id)

        assert visit.id in snapshot

        unsubscribe()
        assert subscriber_count('visit') == 0
