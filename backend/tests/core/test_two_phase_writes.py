import logging

from sqlalchemy.exc import IntegrityError, OperationalError

from dental_clinic.services.outcome import Err, Ok, persist


class FakeSession:
    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.committed = False
        self.rolled_back = False

    def commit(self):
        if self.fail_with is not None:
            raise self.fail_with
        self.committed = True

    def rollback(self):
        self.rolled_back = True


def record(db, value):
    db.written = value


def test_successful_write_returns_tentative():
    db = FakeSession()
    outcome = persist(db, prior="old", tentative="new", write=record)
    assert outcome == Ok("new")
    assert db.committed
    assert db.written == "new"


def test_failed_write_rolls_back_to_prior(caplog):
    db = FakeSession(fail_with=OperationalError("UPDATE invoices", {}, Exception("db gone")))
    with caplog.at_level(logging.WARNING, logger="dental_clinic.writes"):
        outcome = persist(db, prior="old", tentative="new", write=record, label="payment")
    assert isinstance(outcome, Err)
    assert outcome.prior == "old"
    assert outcome.conflict is False
    assert db.rolled_back
    assert "payment failed" in caplog.text


def test_constraint_violation_is_a_conflict():
    db = FakeSession(fail_with=IntegrityError("INSERT INTO appointments", {}, Exception("unique")))
    outcome = persist(db, prior=None, tentative="booking", write=record)
    assert isinstance(outcome, Err)
    assert outcome.conflict is True
    assert outcome.prior is None
    assert db.rolled_back
