import pytest

from tillshift import create_app
from tillshift.services import reconciliation_service, shift_service
from tillshift.validation import MAX_AMOUNT_CENTS, parse_cents, require_identifier, optional_text
from tillshift.errors import InvalidArgumentError


class TestAppFactory:
    def test_rejects_negative_threshold(self):
        with pytest.raises(ValueError):
            create_app({'VARIANCE_THRESHOLD_CENTS': -1, 'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:'})

    def test_rejects_non_integer_threshold(self):
        with pytest.raises(ValueError):
            create_app({'VARIANCE_THRESHOLD_CENTS': 100.5, 'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:'})

    def test_registers_cli_groups(self, app):
        assert 'system' in app.cli.commands
        assert 'shifts' in app.cli.commands


class TestParseCents:
    @pytest.mark.parametrize("raw, cents", [(0, 0), (125000, 125000), ("42", 42), (" 7 ", 7)])
    def test_accepts_integer_cents(self, raw, cents):
        assert parse_cents(raw, "amount") == cents

    @pytest.mark.parametrize("raw", [1.0, "1.00", "1e3", "", "ten", True, [], -5, MAX_AMOUNT_CENTS + 1])
    def test_rejects(self, raw):
        with pytest.raises(InvalidArgumentError) as exc:
            parse_cents(raw, "amount", session_id=3)
        assert exc.value.field == "amount"
        assert exc.value.session_id == 3

    def test_zero_not_allowed_for_movements(self):
        with pytest.raises(InvalidArgumentError, match="positive"):
            parse_cents(0, "amount_cents", allow_zero=False)


def test_identifier_and_text_helpers():
    assert require_identifier(17, "operator_id") == "17"
    assert optional_text("   ", "reason") is None
    with pytest.raises(InvalidArgumentError):
        require_identifier("x" * 65, "operator_id")
    with pytest.raises(InvalidArgumentError):
        optional_text("y" * 256, "reason")


def test_cli_shifts_list_and_show(app, db_session):
    shift = shift_service.open_shift("u-1", "store-1", 100000)
    shift_service.add_cash_movement(shift.id, "CASH_DROP", 10000, "u-1", reason="Safe drop")
    runner = app.test_cli_runner()

    listed = runner.invoke(args=['shifts', 'list', '--location-id', 'store-1'])
    assert listed.exit_code == 0
    assert 'u-1' in listed.output
    assert 'OPEN' in listed.output

    shown = runner.invoke(args=['shifts', 'show', str(shift.id)])
    assert shown.exit_code == 0
    assert 'CASH_DROP' in shown.output
    assert 'Safe drop' in shown.output

    missing = runner.invoke(args=['shifts', 'show', '999'])
    assert missing.exit_code != 0
    assert 'Shift 999 not found' in missing.output


def test_cli_summary_and_review_queue(app, db_session, order_source):
    shift = shift_service.open_shift("u-1", "store-1", 100000)
    order_source.record_sale(shift.id, "CASH", 30000)
    runner = app.test_cli_runner()

    summary = runner.invoke(args=['shifts', 'summary', str(shift.id)])
    assert summary.exit_code == 0
    assert '$1,300.00' in summary.output

    empty = runner.invoke(args=['shifts', 'review-queue'])
    assert 'Review queue is empty.' in empty.output

    reconciliation_service.close_shift(shift.id, 0)
    queue = runner.invoke(args=['shifts', 'review-queue'])
    assert 'REVIEW' in queue.output
    assert '$-1,300.00' in queue.output
