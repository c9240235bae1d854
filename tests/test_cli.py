"""End-to-end tests for the taxlot command line."""

import io
import logging
from decimal import Decimal

import pytest

from taxlot.cli.main import EXIT_FAILURE, EXIT_SUCCESS, main, process_operations, run
from taxlot.config.validator import ConfigValidator
from taxlot.lots import InsufficientQuantity, SelectionPolicy


def lines(*rows: str) -> io.StringIO:
    return io.StringIO("".join(f"{row}\n" for row in rows))


@pytest.fixture
def output():
    return io.StringIO()


class TestRun:
    """Tests for the run entry point."""

    def test_fifo_partial_sale(self, output):
        code = run(
            "fifo",
            lines("2021-01-01,buy,10000.00,1.00000000", "2021-02-01,sell,20000.00,0.50000000"),
            output,
        )

        assert code == EXIT_SUCCESS
        assert output.getvalue() == "1,2021-01-01,10000.00,0.50000000\n"

    def test_hifo_sells_highest_price_first(self, output):
        code = run(
            "hifo",
            lines(
                "2021-01-01,buy,10000.00,1.00000000",
                "2021-01-02,buy,20000.00,1.00000000",
                "2021-02-01,sell,20000.00,1.50000000",
            ),
            output,
        )

        assert code == EXIT_SUCCESS
        assert output.getvalue() == "1,2021-01-01,10000.00,0.50000000\n"

    def test_invalid_action_fails(self, output):
        code = run(
            "fifo",
            lines("2021-01-01,invalid,10000.00,1.00000000", "2021-02-01,sell,20000.00,0.50000000"),
            output,
        )

        assert code == EXIT_FAILURE
        assert output.getvalue() == ""

    def test_invalid_quantity_fails(self, output):
        code = run(
            "fifo",
            lines("2021-01-01,buy,10000.00,1.00000000", "2021-02-01,sell,20000.00,0.5000asas"),
            output,
        )

        assert code == EXIT_FAILURE
        assert output.getvalue() == ""

    def test_oversell_fails_without_output(self, output):
        code = run(
            "fifo",
            lines("2021-01-01,buy,10000.00,5", "2021-02-01,sell,20000.00,100"),
            output,
        )

        assert code == EXIT_FAILURE
        assert output.getvalue() == ""

    def test_zero_quantity_buy_fails(self, output):
        code = run("fifo", lines("2021-01-01,buy,10000.00,0"), output)

        assert code == EXIT_FAILURE
        assert output.getvalue() == ""

    def test_huge_buy_price_fails_without_output(self, output):
        code = run(
            "fifo",
            lines("2021-01-01,buy,1,1", "2021-01-02,buy,1e2000000,1"),
            output,
        )

        assert code == EXIT_FAILURE
        assert output.getvalue() == ""

    def test_huge_sell_price_fails_without_output(self, output):
        code = run(
            "fifo",
            lines("2021-01-01,buy,1,10", "2021-01-02,sell,1e999999,10"),
            output,
        )

        assert code == EXIT_FAILURE
        assert output.getvalue() == ""

    def test_negative_zero_price_prints_unsigned(self, output):
        code = run("fifo", lines("2021-01-01,buy,-0,1"), output)

        assert code == EXIT_SUCCESS
        assert output.getvalue() == "1,2021-01-01,0.00,1.00000000\n"

    def test_unknown_policy_fails_before_reading_input(self, output):
        stream = lines("2021-01-01,buy,10000.00,1")

        code = run("lifo", stream, output)

        assert code == EXIT_FAILURE
        assert stream.tell() == 0
        assert output.getvalue() == ""

    def test_empty_input_succeeds(self, output):
        assert run("hifo", io.StringIO(""), output) == EXIT_SUCCESS
        assert output.getvalue() == ""

    def test_output_settings_are_applied(self, output):
        settings = ConfigValidator().apply_defaults({
            "output": {"include_lot_id": False, "quantity_places": 2},
        })

        code = run("fifo", lines("2021-01-01,buy,10000,1"), output, settings)

        assert code == EXIT_SUCCESS
        assert output.getvalue() == "2021-01-01,10000.00,1.00\n"

    def test_merged_buys_output_weighted_price(self, output):
        code = run(
            "fifo",
            lines("2021-01-01,buy,10000.00,1", "2021-01-01,buy,20000.00,3"),
            output,
        )

        assert code == EXIT_SUCCESS
        assert output.getvalue() == "1,2021-01-01,17500.00,4.00000000\n"

    def test_rejection_is_logged_with_line_number(self, output, caplog):
        with caplog.at_level(logging.ERROR, logger="taxlot"):
            run(
                "fifo",
                lines("2021-01-01,buy,1,5", "2021-02-01,sell,1,100"),
                output,
            )

        record = caplog.records[-1]
        assert record.event_type == "rejected"
        assert record.error_type == "InsufficientQuantity"
        assert record.line_number == 2
        assert "line 2:" in record.getMessage()


class TestProcessOperations:
    """Tests for applying a stream to a collection."""

    def test_returns_collection(self):
        collection = process_operations(
            SelectionPolicy.HIFO,
            ["2021-01-01,buy,10,1", "2021-01-02,buy,20,1", "2021-01-03,sell,5,1"],
        )

        assert [lot.date.day for lot in collection] == [1]
        assert collection.total_quantity == Decimal("1")

    def test_oversell_leaves_error_line_number(self):
        with pytest.raises(InsufficientQuantity) as exc_info:
            process_operations(
                SelectionPolicy.FIFO,
                ["2021-01-01,buy,10,1", "2021-01-02,sell,5,2"],
            )

        assert exc_info.value.line_number == 2

    def test_logs_buys_and_sells(self, caplog):
        with caplog.at_level(logging.INFO, logger="taxlot"):
            process_operations(
                SelectionPolicy.FIFO,
                ["2021-01-01,buy,10,1", "2021-01-01,buy,30,1", "2021-01-02,sell,40,1"],
            )

        events = [
            (r.event_type, getattr(r, "merged", None))
            for r in caplog.records
            if hasattr(r, "event_type")
        ]
        assert events == [("buy", False), ("buy", True), ("sell", None)]


class TestMain:
    """Tests for the console entry point."""

    @pytest.fixture(autouse=True)
    def no_config(self, monkeypatch):
        monkeypatch.delenv("TAXLOT_CONFIG", raising=False)
        monkeypatch.delenv("TAXLOT_LOG_LEVEL", raising=False)

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        """main() reconfigures the taxlot logger; undo it after each test."""
        taxlot_logger = logging.getLogger("taxlot")
        handlers = taxlot_logger.handlers[:]
        filters = taxlot_logger.filters[:]
        level = taxlot_logger.level
        yield
        taxlot_logger.handlers = handlers
        taxlot_logger.filters = filters
        taxlot_logger.setLevel(level)

    def test_success_exit_code(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", lines("2021-01-01,buy,10000.00,1.0"))

        with pytest.raises(SystemExit) as exc_info:
            main(["fifo"])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out == "1,2021-01-01,10000.00,1.00000000\n"

    def test_unknown_policy_exit_code(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", lines("2021-01-01,buy,10000.00,1.0"))

        with pytest.raises(SystemExit) as exc_info:
            main(["average"])

        assert exc_info.value.code == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Unknown selection policy" in captured.err

    def test_parse_failure_exit_code(self, monkeypatch, capsys):
        monkeypatch.setattr("sys.stdin", lines("2021-01-01,invalid,10000.00,1.0"))

        with pytest.raises(SystemExit) as exc_info:
            main(["fifo"])

        assert exc_info.value.code == 1
        assert capsys.readouterr().out == ""

    def test_missing_config_file_exit_code(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("TAXLOT_CONFIG", str(tmp_path / "missing.yaml"))

        with pytest.raises(SystemExit) as exc_info:
            main(["fifo"])

        assert exc_info.value.code == 1
        assert "Configuration file not found" in capsys.readouterr().err

    def test_config_file_changes_output(self, monkeypatch, tmp_path, capsys):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("output:\n  include_lot_id: false\n")
        monkeypatch.setenv("TAXLOT_CONFIG", str(config_file))
        monkeypatch.setattr("sys.stdin", lines("2021-01-01,buy,10000.00,1.0"))

        with pytest.raises(SystemExit) as exc_info:
            main(["fifo"])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out == "2021-01-01,10000.00,1.00000000\n"
