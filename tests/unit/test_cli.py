"""
Tests for the command line interface.
"""

import logging

from click.testing import CliRunner

from closet.cli.main import cli
from closet.utils.logger import setup_logging


class TestSettleCommand:
    """Tests for `closet settle`."""

    def test_two_bidders(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["settle", "--winner", "30:50", "--bid", "20:45"])
        assert result.exit_code == 0
        assert "Clearing price: 46" in result.output
        assert "4.60" in result.output

    def test_fee_rate_from_environment(self):
        """CLOSET_FEE_RATE changes the printed seller fee."""
        runner = CliRunner(env={"CLOSET_FEE_RATE": "0.05"})
        result = runner.invoke(cli, ["settle", "--winner", "30:50", "--bid", "20:45"])
        assert result.exit_code == 0
        assert "Clearing price: 46" in result.output
        assert "Seller fee:     2.30" in result.output

    def test_increment_from_environment(self):
        runner = CliRunner(env={"CLOSET_BID_INCREMENT": "0.01"})
        result = runner.invoke(cli, ["settle", "--winner", "30:50", "--bid", "20:45"])
        assert result.exit_code == 0
        assert "Clearing price: 45.01" in result.output

    def test_lone_bidder_below_increment(self):
        """A lone 0.50..10 bid clears one increment above zero."""
        runner = CliRunner()
        result = runner.invoke(cli, ["settle", "--winner", "0.50:10"])
        assert result.exit_code == 0
        assert "Clearing price: 1\n" in result.output

    def test_lone_bidder_with_reserve(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["settle", "--winner", "100:200", "--reserve", "120"])
        assert result.exit_code == 0
        assert "Clearing price: 120" in result.output

    def test_reserve_not_met(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["settle", "--winner", "140:150", "--reserve", "160"])
        assert result.exit_code != 0
        assert "reserve" in result.output

    def test_bad_bid_format(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["settle", "--winner", "fifty"])
        assert result.exit_code != 0


class TestBrowseCommand:
    """Tests for `closet browse`."""

    def test_anonymous_json(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["browse", "--json", "--sort", "price-asc"])
        assert result.exit_code == 0
        assert '"prod-1"' in result.output
        assert '"prod-3"' in result.output
        # Sold, reported and NSFW-seller listings are not offered
        assert '"prod-2"' not in result.output
        assert '"prod-4"' not in result.output
        assert '"prod-5"' not in result.output
        assert "reserve_price" not in result.output

    def test_category_filter(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["browse", "--viewer", "user-buyer-2", "--category", "Accessories"])
        assert result.exit_code == 0
        assert "prod-5" in result.output
        assert "prod-1" not in result.output


class TestSweepCommand:
    """Tests for `closet sweep`."""

    def test_nothing_due(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["sweep"])
        assert result.exit_code == 0
        assert "Expired 0 listing(s)" in result.output

    def test_fast_forward(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["sweep", "--days", "6"])
        assert result.exit_code == 0
        assert "Expired 1 listing(s): prod-5" in result.output


class TestDemoCommand:
    """Tests for `closet demo`."""

    def teardown_method(self):
        setup_logging(level=logging.INFO)

    def test_runs(self, tmp_path):
        runner = CliRunner(env={"CLOSET_LOG_DIR": str(tmp_path / "logs")})
        result = runner.invoke(cli, ["--data-dir", str(tmp_path), "demo"])
        assert result.exit_code == 0, result.output
        assert "Refused: offer does not meet the reserve price" in result.output
        assert "Sold for $160" in result.output
        assert (tmp_path / "preferences.db").exists()

    def test_data_dir_from_environment(self, tmp_path):
        """Without --data-dir the preferences land under CLOSET_DATA_DIR."""
        data_dir = tmp_path / "closet-data"
        runner = CliRunner(env={
            "CLOSET_DATA_DIR": str(data_dir),
            "CLOSET_LOG_DIR": str(tmp_path / "logs"),
        })
        result = runner.invoke(cli, ["demo"])
        assert result.exit_code == 0, result.output
        assert (data_dir / "preferences.db").exists()
        assert (tmp_path / "logs").is_dir()

    def test_log_file(self, tmp_path):
        runner = CliRunner(env={
            "CLOSET_DATA_DIR": str(tmp_path / "data"),
            "CLOSET_LOG_DIR": str(tmp_path / "logs"),
        })
        result = runner.invoke(cli, ["--log-file", "demo"])
        assert result.exit_code == 0, result.output
        for handler in logging.getLogger("closet").handlers:
            handler.flush()
        assert "PreferenceStore initialized" in (tmp_path / "logs" / "closet.log").read_text()
