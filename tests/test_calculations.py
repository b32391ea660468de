"""Tests for per-player results and session totals."""
from decimal import Decimal

from cashgame.ledger.calculations import (
    filter_break_even,
    filter_buyins_by_player,
    filter_cashouts_by_player,
    filter_losers,
    filter_winners,
    player_results,
    session_totals,
    sum_losses,
    sum_winnings,
    totals_dont_balance,
)
from cashgame.ledger.money import BALANCE_TOLERANCE, format_money, to_money
from factories import SESSION_ID, buyin, cashout, make_player


class TestMoney:
    """Test money helpers."""

    def test_float_goes_through_str(self):
        """Test floats are converted without binary noise."""
        assert to_money(0.1) == Decimal("0.1")
        assert to_money(0.1) + to_money(0.2) == Decimal("0.3")

    def test_int_and_str(self):
        """Test ints and strings convert exactly."""
        assert to_money(100) == Decimal("100")
        assert to_money("12.50") == Decimal("12.50")

    def test_format_money(self):
        """Test two-decimal rendering."""
        assert format_money(50) == "50.00"
        assert format_money(Decimal("0.005")) == "0.01"
        assert format_money(-12.5) == "-12.50"

    def test_tolerance(self):
        """Test tolerance is one cent."""
        assert BALANCE_TOLERANCE == Decimal("0.01")


class TestFilters:
    """Test transaction filters."""

    def test_filters_by_session_player_and_type(self):
        """Test only matching rows are returned."""
        transactions = [
            buyin("1", 100),
            buyin("1", 50, tx_id="b2"),
            cashout("1", 120),
            buyin("2", 100),
            buyin("1", 999, session_id="other"),
        ]

        buyins = filter_buyins_by_player(transactions, SESSION_ID, "1")
        cashouts = filter_cashouts_by_player(transactions, SESSION_ID, "1")

        assert [t.amount for t in buyins] == [100, 50]
        assert [t.amount for t in cashouts] == [120]


class TestPlayerResults:
    """Test per-player aggregation."""

    def test_two_player_session(self):
        """Test the basic win/lose case."""
        players = [make_player("1", "A"), make_player("2", "B")]
        transactions = [buyin("1", 100), buyin("2", 100), cashout("1", 150), cashout("2", 50)]

        results = player_results(transactions, players, SESSION_ID)

        assert [r.player.name for r in results] == ["A", "B"]
        assert results[0].total_buyins == 100
        assert results[0].total_cashouts == 150
        assert results[0].pl == 50
        assert results[1].pl == -50

    def test_output_follows_player_order(self):
        """Test results come back in the order players were given."""
        players = [make_player("3"), make_player("1"), make_player("2")]
        results = player_results([], players, SESSION_ID)

        assert [r.player.id for r in results] == ["3", "1", "2"]

    def test_player_without_transactions(self):
        """Test a player with no rows is break-even."""
        results = player_results([], [make_player("1")], SESSION_ID)

        assert results[0].total_buyins == 0
        assert results[0].total_cashouts == 0
        assert results[0].pl == 0
        assert filter_break_even(results) == results

    def test_multiple_buyins_are_summed(self):
        """Test rebuys add to the cost basis."""
        players = [make_player("1")]
        transactions = [buyin("1", 100, tx_id="a"), buyin("1", 100, tx_id="b"), cashout("1", 250)]

        result = player_results(transactions, players, SESSION_ID)[0]

        assert result.total_buyins == 200
        assert result.pl == 50

    def test_other_sessions_ignored(self):
        """Test rows from another session do not count."""
        players = [make_player("1")]
        transactions = [buyin("1", 100), buyin("1", 500, session_id="other")]

        assert player_results(transactions, players, SESSION_ID)[0].total_buyins == 100

    def test_negative_amount_summed_as_given(self):
        """Test bad data is reflected rather than rejected."""
        players = [make_player("1")]
        transactions = [buyin("1", -20)]

        result = player_results(transactions, players, SESSION_ID)[0]

        assert result.total_buyins == -20
        assert result.pl == 20

    def test_inputs_not_mutated(self):
        """Test the inputs are left untouched."""
        players = [make_player("1")]
        transactions = [buyin("1", 100), cashout("1", 80)]
        before = [t.to_dict() for t in transactions]

        player_results(transactions, players, SESSION_ID)

        assert [t.to_dict() for t in transactions] == before


class TestSessionTotals:
    """Test aggregate totals."""

    def test_balanced_session(self):
        """Test totals of a session where chips match money in."""
        players = [make_player("1"), make_player("2")]
        transactions = [buyin("1", 100), buyin("2", 100), cashout("1", 150), cashout("2", 50)]

        totals = session_totals(transactions, players, SESSION_ID)

        assert totals.total_buyins == 200
        assert totals.total_cashouts == 200
        assert totals.total_profit_loss == 0
        assert totals.is_balanced
        assert not totals_dont_balance(totals)

    def test_rake_is_reported_not_corrected(self):
        """Test a short cash-out total is surfaced as-is."""
        players = [make_player("1"), make_player("2")]
        transactions = [buyin("1", 50), buyin("2", 50), cashout("1", 60), cashout("2", 30)]

        totals = session_totals(transactions, players, SESSION_ID)

        assert totals.total_profit_loss == -10
        assert not totals.is_balanced
        assert totals_dont_balance(totals)

    def test_sub_cent_drift_is_balanced(self):
        """Test drift inside the tolerance still balances."""
        players = [make_player("1"), make_player("2")]
        transactions = [buyin("1", "33.33"), buyin("2", "33.34"), cashout("1", "66.66")]

        totals = session_totals(transactions, players, SESSION_ID)

        assert totals.total_profit_loss == Decimal("-0.01")
        assert totals.is_balanced

    def test_matches_sum_of_results(self):
        """Test totals equal the sum of the per-player figures."""
        players = [make_player("1"), make_player("2"), make_player("3")]
        transactions = [buyin("1", 40), buyin("2", 75), cashout("1", 10), cashout("3", 5)]

        results = player_results(transactions, players, SESSION_ID)
        totals = session_totals(transactions, players, SESSION_ID)

        assert totals.total_profit_loss == sum(r.pl for r in results)

    def test_to_dict(self):
        """Test totals serialization."""
        totals = session_totals([buyin("1", 10)], [make_player("1")], SESSION_ID)

        data = totals.to_dict()

        assert data["total_buyins"] == "10"
        assert data["is_balanced"] is False


class TestClassification:
    """Test winner/loser/break-even helpers."""

    def setup_method(self):
        players = [
            make_player("1", "small-win"),
            make_player("2", "big-loss"),
            make_player("3", "even"),
            make_player("4", "big-win"),
            make_player("5", "small-loss"),
            make_player("6", "dust"),
        ]
        transactions = [
            buyin("1", 100), cashout("1", 110),
            buyin("2", 100), cashout("2", 20),
            buyin("3", 100), cashout("3", 100),
            buyin("4", 100), cashout("4", 180),
            buyin("5", 100), cashout("5", 90),
            buyin("6", "100"), cashout("6", "100.01"),
        ]
        self.results = player_results(transactions, players, SESSION_ID)

    def test_winners_sorted_biggest_first(self):
        """Test winners exclude amounts within tolerance."""
        assert [r.player.name for r in filter_winners(self.results)] == ["big-win", "small-win"]

    def test_losers_sorted_biggest_loss_first(self):
        """Test losers are ordered by loss size."""
        assert [r.player.name for r in filter_losers(self.results)] == ["big-loss", "small-loss"]

    def test_break_even_includes_tolerance(self):
        """Test a one-cent difference is break-even."""
        assert [r.player.name for r in filter_break_even(self.results)] == ["even", "dust"]

    def test_sums(self):
        """Test winnings and losses are positive magnitudes."""
        assert sum_winnings(filter_winners(self.results)) == 90
        assert sum_losses(filter_losers(self.results)) == 90

    def test_empty_sums(self):
        """Test sums of nothing are zero."""
        assert sum_winnings([]) == 0
        assert sum_losses([]) == 0
