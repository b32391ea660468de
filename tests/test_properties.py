"""
Property-based tests for the ledger math.

These hold for arbitrary sessions:
    - transfers never exceed what a player owes or is owed
    - nobody pays themselves and every transfer is positive
    - at most one transfer fewer than the parties involved
    - totals equal the sum of per-player P/L
    - settlement is deterministic
    - appending transactions never moves the stage backwards
"""
from collections import defaultdict
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from cashgame.ledger.calculations import (
    filter_losers,
    filter_winners,
    player_results,
    session_totals,
    sum_losses,
    sum_winnings,
)
from cashgame.ledger.money import BALANCE_TOLERANCE
from cashgame.ledger.settlement import settlement_transfers
from cashgame.ledger.stage import SessionStage, derive_stage
from factories import SESSION_ID, buyin, cashout, make_player, make_session

STAGE_ORDER = [
    SessionStage.ACTIVE_GAME,
    SessionStage.CHIP_ENTRY,
    SessionStage.READY_TO_FINALIZE,
    SessionStage.FINALIZED,
]


def amounts(min_value=Decimal("0.01")):
    return st.decimals(
        min_value=min_value,
        max_value=Decimal("10000"),
        places=2,
        allow_nan=False,
        allow_infinity=False,
    )


@st.composite
def sessions(draw, min_players=1, max_players=8):
    """Players plus buy-ins and cash-outs for them, in any order."""
    count = draw(st.integers(min_value=min_players, max_value=max_players))
    players = [make_player(f"p{i}", f"Player {i}") for i in range(count)]
    rows = draw(st.lists(
        st.tuples(
            st.integers(min_value=0, max_value=count - 1),
            st.booleans(),
            amounts(min_value=Decimal("0")),
        ),
        max_size=30,
    ))
    transactions = [
        (buyin if is_buyin else cashout)(f"p{index}", amount, tx_id=f"t{n}")
        for n, (index, is_buyin, amount) in enumerate(rows)
    ]
    return players, transactions


@st.composite
def balanced_sessions(draw):
    """Sessions where the cash-outs redistribute exactly the buy-ins."""
    count = draw(st.integers(min_value=2, max_value=8))
    players = [make_player(f"p{i}", f"Player {i}") for i in range(count)]
    stakes = draw(st.lists(amounts(), min_size=count, max_size=count))
    pot = sum(stakes)

    # Cut the pot at random points to get the cash-outs
    cuts = sorted(draw(st.lists(
        st.decimals(min_value=Decimal("0"), max_value=pot, places=2),
        min_size=count - 1,
        max_size=count - 1,
    )))
    bounds = [Decimal("0")] + cuts + [pot]
    chips = [bounds[i + 1] - bounds[i] for i in range(count)]

    transactions = []
    for i in range(count):
        transactions.append(buyin(f"p{i}", stakes[i]))
        transactions.append(cashout(f"p{i}", chips[i]))
    return players, transactions


def paid_and_received(transfers):
    paid = defaultdict(Decimal)
    received = defaultdict(Decimal)
    for transfer in transfers:
        paid[transfer.debtor_id] += transfer.amount
        received[transfer.creditor_id] += transfer.amount
    return paid, received


class TestSettlementProperties:
    """Properties of the greedy settlement."""

    @given(sessions())
    @settings(max_examples=200)
    def test_transfers_are_sound(self, session):
        """Test no one pays more than they lost or receives more than they won."""
        players, transactions = session
        results = {r.player.id: r for r in player_results(transactions, players, SESSION_ID)}

        transfers = settlement_transfers(transactions, players, SESSION_ID)
        paid, received = paid_and_received(transfers)

        for player_id, result in results.items():
            assert paid[player_id] <= max(-result.pl, Decimal("0"))
            assert received[player_id] <= max(result.pl, Decimal("0"))
            # a player is only ever on one side
            assert paid[player_id] == 0 or received[player_id] == 0

    @given(sessions())
    def test_no_self_payment_and_positive(self, session):
        """Test every transfer moves a positive amount between two players."""
        players, transactions = session

        for transfer in settlement_transfers(transactions, players, SESSION_ID):
            assert transfer.debtor_id != transfer.creditor_id
            assert transfer.amount > 0

    @given(sessions())
    def test_transfer_count_bound(self, session):
        """Test the greedy match needs fewer transfers than parties."""
        players, transactions = session
        results = player_results(transactions, players, SESSION_ID)
        parties = len(filter_winners(results)) + len(filter_losers(results))

        transfers = settlement_transfers(transactions, players, SESSION_ID)

        assert len(transfers) <= max(parties - 1, 0)

    @given(sessions())
    def test_transfers_never_exceed_either_side(self, session):
        """Test the total moved is capped by the smaller side."""
        players, transactions = session
        results = player_results(transactions, players, SESSION_ID)

        total = sum((t.amount for t in settlement_transfers(transactions, players, SESSION_ID)), Decimal(0))

        assert total <= sum_winnings(filter_winners(results))
        assert total <= sum_losses(filter_losers(results))

    @given(balanced_sessions())
    @settings(max_examples=200)
    def test_balanced_sessions_settle(self, session):
        """Test a balanced session leaves only dust unsettled."""
        players, transactions = session
        results = player_results(transactions, players, SESSION_ID)
        assert session_totals(transactions, players, SESSION_ID).total_profit_loss == 0

        transfers = settlement_transfers(transactions, players, SESSION_ID)
        paid, received = paid_and_received(transfers)

        slack = BALANCE_TOLERANCE * len(players)
        for result in results:
            residual = result.pl - received[result.player.id] + paid[result.player.id]
            assert abs(residual) <= slack

    @given(sessions())
    def test_deterministic(self, session):
        """Test the same input always settles the same way."""
        players, transactions = session

        first = settlement_transfers(transactions, players, SESSION_ID)
        second = settlement_transfers(list(transactions), list(players), SESSION_ID)

        assert [t.to_dict() for t in first] == [t.to_dict() for t in second]


class TestTotalsProperties:
    """Properties of the aggregates."""

    @given(sessions())
    def test_totals_match_results(self, session):
        """Test totals are the sum of the per-player figures."""
        players, transactions = session
        results = player_results(transactions, players, SESSION_ID)
        totals = session_totals(transactions, players, SESSION_ID)

        assert totals.total_buyins == sum((r.total_buyins for r in results), Decimal(0))
        assert totals.total_cashouts == sum((r.total_cashouts for r in results), Decimal(0))
        assert totals.total_profit_loss == sum((r.pl for r in results), Decimal(0))

    @given(balanced_sessions())
    def test_winnings_equal_losses_when_balanced(self, session):
        """Test money is conserved in a balanced session."""
        players, transactions = session
        results = player_results(transactions, players, SESSION_ID)
        dust = [r.pl for r in results if abs(r.pl) <= BALANCE_TOLERANCE]

        assert sum_winnings(filter_winners(results)) - sum_losses(filter_losers(results)) == -sum(dust, Decimal(0))


class TestStageProperties:
    """Properties of stage derivation."""

    @given(sessions(), st.booleans(), st.booleans())
    def test_stage_monotonic_in_transactions(self, session, chip_entry, finalized):
        """Test recording more transactions never moves the stage back."""
        players, transactions = session
        ledger_session = make_session(chip_entry=chip_entry, finalized=finalized)

        previous = 0
        for end in range(len(transactions) + 1):
            stage = derive_stage(ledger_session, players, transactions[:end])
            position = STAGE_ORDER.index(stage)
            assert position >= previous
            previous = position
