"""Shared fixtures for ledger tests."""
import pytest

from factories import SESSION_ID, InMemoryLedgerStore, make_session


@pytest.fixture
def store():
    """In-memory store holding one empty session."""
    store = InMemoryLedgerStore()
    store.sessions[SESSION_ID] = make_session()
    return store
