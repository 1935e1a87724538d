import os
import sys

import pytest
from eth_account import Account
from web3 import Web3

# Ensure the project root (containing the flat modules) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# main builds a module-level app on import; keep it off the filesystem
os.environ.setdefault('DATABASE_URL', 'sqlite://')

from fastapi.testclient import TestClient  # noqa: E402

from config import Settings  # noqa: E402
from database import init_db, make_engine, make_session_factory  # noqa: E402
from main import create_app  # noqa: E402
from receipts import TransactionReceipt  # noqa: E402

VALIDATOR_KEY = '0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318'
CONTRACT_ADDRESS = '0x' + 'cc' * 20
WALLET = Web3.to_checksum_address('0xabc0000000000000000000000000000000000123')
TX_HASH = '0x' + 'ab' * 32


class FakeReceiptClient:
    """Replays a scripted list of outcomes: receipts, None, or exceptions."""

    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [])
        self.calls = []

    async def get_receipt(self, tx_hash):
        self.calls.append(tx_hash)
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_receipt(success=True, to=CONTRACT_ADDRESS, sender=None):
    return TransactionReceipt(
        success=success,
        to=to,
        from_address=(sender or WALLET).lower(),
        block_number=123,
    )


@pytest.fixture()
def validator_address():
    return Account.from_key(VALIDATOR_KEY).address


@pytest.fixture()
def settings():
    return Settings(
        database_url='sqlite://',
        validator_private_key=VALIDATOR_KEY,
        score_contract_address=CONTRACT_ADDRESS,
        rpc_url='http://127.0.0.1:8545',
        receipt_max_attempts=3,
        receipt_base_delay=0.0,
    )


@pytest.fixture()
def receipt_client():
    return FakeReceiptClient()


@pytest.fixture()
def app(settings, receipt_client):
    return create_app(settings, receipt_client=receipt_client)


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def session(app):
    db = app.state.session_factory()
    yield db
    db.close()


@pytest.fixture()
def session_factory():
    engine = make_engine('sqlite://')
    init_db(engine)
    return make_session_factory(engine)
