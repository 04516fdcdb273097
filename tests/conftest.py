"""Global test configuration — runs before any test module imports."""
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

# Must be set BEFORE any trustledger imports — the limiter reads this at init
os.environ["RATELIMIT_ENABLED"] = "False"
os.environ.setdefault("TRUSTLEDGER_ADMIN_KEY", "test-admin-key")

import pytest  # noqa: E402

ADMIN_KEY = os.environ["TRUSTLEDGER_ADMIN_KEY"]
OWNER = "owner"


def pytest_configure(config):
    """Disable rate limiter after all imports."""
    from trustledger.security import limiter
    limiter.enabled = False


@pytest.fixture
def ledger():
    from trustledger import LedgerConfig, ReputationLedger
    return ReputationLedger(LedgerConfig(owner=OWNER))


@pytest.fixture
def seeded(ledger):
    """Ledger with verifier v1 (weight 80) and account alice (score 50)."""
    ledger.register_verifier(OWNER, "v1", weight=80, stake=5000).unwrap()
    ledger.initialize_account("alice").unwrap()
    return ledger
