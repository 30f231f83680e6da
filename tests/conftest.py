"""Global test configuration — runs before any test module imports."""
import os

# Must be set BEFORE any hiveclaim imports — slowapi reads this at init
os.environ["RATELIMIT_ENABLED"] = "False"

import pytest
from coincurve import PrivateKey as BtcPrivateKey

# Classic WIF example key (bitcoin wiki)
BTC_SECRET = bytes.fromhex("0C28FCA386C7A227600B2FE50B7CAE11EC86D3BF1FBE471BE89827E19D72AA1D")


def pytest_configure(config):
    """Disable rate limiter after all imports."""
    try:
        from hiveclaim.security import limiter
        limiter.enabled = False
    except ImportError:
        pass


@pytest.fixture
def btc_key():
    return BtcPrivateKey(BTC_SECRET)


@pytest.fixture
def other_btc_key():
    return BtcPrivateKey(bytes.fromhex("11" * 32))


@pytest.fixture
def creator_key():
    from hiveclaim.keys import PrivateKey
    return PrivateKey.from_seed("creator-active-key-for-tests")
