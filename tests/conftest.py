import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import pytest

from safemask import MemoryVaultStore, TokenVault


@pytest.fixture
def vault():
    return TokenVault(MemoryVaultStore(), auto_lock_minutes=0).init()
