import logging

import pytest


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """
    ``setup_logging`` replaces the root handlers. Put the originals back after
    each test so file handlers pointing at a test's tmp dir don't leak into
    later tests.
    """
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
