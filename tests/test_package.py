from __future__ import annotations

import surge


def test_star_import_succeeds() -> None:
    namespace: dict[str, object] = {}
    exec("from surge import *", namespace)

    assert isinstance(surge.__version__, str)
    assert surge.__version__
