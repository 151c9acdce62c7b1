import pytest

from relgraph import config


@pytest.fixture(autouse=True)
def reset_relgraph_config(tmp_path, monkeypatch):
    """Point settings at a temp dir and reload config between every test."""
    monkeypatch.setenv("RELGRAPH_DIR", str(tmp_path / ".relgraph"))
    monkeypatch.delenv("RELGRAPH_DB", raising=False)
    monkeypatch.delenv("RELGRAPH_SHOW_SELF", raising=False)
    config.reload()

    yield

    config.reload()
