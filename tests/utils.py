from __future__ import annotations

from pathlib import Path

from spoeconf.client import SpoeClient

SAMPLE = """\
# _version=3
[ip-reputation]
spoe-agent agent1
    messages check-client-ip
    option var-prefix iprep
    timeout hello 2s
    timeout idle  2m
    timeout processing 10ms
    use-backend agents

spoe-message check-client-ip
    args ip=src
    event on-client-session

spoe-group grp1
    messages check-client-ip
"""


def write_config(tmp_path: Path, text: str = SAMPLE, name: str = "spoe.cfg") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def make_client(tmp_path: Path, **kwargs) -> SpoeClient:
    config = tmp_path / "spoe.cfg"
    if not config.exists():
        write_config(tmp_path)
    kwargs.setdefault("transaction_dir", tmp_path / "transactions")
    return SpoeClient(config_file=config, **kwargs)
