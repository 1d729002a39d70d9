import os
import shutil
import tempfile
import threading
import time

import pytest

from kvlabs.lockcli import lockc_main, lockd_main
from kvlabs.lockservice import start_server


@pytest.fixture
def hosts():
    directory = tempfile.mkdtemp(prefix="lc")
    yield os.path.join(directory, "p"), os.path.join(directory, "b")
    shutil.rmtree(directory, ignore_errors=True)


def _wait_for(path):
    deadline = time.monotonic() + 5
    while not os.path.exists(path) and time.monotonic() < deadline:
        time.sleep(0.05)
    return os.path.exists(path)


def _lockc(capsys, *args):
    lockc_main(list(args))
    return capsys.readouterr().out


@pytest.mark.parametrize("argv", [[], ["-p", "a"], ["-x", "a", "b"], ["-p", "a", "b", "c"]])
def test_lockd_usage(argv, capsys):
    with pytest.raises(SystemExit) as info:
        lockd_main(argv)
    assert info.value.code == 1
    assert capsys.readouterr().out.startswith("Usage: lockd")


@pytest.mark.parametrize("argv", [[], ["-l", "a", "b"], ["-l", "a", "b", "c", "d"]])
def test_lockc_usage_wrong_count(argv, capsys):
    with pytest.raises(SystemExit) as info:
        lockc_main(argv)
    assert info.value.code == 1
    assert capsys.readouterr().out.startswith("Usage: lockc")


def test_lockc_usage_bad_flag(hosts, capsys):
    phost, bhost = hosts
    with pytest.raises(SystemExit) as info:
        lockc_main(["-x", phost, bhost, "lx"])
    assert info.value.code == 1
    assert capsys.readouterr().out.startswith("Usage: lockc")


def test_lockc_against_servers(hosts, capsys):
    phost, bhost = hosts
    p = start_server(phost, bhost, True)
    b = start_server(phost, bhost, False)
    try:
        assert _lockc(capsys, "-l", phost, bhost, "lx") == "reply: true\n"
        assert _lockc(capsys, "-l", phost, bhost, "lx") == "reply: false\n"
        assert _lockc(capsys, "-u", phost, bhost, "lx") == "reply: true\n"
        assert _lockc(capsys, "-u", phost, bhost, "lx") == "reply: false\n"
    finally:
        p.kill()
        b.kill()


def test_lockc_without_servers_prints_false(hosts, capsys):
    phost, bhost = hosts
    assert _lockc(capsys, "-l", phost, bhost, "lx") == "reply: false\n"


def test_lockd_serves_lockc(hosts, capsys):
    phost, bhost = hosts
    for flag in ("-b", "-p"):
        threading.Thread(
            target=lockd_main, args=([flag, phost, bhost],), daemon=True
        ).start()
    assert _wait_for(bhost)
    assert _wait_for(phost)
    assert _lockc(capsys, "-l", phost, bhost, "ly") == "reply: true\n"
    assert _lockc(capsys, "-l", phost, bhost, "ly") == "reply: false\n"
    assert _lockc(capsys, "-u", phost, bhost, "ly") == "reply: true\n"