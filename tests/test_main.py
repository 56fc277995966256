import io
from pathlib import Path

import pytest

from gauth import main, otp
from gauth.keychain import COUNTER_LEN

from conftest import SECRET, SECRET_TEXT

ZEROS = "0" * COUNTER_LEN


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(main, "_setup_logging", lambda verbose: None)


@pytest.fixture
def keychain_env(monkeypatch, keychain_path):
    monkeypatch.setenv("GAUTH_KEYCHAIN", str(keychain_path))
    return keychain_path


def feed_stdin(monkeypatch, text):
    monkeypatch.setattr("sys.stdin", io.StringIO(text))


def test_default_keychain_path(monkeypatch, tmp_path):
    monkeypatch.delenv("GAUTH_KEYCHAIN", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    assert main._default_keychain_path() == str(tmp_path / ".gauth")


def test_parse_args_defaults_to_get(keychain_env):
    opts = main.parse_args([])
    assert opts == main.Options(keychain=Path(keychain_env), command=main.Command.GET)


def test_parse_args_add_flags(keychain_env):
    opts = main.parse_args(["--keychain", "/tmp/kc", "add", "-8", "--hotp", "svc"])
    assert opts.keychain == Path("/tmp/kc")
    assert opts.command is main.Command.ADD
    assert (opts.name, opts.digits, opts.hotp, opts.uri) == ("svc", 8, True, False)


def test_parse_args_rejects_conflicting_flags(keychain_env):
    with pytest.raises(SystemExit) as exc:
        main.parse_args(["add", "-7", "-8", "svc"])
    assert exc.value.code == 2
    with pytest.raises(SystemExit) as exc:
        main.parse_args(["add", "--uri", "--hotp", "svc"])
    assert exc.value.code == 2


def test_add_strips_whitespace_from_secret(monkeypatch, keychain_env, capsys):
    feed_stdin(monkeypatch, " jbsw y3dp\tehpk 3pxp \n")
    main.main(["add", "svc"])
    assert keychain_env.read_text() == "svc 6 jbswy3dpehpk3pxp\n"
    assert "gauth key for svc: " in capsys.readouterr().err


def test_add_hotp_then_get(monkeypatch, keychain_env, capsys):
    feed_stdin(monkeypatch, SECRET_TEXT + "\n")
    main.main(["add", "-7", "--hotp", "ctr"])
    assert keychain_env.read_text() == f"ctr 7 {SECRET_TEXT} {ZEROS}\n"
    capsys.readouterr()

    main.main(["get", "ctr"])
    assert capsys.readouterr().out == otp.format_code(otp.hotp(SECRET, 1, 7), 7) + "\n"
    assert keychain_env.read_text() == f"ctr 7 {SECRET_TEXT} {1:020d}\n"


def test_add_uri(monkeypatch, keychain_env):
    feed_stdin(monkeypatch, f"otpauth://totp/x?secret={SECRET_TEXT}\n")
    main.main(["add", "--uri", "x"])
    assert keychain_env.read_text() == f"x 6 {SECRET_TEXT}\n"


def test_add_invalid_secret_exits_nonzero(monkeypatch, keychain_env):
    feed_stdin(monkeypatch, "invalid base32 !!!\n")
    with pytest.raises(SystemExit) as exc:
        main.main(["add", "svc"])
    assert exc.value.code == 1
    assert not keychain_env.exists()


def test_add_name_with_space_exits_nonzero(monkeypatch, keychain_env):
    feed_stdin(monkeypatch, SECRET_TEXT + "\n")
    with pytest.raises(SystemExit) as exc:
        main.main(["add", "two words"])
    assert exc.value.code == 1
    assert not keychain_env.exists()


def test_add_without_input_exits_nonzero(monkeypatch, keychain_env):
    feed_stdin(monkeypatch, "")
    with pytest.raises(SystemExit) as exc:
        main.main(["add", "svc"])
    assert exc.value.code == 1


def test_list(keychain_env, capsys):
    keychain_env.write_text(f"b 6 {SECRET_TEXT}\na 6 {SECRET_TEXT} {ZEROS}\nc 9 {SECRET_TEXT}\n")
    main.main(["list"])
    assert capsys.readouterr().out == "a\nb\n"


def test_get_unknown_key(keychain_env):
    keychain_env.write_text(f"a 6 {SECRET_TEXT}\n")
    before = keychain_env.read_bytes()
    with pytest.raises(SystemExit) as exc:
        main.main(["get", "missing"])
    assert exc.value.code == 1
    assert keychain_env.read_bytes() == before


def test_get_all(keychain_env, capsys):
    keychain_env.write_text(f"web 6 {SECRET_TEXT}\nbank 8 {SECRET_TEXT} {ZEROS}\n")
    main.main([])
    lines = capsys.readouterr().out.splitlines()
    assert lines[0].split() == ["--------", "bank"]
    code, name = lines[1].split()[:2]
    assert name == "web"
    assert len(code) == 6 and code.isdigit()
    assert keychain_env.read_text().endswith(f"{ZEROS}\n")


def test_format_row():
    assert main.format_row("ctr", "------", 0) == "------\tctr"
    assert main.format_row("web", "123456", 0) == "[green]123456[/green]\tweb ([green]30s[/green])"
    assert main.format_row("web", "123456", 20_000_000_000) == (
        "[yellow]123456[/yellow]\tweb ([yellow]10s[/yellow])"
    )
    assert main.format_row("web", "123456", 25_000_000_000) == "[red]123456[/red]\tweb ([red]5s[/red])"
    assert main.format_row("[x]", "------", 0) == "------\t\\[x]"
