"""Tests for the hiveclaim CLI."""

import json

import pytest

from hiveclaim.cli import build_parser, main
from hiveclaim.keys import generate_credentials
from hiveclaim.signatures import private_key_to_wif, verify
from hiveclaim.storage import JsonFileAddressLedger

MESSAGE = "hello hive"


@pytest.fixture
def wif(btc_key):
    return private_key_to_wif(btc_key)


def test_parser_commands():
    parser = build_parser()
    args = parser.parse_args(["sign-message", "KEY", "msg", "-t", "p2wpkh"])
    assert (args.command, args.wif, args.message, args.type) == ("sign-message", "KEY", "msg", "p2wpkh")
    args = parser.parse_args(["serve", "--port", "9000"])
    assert args.port == 9000


def test_no_command_exits():
    with pytest.raises(SystemExit):
        main([])


def test_keys(capsys):
    result = main(["--json", "keys", "alice"])
    creds = generate_credentials("alice")
    assert result["private"] == creds.private_keys()
    assert result["public"] == creds.public_keys()
    printed = json.loads(capsys.readouterr().out)
    assert printed["username"] == "alice"


def test_keys_human_output(capsys):
    main(["keys", "alice"])
    out = capsys.readouterr().out
    assert "alice" in out
    assert generate_credentials("alice").public_keys()["owner"] in out


@pytest.mark.parametrize("kind", ["p2pkh", "p2sh-p2wpkh", "p2wpkh"])
def test_sign_then_verify(wif, kind):
    signed = main(["--json", "sign-message", wif, MESSAGE, "-t", kind])
    assert verify(signed["address"], MESSAGE, signed["signature"])
    result = main(["--json", "verify-message", signed["address"], MESSAGE, signed["signature"]])
    assert result["valid"] is True


def test_sign_known_address(wif):
    signed = main(["--json", "sign-message", wif, MESSAGE])
    assert signed["address"] == "1LoVGDgRs9hTfTNJNuXKSpywcbdvwRXpmK"


def test_verify_invalid_exits(wif, capsys):
    signed = main(["--json", "sign-message", wif, MESSAGE])
    with pytest.raises(SystemExit) as exc:
        main(["verify-message", signed["address"], MESSAGE + "?", signed["signature"]])
    assert exc.value.code == 1
    assert "Invalid signature" in capsys.readouterr().out


def test_bad_wif_exits(capsys):
    with pytest.raises(SystemExit):
        main(["sign-message", "notawif", MESSAGE])
    assert "Error" in capsys.readouterr().err


def test_used(tmp_path):
    store = tmp_path / "used.json"
    ledger = JsonFileAddressLedger(str(store))
    ledger.reserve("1A")
    ledger.reserve("1B")

    listed = main(["--json", "used", "--store", str(store)])
    assert listed == {"count": 2, "addresses": ["1A", "1B"]}
    assert main(["--json", "used", "--store", str(store), "-a", "1B"])["used"] is True
    assert main(["--json", "used", "--store", str(store), "-a", "1C"])["used"] is False


def test_used_empty_store(tmp_path):
    result = main(["--json", "used", "--store", str(tmp_path / "missing.json")])
    assert result == {"count": 0, "addresses": []}
