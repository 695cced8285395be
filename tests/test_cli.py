import os
import pytest

from lorawan_cli import main, build_parser, load_config, formx, ascii_text
from lorawan_testlib import (TEST_FRAME, JOIN_ACCEPT, build_data_frame,
                             mic10)

NWKSKEY = "44024241ed4ce9a68c6a8bc055233fd3"
APPSKEY = "ec925802ae430ca77fd3dd73cb2cc588"

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("LORAWAN_"):
            monkeypatch.delenv(name)

def test_main_data_frame(capsys):
    assert main([TEST_FRAME, "--nwkskey", NWKSKEY, "--appskey", APPSKEY]) == 0
    out = capsys.readouterr().out
    assert "=== PHYPayload ===" in out
    assert "MType : Unconfirmed Data Up" in out
    assert "MIC check : OK" in out
    assert 'ASCII : "test"' in out
    assert "Key used : AppSKey" in out

def test_main_split_hex(capsys):
    assert main(["40F17DBE", "4900020001954378762B11FF0D",
                 "--NwkSKey", NWKSKEY]) == 0
    assert "MIC check : OK" in capsys.readouterr().out

def test_main_wrong_key_hint(capsys):
    assert main([TEST_FRAME, "--nwkskey", "00"*16]) == 0
    out = capsys.readouterr().out
    assert "MIC check : NG" in out
    assert "Packet FCnt : 2" in out
    assert "FCntUp context" in out

def test_main_rollover_context(capsys):
    devaddr = bytes.fromhex("04030201")
    key = bytes.fromhex(NWKSKEY)
    msg = build_data_frame(0x40, devaddr, 0x00020005, 2, b"hi",
                           bytes.fromhex(APPSKEY))
    phy = (msg + mic10(key, msg, devaddr, 0, 0x00020005)).hex()
    assert main([phy, "--nwkskey", NWKSKEY, "--appskey", APPSKEY,
                 "--fcnt-up", "0x1fff0"]) == 0
    out = capsys.readouterr().out
    assert "MIC check : OK" in out
    assert 'ASCII : "hi"' in out

def test_main_join_accept(capsys):
    assert main([JOIN_ACCEPT, "--appkey", "00"*16]) == 0
    out = capsys.readouterr().out
    assert "JoinNonce : 7374884" in out
    assert "MIC check : OK" in out

def test_main_malformed(capsys):
    assert main(["40F1"]) == 1
    assert "ERROR:" in capsys.readouterr().err
    assert main(["40F1Z"]) == 1

def test_main_bad_key_length(capsys):
    assert main([TEST_FRAME, "--nwkskey", NWKSKEY[:30]]) == 1
    assert "NwkSKey must be 16 bytes" in capsys.readouterr().err

def test_main_from_file(tmp_path, capsys):
    path = tmp_path / "frames.txt"
    path.write_text("{}\n\n{}\n".format(TEST_FRAME, TEST_FRAME))
    assert main(["--from-file", str(path), "--nwkskey", NWKSKEY]) == 0
    assert capsys.readouterr().out.count("MIC check : OK") == 2

def test_main_without_input(capsys):
    assert main([]) == 0
    assert "usage" in capsys.readouterr().out

def test_load_config_precedence(tmp_path):
    keys_file = tmp_path / "keys.yml"
    keys_file.write_text(
            "NwkSKey: \"{}\"\n"
            "fcnt-up: 0x1fff0\n"
            "afcnt_down: 7\n".format(NWKSKEY))
    environ = {"LORAWAN_NWKSKEY": "00"*16,
               "LORAWAN_APPSKEY": APPSKEY,
               "LORAWAN_AFCNT_DOWN": "9",
               "LORAWAN_TXDR": "3"}
    opt = build_parser().parse_args(["--keys-file", str(keys_file),
                                     "--fcnt-up", "5"])
    load_config(opt, environ=environ)
    # keys file over environment.
    assert opt.nwkskey == NWKSKEY
    assert opt.afcnt_down == 7
    # environment over defaults.
    assert opt.appskey == APPSKEY
    assert opt.txdr == 3
    # command line over keys file.
    assert opt.fcnt_up == 5
    assert opt.version == "1.0"
    assert opt.string_type == "hexstr"
    assert opt.appkey is None

def test_load_config_not_a_mapping(tmp_path):
    keys_file = tmp_path / "keys.yml"
    keys_file.write_text("- a\n- b\n")
    opt = build_parser().parse_args(["--keys-file", str(keys_file)])
    with pytest.raises(ValueError):
        load_config(opt, environ={})

def test_formx():
    assert formx(923600000, "hz") == "923.6 MHz (923600000 Hz)"
    assert formx(True) == "1"
    assert formx(0x2a) == "x 2a"
    assert formx(b"\x01\x02") == "x 0102"
    with pytest.raises(ValueError):
        formx("x")

def test_ascii_text():
    assert ascii_text(b"te\x00st") == "te.st"

def test_main_keys_file_missing(tmp_path, capsys):
    path = tmp_path / "missing.yml"
    assert main([TEST_FRAME, "--keys-file", str(path)]) == 1
    err = capsys.readouterr().err
    assert err.startswith("ERROR:")
    assert "missing.yml" in err

def test_main_keys_file_malformed(tmp_path, capsys):
    path = tmp_path / "keys.yml"
    path.write_text("nwkskey: [unclosed\n")
    assert main([TEST_FRAME, "--keys-file", str(path)]) == 1
    assert "ERROR:" in capsys.readouterr().err

def test_load_config_non_string_key(tmp_path):
    keys_file = tmp_path / "keys.yml"
    keys_file.write_text("1: 2\nnwkskey: \"{}\"\n".format(NWKSKEY))
    opt = build_parser().parse_args(["--keys-file", str(keys_file)])
    load_config(opt, environ={})
    assert opt.nwkskey == NWKSKEY
