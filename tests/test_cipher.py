import pytest
from Crypto.Cipher import AES

import lorawan_cipher
from lorawan_cipher import (lorawan_frmp_encryption,
                            lorawan_join_accept_decrypt,
                            lorawan_join_accept_encrypt, UP_LINK, DOWN_LINK)
from lorawan_errors import InvalidKeyLength, InvalidFieldLength
from lorawan_testlib import (TEST_APPSKEY, JOIN_ACCEPT, JOIN_ACCEPT_DECRYPTED,
                             ZERO_KEY, keystream_xor)

DEVADDR = bytes.fromhex("f17dbe49")

def test_frmpayload_known_answer():
    plain = lorawan_frmp_encryption(TEST_APPSKEY, bytes.fromhex("95437876"),
                                    DEVADDR, UP_LINK, 2)
    assert plain == b"test"

@pytest.mark.parametrize("size", [0, 1, 15, 16, 17, 31, 32, 33, 100, 255])
@pytest.mark.parametrize("msg_dir", [UP_LINK, DOWN_LINK])
def test_frmpayload_self_inverse(size, msg_dir):
    payload = bytes([(i*7 + 3) & 0xff for i in range(size)])
    enc = lorawan_frmp_encryption(TEST_APPSKEY, payload, DEVADDR, msg_dir,
                                  0x00012345)
    assert len(enc) == size
    assert lorawan_frmp_encryption(TEST_APPSKEY, enc, DEVADDR, msg_dir,
                                   0x00012345) == payload

def test_frmpayload_matches_block_construction():
    payload = bytes(range(50))
    expected = keystream_xor(TEST_APPSKEY, DOWN_LINK, DEVADDR, 0xdeadbeef,
                             payload)
    assert lorawan_frmp_encryption(TEST_APPSKEY, payload, DEVADDR, DOWN_LINK,
                                   0xdeadbeef) == expected

def test_frmpayload_block_counter_wraps():
    # 257 blocks, the counter of the last block wraps to 1.
    payload = bytes(16*257)
    enc = lorawan_frmp_encryption(TEST_APPSKEY, payload, DEVADDR, UP_LINK, 1)
    assert enc[16*256:] == enc[:16]
    assert enc[16*255:16*256] != enc[:16]

def test_frmpayload_uses_full_counter():
    payload = bytes(16)
    low = lorawan_frmp_encryption(TEST_APPSKEY, payload, DEVADDR, UP_LINK,
                                  0x00000005)
    high = lorawan_frmp_encryption(TEST_APPSKEY, payload, DEVADDR, UP_LINK,
                                   0x00010005)
    assert low != high

def test_frmpayload_empty_does_not_call_aes(monkeypatch):
    def fail(self, data):
        raise AssertionError("AES must not be called")
    monkeypatch.setattr(lorawan_cipher.AES_ECB, "encrypt", fail)
    assert lorawan_frmp_encryption(TEST_APPSKEY, b"", DEVADDR, UP_LINK,
                                   0) == b""

def test_frmpayload_key_length():
    with pytest.raises(InvalidKeyLength) as e:
        lorawan_frmp_encryption(bytes(15), b"x", DEVADDR, UP_LINK, 0,
                                key_name="AppSKey")
    assert e.value.expected == 16
    assert e.value.actual == 15
    assert e.value.key_name == "AppSKey"

def test_frmpayload_devaddr_length():
    with pytest.raises(InvalidFieldLength) as e:
        lorawan_frmp_encryption(TEST_APPSKEY, b"x", DEVADDR[:3], UP_LINK, 0)
    assert e.value.field_name == "DevAddr"
    assert e.value.expected == 4
    assert e.value.actual == 3

def test_join_accept_recovered_by_aes_encrypt():
    wire = bytes.fromhex(JOIN_ACCEPT)[1:]
    plain = lorawan_join_accept_decrypt(ZERO_KEY, wire)
    assert plain == bytes.fromhex(JOIN_ACCEPT_DECRYPTED)
    # the recovery is the AES encrypt operation, not decrypt.
    aes = AES.new(ZERO_KEY, AES.MODE_ECB)
    assert plain == aes.encrypt(wire)
    assert plain != aes.decrypt(wire)

def test_join_accept_round_trip():
    wire = bytes.fromhex(JOIN_ACCEPT)[1:]
    plain = bytes.fromhex(JOIN_ACCEPT_DECRYPTED)
    assert lorawan_join_accept_encrypt(ZERO_KEY, plain) == wire
    assert lorawan_join_accept_decrypt(
            ZERO_KEY, lorawan_join_accept_encrypt(ZERO_KEY, plain)) == plain

@pytest.mark.parametrize("size", [0, 15, 17, 48])
def test_join_accept_body_length(size):
    with pytest.raises(InvalidFieldLength):
        lorawan_join_accept_decrypt(ZERO_KEY, bytes(size))
