import logging
from aes_ecb import AES_ECB
from lorawan_errors import check_field, InvalidFieldLength

# Note:
#     devaddr is passed as it is carried in the frame, i.e. little endian.
#     fcnt is the resolved 32-bit int, see lorawan_fcnt.
#     e.g.
#     The devaddr is "12345678", which is "78563412" in the wire format.
#     "78563412" is what has to be passed to the functions below.

logger = logging.getLogger(__name__)

UP_LINK = 0
DOWN_LINK = 1

def _cipher_block(devaddr, msg_dir, fcnt):
    """
    block A used to generate the key stream.
        0x01 | 0x00 x 4 | Dir | DevAddr | FCnt | 0x00 | i
    the last byte is filled by the caller.
    """
    Ai = bytearray(16)
    Ai[0] = 0x01
    Ai[5] = msg_dir
    Ai[6:10] = check_field("DevAddr", devaddr, 4)
    Ai[10:14] = (fcnt & 0xffffffff).to_bytes(4, "little")
    return Ai

def lorawan_frmp_encryption(key, msg, devaddr, msg_dir, fcnt,
                            key_name="key"):
    """
    LoRaWAN FRMPayload encryptor/decryptor in AES128 block-counter mode.
    the same call both encrypts and decrypts.
        key: the size must be 16 bytes.
        msg: message to be encrypted or decrypted.
        devaddr: DevAddr, 4 bytes, in little endian.
        msg_dir: UP_LINK(=0) or DOWN_LINK(=1)
        fcnt: FCnt in int, 32-bit.
    This function refers to:
    - 4.3.3 MAC Frame Payload Encryption (FRMPayload)
    - LoRaMacPayloadEncrypt() in Lora-net/LoRaMac-node.
    """
    Ai = _cipher_block(devaddr, msg_dir, fcnt)
    cipher = AES_ECB(key, key_name)
    size = len(msg)
    if size == 0:
        return bytes()

    buf = bytearray(size)
    offset = 0
    ctr = 1

    while size > 0:
        Ai[15] = ctr & 0xff
        ctr += 1
        Si = cipher.encrypt(Ai)
        n = min(size, 16)
        for i in range(n):
            buf[offset + i] = msg[offset + i] ^ Si[i]
        size -= n
        offset += n

    logger.debug("%s: dir=%d fcnt=%d A0=%s", key_name, msg_dir, fcnt,
                 bytes(Ai[:15]).hex())
    return bytes(buf)

def _check_join_accept_body(body):
    if len(body) not in [16, 32]:
        raise InvalidFieldLength("JoinAccept body", (16, 32), len(body))
    return bytes(body)

def lorawan_join_accept_decrypt(appkey, body):
    """
    recover the plaintext of Join-Accept.
        body: Join-Accept | MIC on the wire, 16 or 32 bytes.
    The network server encrypts the Join-Accept by AES decryption,
    so that the end-device only needs AES encryption.
    Therefore, AES *encrypt* recovers the plaintext.  Do not replace it
    with decrypt().
    """
    body = _check_join_accept_body(body)
    return AES_ECB(appkey, "AppKey").encrypt(body)

def lorawan_join_accept_encrypt(appkey, body):
    """
    produce the wire form of Join-Accept as the network server does.
        body: Join-Accept | MIC in plaintext, 16 or 32 bytes.
    It's the inverse of lorawan_join_accept_decrypt().
    """
    body = _check_join_accept_body(body)
    return AES_ECB(appkey, "AppKey").decrypt(body)
