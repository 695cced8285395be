# Message Integrity Code of LoRaWAN frames.
#
#     Join-Request     cmac(AppKey, MHDR | JoinEUI | DevEUI | DevNonce)
#     Join-Accept      cmac(AppKey, MHDR | JoinNonce | NetID | DevAddr |
#                                   DLSettings | RxDelay | [CFList])
#     Data, v1.0.x     cmac(NwkSKey, B0 | MHDR | MACPayload)
#     Data, v1.1 down  cmacF = cmac(SNwkSIntKey, B0 | msg)
#     Data, v1.1 up    cmacS = cmac(SNwkSIntKey, B1 | msg)
#                      cmacF = cmac(FNwkSIntKey, B0 | msg)
#                      MIC = cmacS[0:2] | cmacF[0:2]
#
# All of the MIC below are in the wire order, i.e. the first 4 bytes of
# the CMAC.  devaddr is passed as it is carried in the frame.

import hmac
import logging
from aes_cmac import aes128_cmac
from lorawan_cipher import UP_LINK, DOWN_LINK
from lorawan_errors import check_key, check_field, InvalidFieldLength
from lorawan_errors import MissingRequiredContext

logger = logging.getLogger(__name__)

MIC_SIZE = 4
MIC_BLOCK_TAG = 0x49

def _cmac(key, msg, key_name):
    cmac = aes128_cmac(key, msg, key_name)
    logger.debug("%s: msg=%s cmac=%s", key_name, bytes(msg).hex(), cmac.hex())
    return cmac

def compare_mic(computed, received):
    return hmac.compare_digest(bytes(computed), bytes(received))

def mic_join_request(appkey, mhdr, joineui, deveui, devnonce):
    """
        joineui, deveui: 8 bytes, in little endian as in the frame.
        devnonce: int.
    """
    msg = bytearray([mhdr])
    msg += check_field("JoinEUI", joineui, 8)
    msg += check_field("DevEUI", deveui, 8)
    msg += (devnonce & 0xffff).to_bytes(2, "little")
    return _cmac(appkey, msg, "AppKey")[:MIC_SIZE]

def mic_join_accept(appkey, mhdr, fields):
    """
        fields: JoinNonce | NetID | DevAddr | DLSettings | RxDelay | [CFList]
            in plaintext, 12 or 28 bytes.
    """
    if len(fields) not in [12, 28]:
        raise InvalidFieldLength("Join-Accept fields", (12, 28), len(fields))
    msg = bytearray([mhdr]) + bytes(fields)
    return _cmac(appkey, msg, "AppKey")[:MIC_SIZE]

def build_b0(msg_dir, devaddr, fcnt, msg_len, conf_fcnt=0, txdr=0, txch=0):
    """
    B0 (and B1 in v1.1) block.
        0x49 | ConfFCnt(2) | TxDr | TxCh | Dir | DevAddr | FCnt | 0x00 | Len
    ConfFCnt, TxDr and TxCh are zero in v1.0.x.
    """
    B0 = bytearray(16)
    B0[0] = MIC_BLOCK_TAG
    B0[1:3] = (conf_fcnt & 0xffff).to_bytes(2, "little")
    B0[3] = txdr & 0xff
    B0[4] = txch & 0xff
    B0[5] = msg_dir
    B0[6:10] = check_field("DevAddr", devaddr, 4)
    B0[10:14] = (fcnt & 0xffffffff).to_bytes(4, "little")
    B0[15] = msg_len & 0xff
    return B0

def mic_data10(nwkskey, msg, devaddr, msg_dir, fcnt):
    """
    LoRaWAN 1.0.x MIC of a data frame.
        msg: MHDR | MACPayload, i.e. the frame without the MIC.
        fcnt: the resolved 32-bit FCnt.
    This function refers to:
    - 4.4 Message Integrity Code (MIC)
    """
    B0 = build_b0(msg_dir, devaddr, fcnt, len(msg))
    return _cmac(nwkskey, bytes(B0) + bytes(msg), "NwkSKey")[:MIC_SIZE]

def _conf_fcnt(ack, conf_fcnt):
    if not ack:
        return 0
    if conf_fcnt is None:
        raise MissingRequiredContext(
                "ConfFCnt", "ACK bit is set, ConfFCnt is required.")
    return conf_fcnt

def mic_data11_downlink(snwksintkey, msg, devaddr, fcnt, ack=False,
                        conf_fcnt=None):
    """
    LoRaWAN 1.1 MIC of a downlink data frame.
        conf_fcnt: FCnt of the confirmed uplink being acknowledged,
            required when ack is set.
    MIC = cmac(SNwkSIntKey, B0 | msg)[0:4]
    """
    conf = _conf_fcnt(ack, conf_fcnt)
    B0 = build_b0(DOWN_LINK, devaddr, fcnt, len(msg), conf_fcnt=conf)
    return _cmac(snwksintkey, bytes(B0) + bytes(msg),
                 "SNwkSIntKey")[:MIC_SIZE]

def mic_data11_uplink(fnwksintkey, snwksintkey, msg, devaddr, fcnt,
                      txdr, txch, ack=False, conf_fcnt=None):
    """
    LoRaWAN 1.1 MIC of an uplink data frame.
        txdr, txch: data rate and channel index the uplink was sent on.
        conf_fcnt: FCnt of the confirmed downlink being acknowledged,
            required when ack is set.  It's put into B1 only.
    MIC = cmacS[0:2] | cmacF[0:2]
    """
    if txdr is None:
        raise MissingRequiredContext("TxDR",
                                     "Uplink packets require TxDR and TxCH.")
    if txch is None:
        raise MissingRequiredContext("TxCH",
                                     "Uplink packets require TxDR and TxCH.")
    conf = _conf_fcnt(ack, conf_fcnt)
    B0 = build_b0(UP_LINK, devaddr, fcnt, len(msg))
    B1 = build_b0(UP_LINK, devaddr, fcnt, len(msg),
                  conf_fcnt=conf, txdr=txdr, txch=txch)
    # both keys are validated before any CMAC is computed.
    check_key("FNwkSIntKey", fnwksintkey)
    check_key("SNwkSIntKey", snwksintkey)
    cmacS = _cmac(snwksintkey, bytes(B1) + bytes(msg), "SNwkSIntKey")
    cmacF = _cmac(fnwksintkey, bytes(B0) + bytes(msg), "FNwkSIntKey")
    return cmacS[0:2] + cmacF[0:2]

def mic_data11(fnwksintkey, snwksintkey, msg, devaddr, msg_dir, fcnt,
               ack=False, conf_fcnt=None, txdr=None, txch=None):
    """
    LoRaWAN 1.1 MIC of a data frame in either direction.
    fnwksintkey is not used for downlink and may be None.
    """
    if msg_dir == DOWN_LINK:
        return mic_data11_downlink(snwksintkey, msg, devaddr, fcnt,
                                   ack=ack, conf_fcnt=conf_fcnt)
    return mic_data11_uplink(fnwksintkey, snwksintkey, msg, devaddr, fcnt,
                             txdr, txch, ack=ack, conf_fcnt=conf_fcnt)
