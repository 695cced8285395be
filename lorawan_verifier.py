# MIC verification and payload decryption of a whole frame.
#
# The functions take the keys and the counter context explicitly and keep
# nothing between calls.  The FCnt is resolved once per frame and the same
# value is used for both the MIC and the decryption.
#
# A MIC which doesn't match is not an error.  It's reported in MicResult
# together with the counter that was used, since a wrong key or a stale
# counter context is the usual reason.

import logging
from dataclasses import dataclass
from typing import Optional
from lorawan_cipher import lorawan_frmp_encryption, lorawan_join_accept_decrypt
from lorawan_errors import (check_key, MissingKeyMaterial,
                            MissingRequiredContext, UnsupportedFrameType)
from lorawan_fcnt import resolve_counter, ResolvedCounter
from lorawan_keys import (SessionKeys11, MicParams11, counter_domain,
                          select_cipher_key, select_mic_keys)
from lorawan_mic import (mic_join_request, mic_join_accept, mic_data10,
                         mic_data11, compare_mic)
from lorawan_parser import (parse_phy_pdu, parse_join_accept_body,
                            DataFrame, JoinRequestFrame, JoinAcceptFrame,
                            JoinAcceptBody)

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class MicResult:
    valid: bool
    computed: bytes
    received: bytes
    key_role: str
    counter: Optional[ResolvedCounter] = None

@dataclass(frozen=True)
class DecryptResult:
    plaintext: bytes
    key_role: str
    counter: ResolvedCounter

@dataclass(frozen=True)
class JoinAcceptResult:
    body: JoinAcceptBody
    decrypted: bytes
    mic: MicResult

@dataclass(frozen=True)
class DecodeResult:
    """
    mic and payload are None when the key to process them was not given.
    join_accept is set only for a Join Accept decrypted with AppKey.
    """
    frame: object
    mic: Optional[MicResult] = None
    payload: Optional[DecryptResult] = None
    join_accept: Optional[JoinAcceptResult] = None

def _mic_result(computed, received, key_role, counter=None):
    valid = compare_mic(computed, received)
    if not valid:
        logger.info("MIC mismatch: computed=%s received=%s key=%s fcnt=%s",
                    computed.hex(), bytes(received).hex(), key_role,
                    counter.fcnt if counter else None)
    return MicResult(valid=valid, computed=bytes(computed),
                     received=bytes(received), key_role=key_role,
                     counter=counter)

def _as_frame(frame, frame_type):
    if isinstance(frame, (bytes, bytearray)):
        frame = parse_phy_pdu(frame)
    if not isinstance(frame, frame_type):
        # a frame of another category, e.g. a data frame for Join Request.
        raise UnsupportedFrameType(frame.mhdr.mtype)
    return frame

def verify_join_request(frame, appkey):
    """
    frame: JoinRequestFrame or the PHYPayload in bytes.
    """
    frame = _as_frame(frame, JoinRequestFrame)
    computed = mic_join_request(appkey, frame.mhdr.mhdr, frame.joineui,
                                frame.deveui, frame.devnonce)
    return _mic_result(computed, frame.mic, "AppKey")

def decrypt_join_accept(frame, appkey):
    """
    decrypt Join-Accept and verify the MIC in it.
        frame: JoinAcceptFrame or the PHYPayload in bytes.
    """
    frame = _as_frame(frame, JoinAcceptFrame)
    check_key("AppKey", appkey)
    decrypted = lorawan_join_accept_decrypt(appkey, frame.encrypted)
    body = parse_join_accept_body(decrypted)
    computed = mic_join_accept(appkey, frame.mhdr.mhdr, body.fields)
    return JoinAcceptResult(body=body, decrypted=decrypted,
                            mic=_mic_result(computed, body.mic, "AppKey"))

def resolve_frame_counter(frame, keys, context=None):
    """
    resolve the FCnt of a data frame in the domain selected by the version
    of the keys, the direction and FPort.
    """
    domain = counter_domain(keys, frame.msg_dir, frame.fport)
    return resolve_counter(domain, frame.fcnt, context)

def verify_data_mic(frame, keys, context=None, params=None, counter=None):
    """
    verify the MIC of a data frame.
        keys: SessionKeys10 or SessionKeys11.
        context: FrameCounterContext or None.
        params: MicParams11, needed for LoRaWAN 1.1.
        counter: ResolvedCounter already resolved for this frame, or None.
    """
    frame = _as_frame(frame, DataFrame)
    roles = select_mic_keys(keys, frame.msg_dir)
    if counter is None:
        counter = resolve_frame_counter(frame, keys, context)
    if isinstance(keys, SessionKeys11):
        if params is None:
            params = MicParams11()
        computed = mic_data11(keys.fnwksintkey, keys.snwksintkey, frame.msg,
                              frame.devaddr, frame.msg_dir, counter.fcnt,
                              ack=frame.ack, conf_fcnt=params.conf_fcnt,
                              txdr=params.txdr, txch=params.txch)
    else:
        computed = mic_data10(keys.nwkskey, frame.msg, frame.devaddr,
                              frame.msg_dir, counter.fcnt)
    key_role = ",".join([role for role, _ in roles])
    return _mic_result(computed, frame.mic, key_role, counter)

def decrypt_data_payload(frame, keys, context=None, counter=None):
    """
    decrypt FRMPayload of a data frame.
    FPort 0 selects the network key, other ports select AppSKey.
    """
    frame = _as_frame(frame, DataFrame)
    if frame.fport is None:
        raise MissingRequiredContext("FPort", "the frame has no FRMPayload.")
    role, key = select_cipher_key(keys, frame.fport)
    if counter is None:
        counter = resolve_frame_counter(frame, keys, context)
    plaintext = lorawan_frmp_encryption(key, frame.frm_payload, frame.devaddr,
                                        frame.msg_dir, counter.fcnt,
                                        key_name=role)
    return DecryptResult(plaintext=plaintext, key_role=role, counter=counter)

def _has_mic_keys(keys, msg_dir):
    try:
        select_mic_keys(keys, msg_dir)
    except MissingKeyMaterial as e:
        logger.warning("not checked MIC due to no %s specified.", e.role)
        return False
    return True

def _has_cipher_key(keys, fport):
    try:
        select_cipher_key(keys, fport)
    except MissingKeyMaterial as e:
        logger.warning("not decrypted FRMPayload due to no %s specified.",
                       e.role)
        return False
    return True

def decode(phy_pdu, appkey=None, keys=None, context=None, params=None):
    """
    parse a PHYPayload and verify/decrypt it as far as the keys allow.
        appkey: AppKey for Join Request and Join Accept.
        keys: SessionKeys10 or SessionKeys11 for data frames.
        context: FrameCounterContext or None.
        params: MicParams11 or None.
    """
    frame = parse_phy_pdu(phy_pdu)
    if isinstance(frame, JoinRequestFrame):
        if appkey is None:
            logger.warning("not calculated MIC due to no AppKey specified.")
            return DecodeResult(frame=frame)
        return DecodeResult(frame=frame,
                            mic=verify_join_request(frame, appkey))
    if isinstance(frame, JoinAcceptFrame):
        if appkey is None:
            logger.warning("not decrypted Join Accept due to no AppKey specified.")
            return DecodeResult(frame=frame)
        ja = decrypt_join_accept(frame, appkey)
        return DecodeResult(frame=frame, mic=ja.mic, join_accept=ja)
    # data frame
    if keys is None:
        logger.warning("not checked MIC due to no session keys specified.")
        return DecodeResult(frame=frame)
    mic_o = None
    payload_o = None
    counter = None
    if _has_mic_keys(keys, frame.msg_dir):
        counter = resolve_frame_counter(frame, keys, context)
        mic_o = verify_data_mic(frame, keys, params=params, counter=counter)
    if frame.fport is not None and frame.frm_payload:
        if _has_cipher_key(keys, frame.fport):
            if counter is None:
                counter = resolve_frame_counter(frame, keys, context)
            payload_o = decrypt_data_payload(frame, keys, counter=counter)
    return DecodeResult(frame=frame, mic=mic_o, payload=payload_o)
