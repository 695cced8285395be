# PHYPayload decomposition.
#
#       1  |    1...M   |  4
#     MHDR | MACPayload | MIC
#     MHDR |   JoinReq  | MIC
#     MHDR |  JoinAccept (encrypted, MIC included)
#
# Only the structure is handled here.  Neither a key nor the MIC is used.

import enum
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Tuple, Union
from lorawan_a2b_hex import x2int, reverse_bytes
from lorawan_cipher import UP_LINK, DOWN_LINK
from lorawan_errors import (FrameTooShort, FOptsLengthOverflow,
                            InvalidFieldLength, UnsupportedFrameType)

# NOTE:
#   In LoRaWAN, the network byte order is little endian.
#   The fields are kept as they are in the wire, except the int fields.

logger = logging.getLogger(__name__)

MIC_SIZE = 4
FHDR_MIN_SIZE = 7
FOPTS_MAX_SIZE = 15
DATA_FRAME_MIN_SIZE = 1 + FHDR_MIN_SIZE + MIC_SIZE
JOIN_REQUEST_SIZE = 23
JOIN_ACCEPT_SIZES = (17, 33)

class MType(enum.IntEnum):
    JoinRequest = 0
    JoinAccept = 1
    UnconfirmedDataUp = 2
    UnconfirmedDataDown = 3
    ConfirmedDataUp = 4
    ConfirmedDataDown = 5
    RejoinRequest = 6
    Proprietary = 7

MTYPE_NAMES = MappingProxyType({
    MType.JoinRequest: "Join Request",
    MType.JoinAccept: "Join Accept",
    MType.UnconfirmedDataUp: "Unconfirmed Data Up",
    MType.UnconfirmedDataDown: "Unconfirmed Data Down",
    MType.ConfirmedDataUp: "Confirmed Data Up",
    MType.ConfirmedDataDown: "Confirmed Data Down",
    MType.RejoinRequest: "Rejoin Request",
    MType.Proprietary: "Proprietary",
    })

DATA_MTYPES = frozenset([MType.UnconfirmedDataUp, MType.UnconfirmedDataDown,
                         MType.ConfirmedDataUp, MType.ConfirmedDataDown])

FCTRL_UP = MappingProxyType({
    "ADR": 0x80,
    "ADRACKReq": 0x40,
    "ACK": 0x20,
    "ClassB": 0x10,
    })

FCTRL_DOWN = MappingProxyType({
    "ADR": 0x80,
    "RFU": 0x40,
    "ACK": 0x20,
    "FPending": 0x10,
    })

FCTRL_FOPTSLEN_MASK = 0x0f

@dataclass(frozen=True)
class MacFrameHeader:
    """
    MHDR, 1 byte.
        7 6 5 | 4 3 2 |  1 0
        MType |  RFU  | Major
    """
    mhdr: int
    mtype: MType
    major: int

    @property
    def name(self):
        return MTYPE_NAMES[self.mtype]

@dataclass(frozen=True)
class DataFrame:
    mhdr: MacFrameHeader
    devaddr: bytes        # little endian, as in the wire.
    fctrl: int
    fcnt: int             # 16-bit FCnt in the wire.
    fopts: bytes
    fport: Optional[int]
    frm_payload: bytes
    mic: bytes
    phy_pdu: bytes

    def __post_init__(self):
        check_fopts_length(len(self.fopts))

    @property
    def msg_dir(self):
        return frame_direction(self.mhdr.mtype)

    @property
    def flags(self):
        """
        FCtrl bits by name, according to the direction.
        """
        masks = FCTRL_UP if self.msg_dir == UP_LINK else FCTRL_DOWN
        return {k: bool(self.fctrl & v) for k, v in masks.items()}

    @property
    def ack(self):
        return bool(self.fctrl & FCTRL_UP["ACK"])

    @property
    def msg(self):
        """
        MHDR | MACPayload, i.e. the part covered by the MIC.
        """
        return self.phy_pdu[:-MIC_SIZE]

@dataclass(frozen=True)
class JoinRequestFrame:
    mhdr: MacFrameHeader
    joineui: bytes        # little endian, as in the wire.
    deveui: bytes         # little endian, as in the wire.
    devnonce: int
    mic: bytes
    phy_pdu: bytes

@dataclass(frozen=True)
class JoinAcceptFrame:
    """
    Join-Accept as in the wire.  The body can't be read without AppKey.
    """
    mhdr: MacFrameHeader
    encrypted: bytes      # Join-Accept | MIC, 16 or 32 bytes.
    phy_pdu: bytes

@dataclass(frozen=True)
class CFListFrequencies:
    frequencies: Tuple[int, ...]   # in Hz.
    cflist_type: int = 0

@dataclass(frozen=True)
class CFListChannelMasks:
    masks: Tuple[int, ...]         # six 16-bit ChMask.
    cflist_type: int = 1

@dataclass(frozen=True)
class JoinAcceptBody:
    joinnonce: int
    netid: int
    devaddr: bytes        # little endian, as in the wire.
    dlsettings: int
    rxdelay: int
    cflist: Optional[Union[CFListFrequencies, CFListChannelMasks]]
    mic: bytes
    fields: bytes         # the plaintext covered by the MIC, without MHDR.

    @property
    def rx1droffset(self):
        return (self.dlsettings >> 4) & 0x07

    @property
    def rx2datarate(self):
        return self.dlsettings & 0x0f

def check_fopts_length(declared):
    if declared > FOPTS_MAX_SIZE:
        raise FOptsLengthOverflow(declared)

def frame_direction(mtype):
    if mtype in [MType.UnconfirmedDataUp, MType.ConfirmedDataUp]:
        return UP_LINK
    elif mtype in [MType.UnconfirmedDataDown, MType.ConfirmedDataDown]:
        return DOWN_LINK
    raise UnsupportedFrameType(MType(mtype))

def parse_mhdr(mhdr):
    """
    mhdr: 1 byte in int.
    """
    return MacFrameHeader(mhdr=mhdr, mtype=MType((mhdr >> 5) & 0x07),
                          major=mhdr & 0x03)

def parse_mac_payload(phy_pdu, mhdr_o):
    """
    MACPayload parser.
       <-------------- FHDR ------------->
       DevAddr | FCtrl     | FCnt | FOpts | FPort | FRMPayload
    1) DevAddr | foptlen=0 | FCnt | (nul) | != 0  | App. message
    2) DevAddr | foptlen=0 | FCnt | (nul) |  = 0  | MAC Commands
    3) DevAddr | foptlen>0 | FCnt | FOpts | (nul) | (nul)
    4) DevAddr | foptlen>0 | FCnt | FOpts | != 0  | App. message
    """
    if len(phy_pdu) < DATA_FRAME_MIN_SIZE:
        raise FrameTooShort(DATA_FRAME_MIN_SIZE, len(phy_pdu))
    devaddr = phy_pdu[1:5]
    fctrl = phy_pdu[5]
    fcnt = x2int(phy_pdu[6:8])
    foptslen = fctrl & FCTRL_FOPTSLEN_MASK
    check_fopts_length(foptslen)
    offset = 1 + FHDR_MIN_SIZE
    if len(phy_pdu) < offset + foptslen + MIC_SIZE:
        raise FrameTooShort(offset + foptslen + MIC_SIZE, len(phy_pdu))
    fopts = phy_pdu[offset:offset + foptslen]
    offset += foptslen
    if len(phy_pdu) - offset > MIC_SIZE:
        # case 1,2,4
        fport = phy_pdu[offset]
        frm_payload = phy_pdu[offset + 1:-MIC_SIZE]
    else:
        # case 3
        fport = None
        frm_payload = b""
    logger.debug("DevAddr=%s FCtrl=%02x FCnt=%d FOptsLen=%d FPort=%s",
                 reverse_bytes(devaddr).hex(), fctrl, fcnt, foptslen, fport)
    return DataFrame(mhdr=mhdr_o, devaddr=devaddr, fctrl=fctrl, fcnt=fcnt,
                     fopts=fopts, fport=fport, frm_payload=frm_payload,
                     mic=phy_pdu[-MIC_SIZE:], phy_pdu=phy_pdu)

def parse_join_request(phy_pdu, mhdr_o):
    """
    Join Request parser
          8     |   8    |    2
        JoinEUI | DevEUI | DevNonce
    """
    if len(phy_pdu) < JOIN_REQUEST_SIZE:
        raise FrameTooShort(JOIN_REQUEST_SIZE, len(phy_pdu))
    if len(phy_pdu) != JOIN_REQUEST_SIZE:
        raise InvalidFieldLength("Join Request", JOIN_REQUEST_SIZE,
                                 len(phy_pdu))
    return JoinRequestFrame(mhdr=mhdr_o, joineui=phy_pdu[1:9],
                            deveui=phy_pdu[9:17],
                            devnonce=x2int(phy_pdu[17:19]),
                            mic=phy_pdu[19:23], phy_pdu=phy_pdu)

def parse_join_accept(phy_pdu, mhdr_o):
    if len(phy_pdu) < JOIN_ACCEPT_SIZES[0]:
        raise FrameTooShort(JOIN_ACCEPT_SIZES[0], len(phy_pdu))
    if len(phy_pdu) not in JOIN_ACCEPT_SIZES:
        raise InvalidFieldLength("Join Accept", JOIN_ACCEPT_SIZES,
                                 len(phy_pdu))
    return JoinAcceptFrame(mhdr=mhdr_o, encrypted=phy_pdu[1:],
                           phy_pdu=phy_pdu)

def parse_cflist(cflist_x):
    """
    CFList parser, 16 bytes.
    the last byte, CFListType, tells the format.
        0: five frequencies of 3 bytes in 100 Hz, and 1 byte of RFU.
        1: six ChMask of 2 bytes, and 3 bytes of RFU.
    The frequency of 0 means a disabled channel and is dropped.
    """
    if len(cflist_x) != 16:
        raise InvalidFieldLength("CFList", 16, len(cflist_x))
    cflist_type = cflist_x[15]
    if cflist_type == 0:
        freqs = [x2int(cflist_x[i:i+3])*100 for i in range(0, 15, 3)]
        return CFListFrequencies(frequencies=tuple([f for f in freqs if f]))
    return CFListChannelMasks(
            masks=tuple([x2int(cflist_x[i:i+2]) for i in range(0, 12, 2)]),
            cflist_type=cflist_type)

def parse_join_accept_body(body):
    """
    decrypted Join-Accept parser.
        3     |   3   |    4    |     1      |    1    |  (16)   |  4
    JoinNonce | NetID | DevAddr | DLSettings | RxDelay | (CFList) | MIC
    """
    body = bytes(body)
    if len(body) not in [16, 32]:
        raise InvalidFieldLength("Join Accept body", (16, 32), len(body))
    offset = 12
    cflist = None
    if len(body) > offset + MIC_SIZE:
        cflist = parse_cflist(body[offset:offset + 16])
        offset += 16
    return JoinAcceptBody(joinnonce=x2int(body[0:3]),
                          netid=x2int(body[3:6]),
                          devaddr=body[6:10],
                          dlsettings=body[10],
                          rxdelay=body[11],
                          cflist=cflist,
                          mic=body[offset:offset + MIC_SIZE],
                          fields=body[:offset])

def parse_phy_pdu(phy_pdu):
    """
    PHYPayload parser.
        phy_pdu: bytes or bytearray.
    return DataFrame, JoinRequestFrame or JoinAcceptFrame.
    """
    phy_pdu = bytes(phy_pdu)
    if not phy_pdu:
        raise FrameTooShort(1, 0)
    mhdr_o = parse_mhdr(phy_pdu[0])
    logger.debug("MHDR=%02x MType=%s Major=%d", mhdr_o.mhdr, mhdr_o.name,
                 mhdr_o.major)
    if mhdr_o.mtype == MType.JoinRequest:
        return parse_join_request(phy_pdu, mhdr_o)
    elif mhdr_o.mtype == MType.JoinAccept:
        return parse_join_accept(phy_pdu, mhdr_o)
    elif mhdr_o.mtype in DATA_MTYPES:
        return parse_mac_payload(phy_pdu, mhdr_o)
    raise UnsupportedFrameType(mhdr_o.mtype)
