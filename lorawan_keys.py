# Session keys and the selection of key and counter for a data frame.
#
# The LoRaWAN version is carried by the type of the session keys:
# SessionKeys10 for LoRaWAN 1.0.x, SessionKeys11 for LoRaWAN 1.1.
# The AppKey used by the join procedure is passed on its own.

from dataclasses import dataclass
from typing import Optional
from lorawan_cipher import UP_LINK, DOWN_LINK
from lorawan_errors import check_key, MissingKeyMaterial
from lorawan_fcnt import CounterDomain

def _check_keys(obj, names):
    for key_name, attr in names:
        key = getattr(obj, attr)
        if key is not None:
            # frozen dataclass, normalize to bytes in place.
            object.__setattr__(obj, attr, check_key(key_name, key))

@dataclass(frozen=True)
class SessionKeys10:
    nwkskey: Optional[bytes] = None
    appskey: Optional[bytes] = None

    version = "1.0"

    def __post_init__(self):
        _check_keys(self, [("NwkSKey", "nwkskey"), ("AppSKey", "appskey")])

@dataclass(frozen=True)
class SessionKeys11:
    fnwksintkey: Optional[bytes] = None
    snwksintkey: Optional[bytes] = None
    nwksenckey: Optional[bytes] = None
    appskey: Optional[bytes] = None

    version = "1.1"

    def __post_init__(self):
        _check_keys(self, [("FNwkSIntKey", "fnwksintkey"),
                           ("SNwkSIntKey", "snwksintkey"),
                           ("NwkSEncKey", "nwksenckey"),
                           ("AppSKey", "appskey")])

@dataclass(frozen=True)
class MicParams11:
    """
    extra inputs of the LoRaWAN 1.1 MIC.
        conf_fcnt: FCnt of the confirmed frame acknowledged by the ACK bit.
        txdr, txch: data rate and channel of the uplink.
    """
    conf_fcnt: Optional[int] = None
    txdr: Optional[int] = None
    txch: Optional[int] = None

def session_keys(version, **keys):
    """
    build the session keys of the version, "1.0" or "1.1".
    the keys which don't belong to the version are ignored.
    """
    if version in ["1.0", "1.0.x", "1.0.2", "1.0.3", "1.0.4"]:
        return SessionKeys10(nwkskey=keys.get("nwkskey"),
                             appskey=keys.get("appskey"))
    elif version == "1.1":
        return SessionKeys11(fnwksintkey=keys.get("fnwksintkey"),
                             snwksintkey=keys.get("snwksintkey"),
                             nwksenckey=keys.get("nwksenckey"),
                             appskey=keys.get("appskey"))
    raise ValueError("unsupported LoRaWAN version {}".format(version))

def counter_domain(version, msg_dir, fport):
    """
    the FCnt domain of a data frame.
        version: "1.0" or "1.1", or session keys.
        fport: int, or None when the frame has no FPort.
    a LoRaWAN 1.0.x device has only one downlink counter.
    """
    if not isinstance(version, str):
        version = version.version
    if msg_dir == UP_LINK:
        return CounterDomain.UPLINK
    if version == "1.1" and fport is not None and fport > 0:
        return CounterDomain.APP_DOWNLINK
    return CounterDomain.NWK_DOWNLINK

def select_cipher_key(keys, fport):
    """
    return (role, key) to decrypt the FRMPayload.
    FPort 0 carries MAC commands, encrypted by the network key.
    """
    if fport == 0:
        if isinstance(keys, SessionKeys11):
            role, key = "NwkSEncKey", keys.nwksenckey
        else:
            role, key = "NwkSKey", keys.nwkskey
    else:
        role, key = "AppSKey", keys.appskey
    if key is None:
        raise MissingKeyMaterial(role)
    return role, key

def select_mic_keys(keys, msg_dir):
    """
    return a list of (role, key) to compute the MIC.
        v1.0.x: NwkSKey
        v1.1 uplink: FNwkSIntKey, SNwkSIntKey
        v1.1 downlink: SNwkSIntKey
    """
    if isinstance(keys, SessionKeys11):
        if msg_dir == DOWN_LINK:
            roles = [("SNwkSIntKey", keys.snwksintkey)]
        else:
            roles = [("FNwkSIntKey", keys.fnwksintkey),
                     ("SNwkSIntKey", keys.snwksintkey)]
    else:
        roles = [("NwkSKey", keys.nwkskey)]
    for role, key in roles:
        if key is None:
            raise MissingKeyMaterial(role)
    return roles
