import re
import binascii
from base64 import b64decode
from lorawan_errors import MalformedHex

# Note:
#   LoRaWAN puts multi-octet fields on the wire in little endian.
#   They are conventionally displayed in big endian, so reverse_bytes()
#   is applied before printing DevAddr, EUIs and so on.

def a2b_hex(buf, string_type="hexstr"):
    """
    buf must be in several types of hex string.
    return a bytearray, or None if buf is None.
    """
    if buf is None:
        return None
    if isinstance(buf, list):
        buf = "".join(buf)
    if string_type == "base64":
        try:
            return bytearray(b64decode(buf, validate=True))
        except binascii.Error as e:
            raise MalformedHex("invalid base64, {}".format(e)) from e
    elif "." in buf:
        # in case like "a4.9.0.19"
        hexstr = "".join([i.strip().rjust(2,"0") for i in buf.split(".")])
    else:
        # others
        hexstr = re.sub(r"([,\s\n]|0x|0X)", "", buf)
    if len(hexstr)%2 == 1:
        raise MalformedHex("the length of hexstr is not even. len={} hexstr={}"
                           .format(len(hexstr), hexstr))
    if not re.fullmatch(r"[0-9a-fA-F]*", hexstr):
        raise MalformedHex("non-hex character in hexstr={}".format(hexstr))
    return bytearray.fromhex(hexstr)

def b2a_hex(data, upper=False):
    """
    data: bytes, bytearray or a list of ints.
    """
    hexstr = bytes(data).hex()
    return hexstr.upper() if upper else hexstr

def x2int(data):
    """
    convert bytes in little endian into an unsigned int.
    """
    return int.from_bytes(bytes(data), "little")

def reverse_bytes(data):
    return bytes(data)[::-1]
