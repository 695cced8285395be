#
# error conditions raised on malformed input.
# a MIC mismatch is not an error; see lorawan_verifier.MicResult.
#

class LoRaWANError(ValueError):
    pass

class MalformedHex(LoRaWANError):
    def __init__(self, reason):
        self.reason = reason
        super().__init__("malformed hex string: {}".format(reason))

class InvalidKeyLength(LoRaWANError):
    def __init__(self, key_name, actual, expected=16):
        self.key_name = key_name
        self.expected = expected
        self.actual = actual
        super().__init__("{} must be {} bytes, but {}."
                         .format(key_name, expected, actual))

class InvalidFieldLength(LoRaWANError):
    """
    expected is an int, or a tuple of the accepted lengths.
    """
    def __init__(self, field_name, expected, actual):
        self.field_name = field_name
        self.expected = expected
        self.actual = actual
        if isinstance(expected, tuple):
            expected = " or ".join([str(i) for i in expected])
        super().__init__("length of {} must be {} bytes, but {}."
                         .format(field_name, expected, actual))

class FrameTooShort(LoRaWANError):
    def __init__(self, minimum, actual):
        self.minimum = minimum
        self.actual = actual
        super().__init__("frame is too short, need {} bytes at least, but {}."
                         .format(minimum, actual))

class FOptsLengthOverflow(LoRaWANError):
    def __init__(self, declared):
        self.declared = declared
        super().__init__("FOpts must not exceed 15 bytes, but {}."
                         .format(declared))

class MissingKeyMaterial(LoRaWANError):
    def __init__(self, role):
        self.role = role
        super().__init__("{} is required.".format(role))

class MissingRequiredContext(LoRaWANError):
    def __init__(self, field, reason=None):
        self.field = field
        if reason is None:
            reason = "{} is required.".format(field)
        super().__init__(reason)

class UnsupportedFrameType(LoRaWANError):
    def __init__(self, mtype):
        self.mtype = mtype
        super().__init__("unsupported frame type, MType={}".format(mtype))

def check_key(key_name, key):
    """
    raise MissingKeyMaterial if key is absent,
    or InvalidKeyLength unless key is 16 bytes.
    """
    if key is None:
        raise MissingKeyMaterial(key_name)
    if len(key) != 16:
        raise InvalidKeyLength(key_name, len(key))
    return bytes(key)

def check_field(field_name, value, size):
    if len(value) != size:
        raise InvalidFieldLength(field_name, size, len(value))
    return bytes(value)
