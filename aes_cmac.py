from Crypto.Hash import CMAC
from Crypto.Cipher import AES
from lorawan_errors import check_key

class AES_CMAC():
    """
    >>> cmac = AES_CMAC(b'Sixteen byte key')
    >>> cmac.update(b'Hello')
    >>> print(cmac.hex(upper=True))
    8E1A0ED893AB9A3D891CDEF2878CDB59
    """
    def __init__(self, key, key_name="key"):
        self.cmac = CMAC.new(check_key(key_name, key), ciphermod=AES)

    def update(self, data):
        self.cmac.update(bytes(data))

    def digest(self):
        return self.cmac.digest()

    def hex(self, upper=False):
        if upper:
            return self.cmac.hexdigest().upper()
        else:
            return self.cmac.hexdigest()

def aes128_cmac(key, msg, key_name="key"):
    """
    return the 16 bytes of AES-CMAC of msg.
    """
    cmac = AES_CMAC(key, key_name)
    cmac.update(msg)
    return cmac.digest()
