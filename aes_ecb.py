#
# a wrapper module for pycryptodome.
#
from Crypto.Cipher import AES
from lorawan_errors import check_key, InvalidFieldLength

class AES_ECB():
    def __init__(self, key, key_name="key"):
        """
        key: 16 bytes of bytearray.
        key_name: used in the error raised when the key is not 16 bytes.
        """
        self.aes_ecb = AES.new(check_key(key_name, key), AES.MODE_ECB)

    def encrypt(self, data):
        """
        data: in bytearray, must be multiple of 16.
        """
        return self.aes_ecb.encrypt(_check_blocks(data))

    def decrypt(self, enc_data):
        """
        enc_data: in bytearray, must be multiple of 16.
        """
        return self.aes_ecb.decrypt(_check_blocks(enc_data))

def _check_blocks(data):
    if len(data) % 16 != 0:
        raise InvalidFieldLength("AES block data",
                                 16*(len(data)//16 + 1), len(data))
    return bytes(data)
