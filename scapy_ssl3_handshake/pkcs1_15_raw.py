import Cryptodome.Util.number
from Cryptodome.Util.number import ceil_div, bytes_to_long, long_to_bytes


class raw_pkcs1_15:
    """
    RSA with EMSA-PKCS1-v1_5 (block type 1) padding around the bare message,
    no DigestInfo. sign() runs the private key operation, recover() undoes it with
    the public key and hands back the original message.
    """

    def __init__(self, rsa_key):
        self._key = rsa_key
        modBits = Cryptodome.Util.number.size(self._key.n)
        self._k = ceil_div(modBits, 8)  # Convert from bits to bytes

    def can_sign(self):
        return self._key.has_private()

    def sign(self, msg):
        if not self.can_sign():
            raise TypeError("Private key required to sign")
        if len(msg) > self._k - 11:
            raise ValueError("Message too long for RSA modulus")
        ps = b'\xFF' * (self._k - len(msg) - 3)
        em = b'\x00\x01' + ps + b'\x00' + msg
        m_int = pow(bytes_to_long(em), self._key.d, self._key.n)
        return long_to_bytes(m_int, self._k)

    def recover(self, signature):
        if len(signature) != self._k:
            raise ValueError("Invalid signature length")
        s_int = bytes_to_long(signature)
        if s_int >= self._key.n:
            raise ValueError("Signature representative out of range")
        em = long_to_bytes(pow(s_int, self._key.e, self._key.n), self._k)
        if not em.startswith(b'\x00\x01'):
            raise ValueError("Invalid PKCS#1 v1.5 block type")
        sep = em.find(b'\x00', 2)
        # at least 8 bytes of 0xFF padding
        if sep < 10 or em[2:sep] != b'\xFF' * (sep - 2):
            raise ValueError("Invalid PKCS#1 v1.5 padding")
        return em[sep + 1:]


def new(rsa_key):
    return raw_pkcs1_15(rsa_key)
