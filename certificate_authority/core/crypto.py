"""
Frontera con el proveedor criptográfico.
- RSA: generación de pares de claves con parámetros fijos por política
- PBKDF2: derivación de claves a partir de contraseñas
- Serialización de claves privadas y públicas
- Contraseñas aleatorias para almacenes
"""
from __future__ import annotations
import secrets
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.asymmetric import rsa, ec, ed25519, ed448, dsa
from cryptography.hazmat.backends import default_backend

from .models import KeyPair


#  CONSTANTES DE POLÍTICA

DEFAULT_KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537
PBKDF2_ITERATIONS = 600_000
STORE_PASSWORD_BYTES = 32   # 256 bits de entropía por contraseña de almacén

PRIVATE_KEY_TYPES = (
    rsa.RSAPrivateKey,
    ec.EllipticCurvePrivateKey,
    ed25519.Ed25519PrivateKey,
    ed448.Ed448PrivateKey,
    dsa.DSAPrivateKey,
)

PUBLIC_KEY_TYPES = (
    rsa.RSAPublicKey,
    ec.EllipticCurvePublicKey,
    ed25519.Ed25519PublicKey,
    ed448.Ed448PublicKey,
    dsa.DSAPublicKey,
)


#  DERIVACIÓN DE CLAVES (PBKDF2)
def derive_key_from_password(password: str, salt: bytes, length: int = 32) -> bytes:
    """
    Deriva una clave criptográfica a partir de una contraseña usando PBKDF2-HMAC-SHA256.

    Argumentos:
        password: Contraseña en texto plano
        salt: Sal criptográfica (debe ser única por entrada)
        length: Longitud de la clave en bytes (32 = 256 bits por defecto)

    Returns:
        Clave derivada de 'length' bytes
    """
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        iterations=PBKDF2_ITERATIONS,
        backend=default_backend()
    )
    return kdf.derive(password.encode('utf-8'))


#  GENERACIÓN DE CLAVES
def generate_key_pair(key_size: int = DEFAULT_KEY_SIZE) -> KeyPair:
    """
    Genera un par de claves RSA con los parámetros de la política.
    """
    private_key = rsa.generate_private_key(
        public_exponent=PUBLIC_EXPONENT,
        key_size=key_size,
        backend=default_backend()
    )
    return KeyPair.from_private_key(private_key)


def generate_store_password() -> str:
    """
    Genera una contraseña aleatoria nueva para un almacén.

    Cada llamada produce un valor distinto; el almacén no puede
    recuperarla, así que debe viajar junto a él.
    """
    return secrets.token_urlsafe(STORE_PASSWORD_BYTES)


def signature_hash_for(private_key):
    """
    Algoritmo hash que acompaña a la firma X.509 para una clave dada.

    Ed25519/Ed448 firman sin hash externo (None).
    """
    if isinstance(private_key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)):
        return None
    return hashes.SHA256()


#  SERIALIZACIÓN DE CLAVES
def serialize_private_key(private_key, password: str = None,
                          traditional: bool = False) -> bytes:
    """
    Convierte la clave privada a formato PEM.

    Argumentos:
        private_key: Clave privada
        password: Si se indica, la clave se cifra con el mejor algoritmo disponible
        traditional: Formato OpenSSL tradicional ("RSA PRIVATE KEY") en vez de PKCS8
    """
    encryption = serialization.NoEncryption()
    if password:
        encryption = serialization.BestAvailableEncryption(password.encode('utf-8'))

    key_format = serialization.PrivateFormat.PKCS8
    if traditional:
        key_format = serialization.PrivateFormat.TraditionalOpenSSL

    pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=key_format,
        encryption_algorithm=encryption
    )
    return pem


def serialize_public_key(public_key) -> bytes:
    """
    Convierte la clave pública a formato PEM (SubjectPublicKeyInfo).
    """
    pem = public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    )
    return pem


def keys_match(private_key, public_key) -> bool:
    """Comprueba que la clave pública corresponde a la privada."""
    return serialize_public_key(private_key.public_key()) == serialize_public_key(public_key)
