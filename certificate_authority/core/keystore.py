"""
Almacenes de claves y de confianza en memoria.
- KeyStore: alias -> certificado de confianza o clave privada con su cadena
- TrustStore: alias -> certificados de CA de confianza
- Claves privadas cifradas en memoria con la contraseña de la entrada:
  PBKDF2 + AES-256-CBC + HMAC-SHA256, formato [salt:16][iv:16][hmac:32][ciphertext]
- Ensamblado de KeyStore + TrustStore a partir de PEMs
"""

from __future__ import annotations

import hmac
import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import padding, serialization
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.hazmat.backends import default_backend

from .classifier import obj_to_private_key
from .crypto import derive_key_from_password, generate_store_password
from .errors import (
    DuplicateAliasError,
    KeyStoreAccessError,
    MissingCertificateError,
    TypeMismatchError,
)
from .pem import pem_to_certs, pem_to_private_key

logger = logging.getLogger(__name__)


#  CONSTANTES

SALT_SIZE = 16          # 128 bits para PBKDF2
IV_SIZE = 16            # 128 bits para AES-CBC
HMAC_SIZE = 32          # 256 bits para HMAC-SHA256
KEY_SIZE = 32           # 256 bits para AES
MASTER_KEY_SIZE = 64    # 256 bits AES + 256 bits HMAC
AES_BLOCK_BITS = 128

PRIVATE_KEY_ALIAS = "private-key"
CA_CERT_ALIAS_PREFIX = "cert-ca"



#  CIFRADO DE CLAVES PRIVADAS

def encrypt_private_key(private_key, password: str) -> bytes:
    """
    Cifra una clave privada con una contraseña.

    Proceso:
        1. PBKDF2 deriva dos claves de 256 bits (cifrado + autenticación)
        2. AES-256-CBC cifra la clave privada serializada (PKCS8/DER)
        3. HMAC-SHA256 autentica (salt + iv + ciphertext)

    Returns:
        Blob [salt:16][iv:16][hmac:32][ciphertext:variable]
    """
    plaintext = private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    )

    salt = os.urandom(SALT_SIZE)
    master_key = derive_key_from_password(password, salt, length=MASTER_KEY_SIZE)
    encryption_key = master_key[:KEY_SIZE]
    hmac_key = master_key[KEY_SIZE:]

    iv = os.urandom(IV_SIZE)
    padder = padding.PKCS7(AES_BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(encryption_key), modes.CBC(iv),
                       backend=default_backend()).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()

    hmac_tag = hmac.new(hmac_key, salt + iv + ciphertext, hashlib.sha256).digest()
    return salt + iv + hmac_tag + ciphertext


def decrypt_private_key(blob: bytes, password: str):
    """
    Descifra un blob generado por encrypt_private_key.

    El HMAC se verifica antes de descifrar.

    Raises:
        KeyStoreAccessError: Si la contraseña es incorrecta o el blob está manipulado
    """
    salt = blob[:SALT_SIZE]
    iv = blob[SALT_SIZE:SALT_SIZE + IV_SIZE]
    stored_hmac = blob[SALT_SIZE + IV_SIZE:SALT_SIZE + IV_SIZE + HMAC_SIZE]
    ciphertext = blob[SALT_SIZE + IV_SIZE + HMAC_SIZE:]

    master_key = derive_key_from_password(password, salt, length=MASTER_KEY_SIZE)
    encryption_key = master_key[:KEY_SIZE]
    hmac_key = master_key[KEY_SIZE:]

    calculated_hmac = hmac.new(hmac_key, salt + iv + ciphertext, hashlib.sha256).digest()
    if not hmac.compare_digest(calculated_hmac, stored_hmac):
        raise KeyStoreAccessError("Contraseña incorrecta o entrada manipulada")

    decryptor = Cipher(algorithms.AES(encryption_key), modes.CBC(iv),
                       backend=default_backend()).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(AES_BLOCK_BITS).unpadder()
    plaintext = unpadder.update(padded) + unpadder.finalize()

    return serialization.load_der_private_key(plaintext, password=None,
                                              backend=default_backend())



#  ENTRADAS

@dataclass(frozen=True)
class TrustedCertificateEntry:
    certificate: x509.Certificate

    kind = "trusted-certificate"


@dataclass(frozen=True)
class PrivateKeyEntry:
    """Clave privada cifrada + cadena de certificados (el primero es el suyo)."""
    encrypted_key: bytes
    certificate_chain: tuple

    kind = "private-key"

    @property
    def certificate(self) -> x509.Certificate:
        return self.certificate_chain[0]


Entry = Union[TrustedCertificateEntry, PrivateKeyEntry]



#  ALMACENES

class KeyStore:
    """
    Almacén en memoria de entradas por alias.

    Un alias ocupado por una entrada del mismo tipo se sobrescribe (la
    última escritura gana); si es de otro tipo, DuplicateAliasError.
    No es seguro compartir una instancia mientras alguien la modifica.
    """

    store_type = "keystore"

    def __init__(self):
        self._entries: dict[str, Entry] = {}

    def __len__(self):
        return len(self._entries)

    def __contains__(self, alias):
        return alias in self._entries

    def __repr__(self):
        return f"{type(self).__name__}(aliases={self.aliases()!r})"

    def aliases(self) -> list[str]:
        return list(self._entries)

    def contains_alias(self, alias: str) -> bool:
        return alias in self._entries

    def is_key_entry(self, alias: str) -> bool:
        return isinstance(self._entries.get(alias), PrivateKeyEntry)

    def is_certificate_entry(self, alias: str) -> bool:
        return isinstance(self._entries.get(alias), TrustedCertificateEntry)

    def _check_alias(self, alias: str, entry_type: type) -> None:
        if not isinstance(alias, str) or not alias:
            raise ValueError("El alias debe ser una cadena no vacía")
        existing = self._entries.get(alias)
        if existing is not None and not isinstance(existing, entry_type):
            raise DuplicateAliasError(alias, existing.kind)

    def set_certificate_entry(self, alias: str, cert: x509.Certificate) -> None:
        if not isinstance(cert, x509.Certificate):
            raise TypeMismatchError(
                f"Se esperaba un certificado X.509, no {type(cert).__name__}"
            )
        self._check_alias(alias, TrustedCertificateEntry)
        self._entries[alias] = TrustedCertificateEntry(cert)
        logger.debug("%s: certificado guardado con alias '%s'", self.store_type, alias)

    def set_certificate_entries(self, entries) -> None:
        """
        Guarda varios certificados de una vez: o todos o ninguno.

        Argumentos:
            entries: Iterable de tuplas (alias, certificado)

        Raises:
            DuplicateAliasError: Si algún alias pertenece a otro tipo de entrada
        """
        entries = list(entries)
        for alias, cert in entries:
            if not isinstance(cert, x509.Certificate):
                raise TypeMismatchError(
                    f"Se esperaba un certificado X.509, no {type(cert).__name__}"
                )
            self._check_alias(alias, TrustedCertificateEntry)
        for alias, cert in entries:
            self.set_certificate_entry(alias, cert)

    def set_key_entry(self, alias: str, private_key, password: str, chain) -> None:
        """
        Guarda una clave privada con su cadena de certificados.

        Raises:
            MissingCertificateError: Si la cadena está vacía
        """
        chain = tuple(chain)
        if not chain:
            raise MissingCertificateError(
                f"No se puede guardar la clave '{alias}' sin su certificado"
            )
        for cert in chain:
            if not isinstance(cert, x509.Certificate):
                raise TypeMismatchError(
                    f"Se esperaba un certificado X.509, no {type(cert).__name__}"
                )
        self._check_alias(alias, PrivateKeyEntry)
        self._entries[alias] = PrivateKeyEntry(
            encrypted_key=encrypt_private_key(private_key, password),
            certificate_chain=chain,
        )
        logger.debug("%s: clave privada guardada con alias '%s'", self.store_type, alias)

    def get_certificate(self, alias: str) -> Optional[x509.Certificate]:
        """Certificado de la entrada (el propio de la clave si es de clave privada)."""
        entry = self._entries.get(alias)
        return entry.certificate if entry is not None else None

    def get_certificate_chain(self, alias: str) -> Optional[list[x509.Certificate]]:
        entry = self._entries.get(alias)
        if not isinstance(entry, PrivateKeyEntry):
            return None
        return list(entry.certificate_chain)

    def get_key(self, alias: str, password: str):
        """
        Recupera la clave privada de una entrada.

        Returns:
            Clave privada, o None si el alias no es una entrada de clave

        Raises:
            KeyStoreAccessError: Si la contraseña es incorrecta
        """
        entry = self._entries.get(alias)
        if not isinstance(entry, PrivateKeyEntry):
            return None
        return decrypt_private_key(entry.encrypted_key, password)

    def certificates(self) -> list[x509.Certificate]:
        """Certificados de confianza, en orden de inserción."""
        return [e.certificate for e in self._entries.values()
                if isinstance(e, TrustedCertificateEntry)]

    def key_aliases(self) -> list[str]:
        return [alias for alias, e in self._entries.items() if isinstance(e, PrivateKeyEntry)]

    def to_pkcs12(self, alias: str, password: str, export_password: Optional[str] = None) -> bytes:
        """
        Exporta una entrada de clave privada a PKCS#12.

        Argumentos:
            alias: Alias de la entrada
            password: Contraseña de la entrada
            export_password: Contraseña del fichero (por defecto, la misma)

        Returns:
            Bytes PKCS#12 (.p12 / .pfx)
        """
        private_key = self.get_key(alias, password)
        if private_key is None:
            raise TypeMismatchError(f"El alias '{alias}' no es una entrada de clave privada")
        chain = self.get_certificate_chain(alias)
        export_password = password if export_password is None else export_password
        return pkcs12.serialize_key_and_certificates(
            name=alias.encode('utf-8'),
            key=private_key,
            cert=chain[0],
            cas=chain[1:] or None,
            encryption_algorithm=serialization.BestAvailableEncryption(
                export_password.encode('utf-8')
            ),
        )


class TrustStore(KeyStore):
    """Almacén que solo admite certificados de confianza."""

    store_type = "truststore"

    def set_key_entry(self, alias, private_key, password, chain):
        raise TypeMismatchError("Un TrustStore no admite entradas de clave privada")


@dataclass(frozen=True)
class KeyAndTrustStores:
    """
    Resultado del ensamblado: los dos almacenes y la contraseña generada.

    La contraseña no se puede recuperar del KeyStore; viaja con él.
    """
    keystore: KeyStore
    truststore: TrustStore
    keystore_pw: str

    def __repr__(self):
        return f"KeyAndTrustStores(keystore={self.keystore!r}, truststore={self.truststore!r})"



#  OPERACIONES SOBRE ALMACENES

def new_keystore() -> KeyStore:
    """Crea un KeyStore vacío en memoria."""
    return KeyStore()


def new_truststore() -> TrustStore:
    return TrustStore()


def assoc_cert(store: KeyStore, alias: str, cert: x509.Certificate) -> KeyStore:
    """
    Añade un certificado de confianza a un almacén.

    Argumentos:
        store: KeyStore o TrustStore
        alias: Alias no vacío
        cert: Certificado X.509

    Returns:
        El mismo almacén
    """
    store.set_certificate_entry(alias, cert)
    return store


def assoc_certs_from_source(store: KeyStore, prefix: str, source) -> KeyStore:
    """
    Añade todos los certificados de una fuente PEM.

    Cada certificado se guarda como '<prefix>-<n>' (n desde 0, en el orden
    del fichero). Si algún alias choca con otra entrada no se añade ninguno.
    """
    certs = pem_to_certs(source)
    store.set_certificate_entries((f"{prefix}-{i}", cert) for i, cert in enumerate(certs))
    return store


assoc_certs_from_file = assoc_certs_from_source


def assoc_private_key(store: KeyStore, alias: str, private_key, pw: str, cert) -> KeyStore:
    """
    Añade una clave privada a un almacén.

    Argumentos:
        store: KeyStore destino
        alias: Alias no vacío
        private_key: Clave privada (o KeyPair)
        pw: Contraseña que protege la entrada
        cert: Certificado de la clave, o lista con la cadena (el primero es
              el de la clave). Una clave no se puede guardar sin certificado.

    Raises:
        MissingCertificateError: Si cert es None o una cadena vacía
    """
    if cert is None:
        raise MissingCertificateError(
            f"No se puede guardar la clave '{alias}' sin su certificado"
        )
    chain = [cert] if isinstance(cert, x509.Certificate) else list(cert)
    store.set_key_entry(alias, obj_to_private_key(private_key), pw, chain)
    return store


def assoc_private_key_from_sources(store: KeyStore, alias: str, key_source, pw: str,
                                   cert_source) -> KeyStore:
    """
    Añade la clave privada de una fuente PEM con los certificados de otra.

    La fuente de clave debe contener exactamente una clave privada. El
    primer certificado es el de la clave; los siguientes forman su cadena.

    Raises:
        CardinalityError: Si no hay exactamente una clave
        MissingCertificateError: Si no hay ningún certificado
    """
    private_key = pem_to_private_key(key_source)
    certs = pem_to_certs(cert_source)
    return assoc_private_key(store, alias, private_key, pw, certs)


assoc_private_key_file = assoc_private_key_from_sources


def pems_to_key_and_trust_stores(cert, private_key, ca_cert) -> KeyAndTrustStores:
    """
    Crea un KeyStore y un TrustStore en memoria a partir de tres PEMs.

    Pasos:
        1. Genera una contraseña aleatoria nueva
        2. KeyStore con la clave y su certificado bajo 'private-key'
        3. TrustStore con los certificados de CA como 'cert-ca-<n>'

    Todo o nada: si algo falla no se devuelve ningún almacén.

    Argumentos:
        cert: Fuente PEM del certificado de la identidad
        private_key: Fuente PEM de su clave privada
        ca_cert: Fuente PEM de los certificados de CA

    Returns:
        KeyAndTrustStores(keystore, truststore, keystore_pw)
    """
    keystore_pw = generate_store_password()

    keystore = assoc_private_key_from_sources(
        new_keystore(), PRIVATE_KEY_ALIAS, private_key, keystore_pw, cert
    )
    truststore = assoc_certs_from_source(new_truststore(), CA_CERT_ALIAS_PREFIX, ca_cert)

    logger.info("KeyStore (%d entradas) y TrustStore (%d entradas) creados",
                len(keystore), len(truststore))
    return KeyAndTrustStores(keystore=keystore, truststore=truststore, keystore_pw=keystore_pw)
