"""
Construcción de contextos TLS a partir de KeyStore/TrustStore.

- KeyManagerFactory: identidades descifradas (clave + cadena) del KeyStore
- TrustManagerFactory: certificados de CA del TrustStore
- build_ssl_context: ssl.SSLContext inicializado con ambos

Los almacenes no deben modificarse después de construir el contexto.
"""

from __future__ import annotations

import logging
import os
import ssl
import tempfile
from dataclasses import dataclass
from typing import Any, Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from .crypto import generate_store_password, serialize_private_key
from .errors import ContextInitError
from .keystore import KeyAndTrustStores, KeyStore, pems_to_key_and_trust_stores

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyManager:
    alias: str
    private_key: Any
    certificate_chain: tuple

    def chain_pem(self) -> bytes:
        return b"".join(c.public_bytes(serialization.Encoding.PEM)
                        for c in self.certificate_chain)


class KeyManagerFactory:
    """Identidades que el contexto TLS presenta al otro extremo."""

    def __init__(self, key_managers: list[KeyManager]):
        self._key_managers = list(key_managers)

    @property
    def key_managers(self) -> list[KeyManager]:
        return list(self._key_managers)


class TrustManagerFactory:
    """Anclas de confianza para verificar al otro extremo."""

    def __init__(self, certificates: list[x509.Certificate]):
        self._certificates = list(certificates)

    @property
    def certificates(self) -> list[x509.Certificate]:
        return list(self._certificates)

    @property
    def cadata(self) -> str:
        """Bundle PEM de las anclas, en el formato que acepta ssl."""
        return "".join(c.public_bytes(serialization.Encoding.PEM).decode('ascii')
                       for c in self._certificates)


def get_key_manager_factory(keystore, keystore_pw: Optional[str] = None) -> KeyManagerFactory:
    """
    Crea un KeyManagerFactory con todas las claves del KeyStore.

    Argumentos:
        keystore: KeyStore, o el KeyAndTrustStores de pems_to_key_and_trust_stores
        keystore_pw: Contraseña del KeyStore (se toma del KeyAndTrustStores si no se da)

    Raises:
        KeyStoreAccessError: Si la contraseña no abre alguna entrada
    """
    if isinstance(keystore, KeyAndTrustStores):
        if keystore_pw is None:
            keystore_pw = keystore.keystore_pw
        keystore = keystore.keystore
    if not isinstance(keystore, KeyStore):
        raise TypeError(f"Se esperaba un KeyStore, no {type(keystore).__name__}")
    if keystore_pw is None:
        raise ValueError("Falta la contraseña del KeyStore")

    managers = [
        KeyManager(
            alias=alias,
            private_key=keystore.get_key(alias, keystore_pw),
            certificate_chain=tuple(keystore.get_certificate_chain(alias)),
        )
        for alias in keystore.key_aliases()
    ]
    return KeyManagerFactory(managers)


def get_trust_manager_factory(truststore) -> TrustManagerFactory:
    """
    Crea un TrustManagerFactory con los certificados del TrustStore.

    Argumentos:
        truststore: TrustStore, o el KeyAndTrustStores de pems_to_key_and_trust_stores
    """
    if isinstance(truststore, KeyAndTrustStores):
        truststore = truststore.truststore
    if not isinstance(truststore, KeyStore):
        raise TypeError(f"Se esperaba un TrustStore, no {type(truststore).__name__}")
    return TrustManagerFactory(truststore.certificates())


def _load_identity(ctx: ssl.SSLContext, key_manager: KeyManager) -> None:
    # ssl solo carga identidades desde fichero: se escribe la cadena y la
    # clave cifrada con una contraseña de un solo uso, y se borra siempre
    one_time_pw = generate_store_password()
    data = key_manager.chain_pem() + serialize_private_key(key_manager.private_key,
                                                           password=one_time_pw)
    path = None
    try:
        with tempfile.NamedTemporaryFile("wb", suffix=".pem", delete=False) as f:
            path = f.name
            f.write(data)
        ctx.load_cert_chain(certfile=path, password=one_time_pw)
    finally:
        if path:
            os.unlink(path)


def build_ssl_context(key_manager_factory: KeyManagerFactory,
                      trust_manager_factory: TrustManagerFactory,
                      server_side: bool = True,
                      require_client_cert: bool = False) -> ssl.SSLContext:
    """
    Inicializa un ssl.SSLContext con identidades y anclas de confianza.

    Argumentos:
        key_manager_factory: Identidades a presentar
        trust_manager_factory: CAs de confianza
        server_side: Contexto de servidor (True) o de cliente (False)
        require_client_cert: En servidor, exige certificado de cliente

    Raises:
        ContextInitError: Si el proveedor rechaza el material (por ejemplo
            una clave que no corresponde a su certificado)
    """
    protocol = ssl.PROTOCOL_TLS_SERVER if server_side else ssl.PROTOCOL_TLS_CLIENT
    ctx = ssl.SSLContext(protocol)
    try:
        if trust_manager_factory.certificates:
            ctx.load_verify_locations(cadata=trust_manager_factory.cadata)
        for key_manager in key_manager_factory.key_managers:
            _load_identity(ctx, key_manager)
    except ssl.SSLError as e:
        raise ContextInitError(f"El proveedor TLS rechazó el material: {e}") from e

    if server_side and require_client_cert:
        ctx.verify_mode = ssl.CERT_REQUIRED
    return ctx


def pems_to_ssl_context(cert, private_key, ca_cert, server_side: bool = True) -> ssl.SSLContext:
    """
    Crea un SSLContext a partir de los PEM del certificado, la clave y la CA.

    Compone pems_to_key_and_trust_stores, los dos factories y la
    inicialización del contexto; cualquier fallo aborta todo.
    """
    stores = pems_to_key_and_trust_stores(cert, private_key, ca_cert)
    ctx = build_ssl_context(
        get_key_manager_factory(stores),
        get_trust_manager_factory(stores),
        server_side=server_side,
    )
    logger.info("Contexto TLS de %s creado", "servidor" if server_side else "cliente")
    return ctx
