"""
Codificación y decodificación PEM de objetos PKI.

Un único bucle de parseo (pem_to_objects) devuelve la secuencia ordenada
de PKIObject; el resto de funciones de lectura filtran y validan sobre
ella. Las fuentes pueden ser rutas, bytes o streams abiertos; los
destinos, rutas o streams.
"""

from __future__ import annotations

import io
import logging
import os
import re
from contextlib import contextmanager
from typing import Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization

from .classifier import classify, obj_to_private_key
from .crypto import serialize_private_key, serialize_public_key
from .errors import (
    CardinalityError,
    FormatError,
    TypeMismatchError,
    UnknownObjectTypeError,
    UnsupportedTypeError,
)
from .models import KeyPair, ObjectKind, PKIObject

logger = logging.getLogger(__name__)


#  CABECERAS PEM

_BEGIN_RE = re.compile(rb"-----BEGIN ([^\r\n]+?)-----")

CERTIFICATE_LABELS = (b"CERTIFICATE", b"X509 CERTIFICATE")
CSR_LABELS = (b"CERTIFICATE REQUEST", b"NEW CERTIFICATE REQUEST")
CRL_LABELS = (b"X509 CRL",)
PKCS8_KEY_LABELS = (b"PRIVATE KEY", b"ENCRYPTED PRIVATE KEY")
# Formato tradicional: incluye ambas mitades, se decodifica como KeyPair
TRADITIONAL_KEY_LABELS = (b"RSA PRIVATE KEY", b"EC PRIVATE KEY", b"DSA PRIVATE KEY")
PUBLIC_KEY_LABELS = (b"PUBLIC KEY", b"RSA PUBLIC KEY")



#  FUENTES Y DESTINOS DE BYTES

@contextmanager
def open_source(source):
    """
    Abre una fuente de bytes durante la operación.

    El stream se cierra siempre al terminar, también si la lectura o el
    parseo fallan, tanto si lo abre esta función (rutas) como si lo
    entrega el llamador.
    """
    if isinstance(source, (bytes, bytearray, memoryview)):
        stream = io.BytesIO(bytes(source))
    elif isinstance(source, (str, os.PathLike)):
        stream = open(source, 'rb')
    elif hasattr(source, 'read'):
        stream = source
    else:
        raise TypeError(f"Fuente PEM no soportada: {type(source).__name__}")
    try:
        yield stream
    finally:
        stream.close()


@contextmanager
def open_sink(sink):
    """Abre un destino de bytes; igual que open_source, lo cierra siempre."""
    if isinstance(sink, (str, os.PathLike)):
        stream = open(sink, 'wb')
    elif hasattr(sink, 'write'):
        stream = sink
    else:
        raise TypeError(f"Destino PEM no soportado: {type(sink).__name__}")
    try:
        yield stream
    finally:
        stream.close()


def read_source(source) -> bytes:
    with open_source(source) as stream:
        data = stream.read()
    if isinstance(data, str):
        data = data.encode('utf-8')
    return data


def _describe(source) -> str:
    if isinstance(source, (str, os.PathLike)):
        return os.fspath(source)
    return f"<{type(source).__name__}>"



#  DECODIFICACIÓN

def _split_blocks(data: bytes) -> list[tuple[bytes, bytes]]:
    """
    Separa los bloques PEM en orden de aparición.

    El texto fuera de los delimitadores se ignora.

    Returns:
        Lista de tuplas (etiqueta, bloque_completo)
    """
    blocks = []
    pos = 0
    while True:
        match = _BEGIN_RE.search(data, pos)
        if match is None:
            break
        label = match.group(1)
        end_marker = b"-----END " + label + b"-----"
        end = data.find(end_marker, match.end())
        if end == -1:
            raise FormatError(
                f"Bloque PEM '{label.decode('ascii', 'replace')}' sin delimitador de cierre"
            )
        pos = end + len(end_marker)
        blocks.append((label, data[match.start():pos]))
    return blocks


def _load_private_key(block: bytes, password: Optional[bytes]):
    # La contraseña solo se pasa a bloques cifrados; el proveedor rechaza
    # una contraseña sobre una clave en claro
    encrypted = block.startswith(b"-----BEGIN ENCRYPTED") or b"Proc-Type: 4,ENCRYPTED" in block
    return serialization.load_pem_private_key(
        block,
        password=password if encrypted else None,
        backend=default_backend()
    )


def _parse_block(label: bytes, block: bytes, password: Optional[bytes]) -> PKIObject:
    """Parsea un bloque según su cabecera."""
    try:
        if label in CERTIFICATE_LABELS:
            return PKIObject(ObjectKind.CERTIFICATE,
                             x509.load_pem_x509_certificate(block, default_backend()))
        if label in CSR_LABELS:
            return PKIObject(ObjectKind.CERTIFICATE_REQUEST,
                             x509.load_pem_x509_csr(block, default_backend()))
        if label in CRL_LABELS:
            return PKIObject(ObjectKind.CRL,
                             x509.load_pem_x509_crl(block, default_backend()))
        if label in PKCS8_KEY_LABELS:
            return PKIObject(ObjectKind.PRIVATE_KEY, _load_private_key(block, password))
        if label in TRADITIONAL_KEY_LABELS:
            key = _load_private_key(block, password)
            return PKIObject(ObjectKind.KEY_PAIR, KeyPair.from_private_key(key))
        if label in PUBLIC_KEY_LABELS:
            return PKIObject(ObjectKind.PUBLIC_KEY,
                             serialization.load_pem_public_key(block, default_backend()))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise FormatError(
            f"Contenido inválido en bloque PEM '{label.decode('ascii', 'replace')}': {e}"
        ) from e
    raise FormatError(f"Cabecera PEM no reconocida: '{label.decode('ascii', 'replace')}'")


def pem_to_objects(source, password: Optional[str] = None) -> list[PKIObject]:
    """
    Lee todos los objetos PEM de una fuente.

    Argumentos:
        source: Ruta, bytes o stream abierto
        password: Contraseña para bloques de clave privada cifrados

    Returns:
        Lista de PKIObject en el orden del fichero (vacía si no hay bloques)

    Raises:
        FormatError: Cabecera desconocida o contenido que no se puede parsear
    """
    data = read_source(source)
    pwd_bytes = password.encode('utf-8') if password else None
    objs = [_parse_block(label, block, pwd_bytes) for label, block in _split_blocks(data)]
    for obj in objs:
        logger.debug("Objeto PEM de tipo '%s' cargado desde '%s'",
                     obj.kind.value, _describe(source))
    return objs


def _single(items: list, what: str):
    if len(items) != 1:
        raise CardinalityError(
            f"Se esperaba exactamente un(a) {what}, encontrados: {len(items)}",
            expected=1, found=len(items),
        )
    return items[0]


def _expect_kind(objs: list[PKIObject], kind: ObjectKind) -> list:
    values = []
    for obj in objs:
        if obj.kind is not kind:
            raise TypeMismatchError(
                f"Se esperaba '{kind.value}' pero se encontró '{obj.kind.value}'"
            )
        values.append(obj.value)
    return values


def pem_to_certs(source) -> list[x509.Certificate]:
    """
    Decodifica una fuente PEM que solo contiene certificados.

    Raises:
        TypeMismatchError: Si algún bloque no es un certificado
    """
    return _expect_kind(pem_to_objects(source), ObjectKind.CERTIFICATE)


def pem_to_private_keys(source, password: Optional[str] = None) -> list:
    """
    Decodifica claves privadas, extrayendo la mitad privada de los KeyPair.

    Raises:
        TypeMismatchError: Si algún bloque no es una clave privada ni un par
    """
    return [obj_to_private_key(obj) for obj in pem_to_objects(source, password)]


def pem_to_private_key(source, password: Optional[str] = None):
    """
    Decodifica exactamente una clave privada.

    Raises:
        CardinalityError: Si hay cero o más de una
    """
    return _single(pem_to_private_keys(source, password), "clave privada")


def pem_to_public_keys(source) -> list:
    keys = []
    for obj in pem_to_objects(source):
        if obj.kind is ObjectKind.PUBLIC_KEY:
            keys.append(obj.value)
        elif obj.kind is ObjectKind.KEY_PAIR:
            keys.append(obj.value.public_key)
        else:
            raise TypeMismatchError(
                f"Se esperaba una clave pública pero se encontró '{obj.kind.value}'"
            )
    return keys


def pem_to_csr(source) -> x509.CertificateSigningRequest:
    """Decodifica exactamente un CSR."""
    csrs = _expect_kind(pem_to_objects(source), ObjectKind.CERTIFICATE_REQUEST)
    return _single(csrs, "solicitud de certificado")


def pem_to_crl(source) -> x509.CertificateRevocationList:
    """Decodifica exactamente una CRL."""
    return _single(_expect_kind(pem_to_objects(source), ObjectKind.CRL), "CRL")



#  CODIFICACIÓN

def obj_to_pem_bytes(obj) -> bytes:
    """
    Codifica un objeto PKI en PEM.

    Los KeyPair se escriben en formato tradicional y las claves privadas
    sueltas en PKCS8, de modo que al decodificar se recupera la misma
    variante.

    Raises:
        UnsupportedTypeError: Si el objeto no tiene codificación PEM
    """
    try:
        pki_obj = classify(obj)
    except UnknownObjectTypeError as e:
        raise UnsupportedTypeError(f"No se puede codificar en PEM: {e}") from e

    kind, value = pki_obj.kind, pki_obj.value
    if kind in (ObjectKind.CERTIFICATE, ObjectKind.CERTIFICATE_REQUEST, ObjectKind.CRL):
        return value.public_bytes(serialization.Encoding.PEM)
    if kind is ObjectKind.PRIVATE_KEY:
        return serialize_private_key(value)
    if kind is ObjectKind.PUBLIC_KEY:
        return serialize_public_key(value)
    if kind is ObjectKind.KEY_PAIR:
        try:
            return serialize_private_key(value.private_key, traditional=True)
        except ValueError as e:
            raise UnsupportedTypeError(
                f"El par de claves no tiene formato PEM tradicional: {e}"
            ) from e
    raise UnsupportedTypeError(f"Variante sin codificación PEM: {kind.value}")


def _write(data: bytes, sink) -> None:
    with open_sink(sink) as stream:
        if isinstance(stream, io.TextIOBase):
            stream.write(data.decode('ascii'))
        else:
            stream.write(data)


def obj_to_pem(obj, sink) -> None:
    """
    Codifica un objeto en PEM y lo escribe en una ruta o stream.

    La codificación se hace antes de abrir el destino: si falla no se
    crea ni trunca ningún fichero.
    """
    _write(obj_to_pem_bytes(obj), sink)


def objs_to_pem(objs, sink) -> None:
    """Escribe varios objetos en un mismo destino, en orden."""
    _write(b"".join(obj_to_pem_bytes(obj) for obj in objs), sink)


def key_to_pem(key, sink) -> None:
    """
    Codifica una clave (pública, privada o par) y la escribe.

    Raises:
        TypeMismatchError: Si el objeto no es una clave
    """
    try:
        pki_obj = classify(key)
    except UnknownObjectTypeError as e:
        raise TypeMismatchError(f"Se esperaba una clave: {e}") from e
    if not pki_obj.kind.is_key:
        raise TypeMismatchError(
            f"Se esperaba una clave pero se recibió '{pki_obj.kind.value}'"
        )
    obj_to_pem(pki_obj, sink)
