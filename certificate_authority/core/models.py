"""
Modelo de objetos PKI.

- KeyPair: par de claves (privada + pública), inmutable
- ObjectKind: las seis variantes posibles de un bloque PEM decodificado
- PKIObject: unión etiquetada (kind + value) que devuelven el decodificador
  PEM y el clasificador
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from cryptography.hazmat.primitives import serialization


#  PAR DE CLAVES

@dataclass(frozen=True, eq=False)
class KeyPair:
    """
    Par de claves asimétricas.

    Se genera una vez por identidad y no cambia. Dos pares son iguales si
    sus claves privadas serializadas (PKCS8/DER) coinciden.
    """
    private_key: Any
    public_key: Any

    @classmethod
    def from_private_key(cls, private_key) -> KeyPair:
        return cls(private_key=private_key, public_key=private_key.public_key())

    def __eq__(self, other):
        if not isinstance(other, KeyPair):
            return NotImplemented
        return _private_der(self.private_key) == _private_der(other.private_key)

    def __hash__(self):
        return hash(_private_der(self.private_key))

    def __iter__(self):
        # Permite desempaquetar como la tupla (privada, pública) de crypto.py
        yield self.private_key
        yield self.public_key


def _private_der(private_key) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


#  UNIÓN ETIQUETADA

class ObjectKind(enum.Enum):
    """Variantes cerradas de objeto PKI."""
    KEY_PAIR = "key-pair"
    PRIVATE_KEY = "private-key"
    PUBLIC_KEY = "public-key"
    CERTIFICATE = "certificate"
    CERTIFICATE_REQUEST = "certificate-request"
    CRL = "crl"

    @property
    def is_key(self) -> bool:
        return self in (ObjectKind.KEY_PAIR, ObjectKind.PRIVATE_KEY, ObjectKind.PUBLIC_KEY)


@dataclass(frozen=True)
class PKIObject:
    """
    Resultado de decodificar un bloque PEM (o de clasificar un objeto nativo).

    Atributos:
        kind: variante del objeto
        value: objeto nativo del proveedor (x509.Certificate, clave, KeyPair...)
    """
    kind: ObjectKind
    value: Any

    def __repr__(self):
        return f"PKIObject(kind={self.kind.value}, value={type(self.value).__name__})"
