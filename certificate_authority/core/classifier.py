"""
Clasificador de objetos PKI.

Convierte los objetos nativos del proveedor (cryptography) en una de las
seis variantes de PKIObject. El resto de módulos solo trabaja con la
variante, nunca con el tipo nativo.
"""

from cryptography import x509

from .crypto import PRIVATE_KEY_TYPES, PUBLIC_KEY_TYPES, keys_match
from .errors import TypeMismatchError, UnknownObjectTypeError
from .models import KeyPair, ObjectKind, PKIObject


def classify(obj) -> PKIObject:
    """
    Clasifica un objeto nativo en su variante PKIObject.

    Clasificar un PKIObject lo devuelve tal cual. Una tupla
    (privada, pública) cuyas mitades coinciden se trata como KeyPair.

    Raises:
        UnknownObjectTypeError: Si el objeto no es de ningún tipo conocido
    """
    if isinstance(obj, PKIObject):
        return obj
    if isinstance(obj, KeyPair):
        return PKIObject(ObjectKind.KEY_PAIR, obj)
    if isinstance(obj, x509.Certificate):
        return PKIObject(ObjectKind.CERTIFICATE, obj)
    if isinstance(obj, x509.CertificateSigningRequest):
        return PKIObject(ObjectKind.CERTIFICATE_REQUEST, obj)
    if isinstance(obj, x509.CertificateRevocationList):
        return PKIObject(ObjectKind.CRL, obj)
    if isinstance(obj, PRIVATE_KEY_TYPES):
        return PKIObject(ObjectKind.PRIVATE_KEY, obj)
    if isinstance(obj, PUBLIC_KEY_TYPES):
        return PKIObject(ObjectKind.PUBLIC_KEY, obj)
    if (isinstance(obj, tuple) and len(obj) == 2
            and isinstance(obj[0], PRIVATE_KEY_TYPES)
            and isinstance(obj[1], PUBLIC_KEY_TYPES)
            and keys_match(obj[0], obj[1])):
        return PKIObject(ObjectKind.KEY_PAIR, KeyPair(private_key=obj[0], public_key=obj[1]))
    raise UnknownObjectTypeError(
        f"Tipo de objeto PKI desconocido: {type(obj).__module__}.{type(obj).__name__}"
    )


def obj_to_private_key(obj):
    """
    Extrae la clave privada de un objeto decodificado.

    Argumentos:
        obj: PrivateKey, KeyPair o su PKIObject

    Returns:
        Clave privada

    Raises:
        TypeMismatchError: Si el objeto no contiene clave privada
    """
    pki_obj = classify(obj)
    if pki_obj.kind is ObjectKind.PRIVATE_KEY:
        return pki_obj.value
    if pki_obj.kind is ObjectKind.KEY_PAIR:
        return pki_obj.value.private_key
    raise TypeMismatchError(
        f"Se esperaba una clave privada o un par de claves, no '{pki_obj.kind.value}'"
    )
