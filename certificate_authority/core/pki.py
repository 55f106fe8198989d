"""
Módulo de PKI (Public Key Infrastructure).
- Pares de claves y nombres X.500
- Solicitudes de certificado (CSR) autofirmadas
- Firma de CSRs por un emisor con número de serie elegido por el llamador
- Emisión de CRLs
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.x509.oid import NameOID, ExtensionOID
from cryptography.hazmat.backends import default_backend

from . import crypto
from .errors import AttributeNotFoundError, SignatureError
from .models import KeyPair

logger = logging.getLogger(__name__)


#  CONSTANTES DE PKI

CERT_VALIDITY_DAYS = 5 * 365
CRL_VALIDITY_DAYS = 5 * 365
BACKDATE = timedelta(days=1)  # margen para relojes desincronizados



#  CLAVES Y NOMBRES

def generate_key_pair() -> KeyPair:
    """
    Genera un par de claves con los parámetros fijos de la política
    (RSA, crypto.DEFAULT_KEY_SIZE bits).
    """
    return crypto.generate_key_pair()


def generate_x500_name(common_name: str) -> x509.Name:
    """
    Construye un nombre X.500 a partir de un Common Name.

    Es determinista: el mismo CN produce siempre el mismo nombre.
    """
    if not common_name:
        raise ValueError("El Common Name no puede estar vacío")
    return x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])


def x500_name_to_cn(name: x509.Name) -> str:
    """
    Extrae el Common Name de un nombre X.500.

    Raises:
        AttributeNotFoundError: Si el nombre no tiene atributo CN
    """
    attrs = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attrs:
        raise AttributeNotFoundError(f"El nombre '{name.rfc4514_string()}' no tiene Common Name")
    return attrs[0].value


def _check_signing_key(private_key) -> None:
    if not isinstance(private_key, crypto.PRIVATE_KEY_TYPES):
        raise SignatureError(
            f"Clave de firma no soportada: {type(private_key).__name__}"
        )


def _sign(builder, private_key, what: str):
    _check_signing_key(private_key)
    try:
        return builder.sign(private_key, crypto.signature_hash_for(private_key),
                            backend=default_backend())
    except (TypeError, ValueError, UnsupportedAlgorithm) as e:
        raise SignatureError(f"Error al firmar {what}: {e}") from e



#  GENERACIÓN DE CSR (Certificate Signing Request)

def generate_certificate_request(key_pair: KeyPair,
                                 subject_name: x509.Name) -> x509.CertificateSigningRequest:
    """
    Genera un CSR para el par de claves y el nombre indicados.

    El CSR lleva la clave pública del sujeto y va firmado con su propia
    clave privada, lo que prueba la posesión.

    Argumentos:
        key_pair: Par de claves del sujeto
        subject_name: Nombre X.500 del sujeto

    Returns:
        Objeto CSR firmado
    """
    builder = x509.CertificateSigningRequestBuilder().subject_name(subject_name)
    return _sign(builder, key_pair.private_key, "el CSR")


# ==============================
#  FIRMA DE CERTIFICADOS
# ==============================
def sign_certificate_request(csr: x509.CertificateSigningRequest,
                             issuer: x509.Name,
                             serial: int,
                             issuer_private_key,
                             ca: Optional[bool] = None) -> x509.Certificate:
    """
    Firma un CSR con la clave del emisor, generando un certificado X.509 v3.

    El número de serie lo elige el llamador y debe ser único por emisor;
    aquí no se comprueba.

    Argumentos:
        csr: Certificate Signing Request del sujeto
        issuer: Nombre X.500 del emisor
        serial: Número de serie (entero positivo)
        issuer_private_key: Clave privada del emisor
        ca: Marca el certificado como CA. Por defecto, solo los
            autoemitidos (issuer == sujeto del CSR)

    Returns:
        Certificado firmado por el emisor

    Raises:
        SignatureError: Si la autofirma del CSR no es válida, el número de
            serie no es aceptable (no positivo o de más de 159 bits) o el
            proveedor no puede firmar
    """
    if not csr.is_signature_valid:
        raise SignatureError("La firma del CSR no es válida")
    _check_signing_key(issuer_private_key)

    if ca is None:
        ca = issuer == csr.subject

    public_key = csr.public_key()
    now = datetime.now(timezone.utc)

    try:
        cert_builder = x509.CertificateBuilder().serial_number(int(serial))
    except (TypeError, ValueError) as e:
        raise SignatureError(f"Número de serie no válido ({serial!r}): {e}") from e

    cert_builder = (
        cert_builder
        .subject_name(csr.subject)
        .issuer_name(issuer)
        .public_key(public_key)
        .not_valid_before(now - BACKDATE)
        .not_valid_after(now + timedelta(days=CERT_VALIDITY_DAYS))
        .add_extension(
            x509.BasicConstraints(ca=ca, path_length=None),
            critical=True,
        )
        .add_extension(
            x509.KeyUsage(
                digital_signature=not ca,
                content_commitment=False,
                key_encipherment=not ca,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=ca,
                crl_sign=ca,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(public_key),
            critical=False,
        )
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_private_key.public_key()),
            critical=False,
        )
    )

    # Copiar Subject Alternative Names del CSR si existen
    try:
        san_ext = csr.extensions.get_extension_for_oid(ExtensionOID.SUBJECT_ALTERNATIVE_NAME)
        cert_builder = cert_builder.add_extension(san_ext.value, critical=False)
    except x509.ExtensionNotFound:
        pass

    certificate = _sign(cert_builder, issuer_private_key, "el certificado")
    logger.info("Certificado emitido: sujeto=%s emisor=%s serial=%d",
                csr.subject.rfc4514_string(), issuer.rfc4514_string(), certificate.serial_number)
    return certificate



#  CRL

def generate_crl(issuer: x509.Name, issuer_private_key) -> x509.CertificateRevocationList:
    """
    Emite una CRL vacía firmada por el emisor.

    Una CRL no se modifica: para revocar hay que emitir otra.
    """
    _check_signing_key(issuer_private_key)
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(issuer)
        .last_update(now)
        .next_update(now + timedelta(days=CRL_VALIDITY_DAYS))
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_private_key.public_key()),
            critical=False,
        )
    )
    crl = _sign(builder, issuer_private_key, "la CRL")
    logger.info("CRL emitida por %s", issuer.rfc4514_string())
    return crl
