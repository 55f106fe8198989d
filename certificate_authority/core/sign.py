"""
Módulo de verificación de firmas.
- RSA (PKCS#1 v1.5 o PSS), ECDSA y EdDSA: las firmas que producen los builders X.509
- Verificación de certificados, CSRs y CRLs frente a la clave del emisor
"""

from cryptography import x509
from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import padding, rsa, ec, dsa

from .crypto import serialize_public_key
from .errors import SignatureError



#  VERIFICACIÓN GENÉRICA

def verify_signature(public_key, data: bytes, signature: bytes, hash_algorithm,
                     rsa_padding=None) -> bool:
    """
    Verifica una firma X.509 sobre 'data' con la clave pública indicada.

    Argumentos:
        public_key: Clave pública del firmante
        data: Datos firmados (por ejemplo el TBS de un certificado)
        signature: Firma a verificar
        hash_algorithm: Hash usado al firmar (None para Ed25519/Ed448)
        rsa_padding: Padding RSA de la firma; por defecto PKCS#1 v1.5

    Returns:
        True si la firma es válida, False si no corresponde

    Raises:
        SignatureError: Si el proveedor no puede verificar con esa clave
    """
    try:
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature, data, rsa_padding or padding.PKCS1v15(), hash_algorithm)
        elif isinstance(public_key, ec.EllipticCurvePublicKey):
            public_key.verify(signature, data, ec.ECDSA(hash_algorithm))
        elif isinstance(public_key, dsa.DSAPublicKey):
            public_key.verify(signature, data, hash_algorithm)
        else:
            public_key.verify(signature, data)
        return True
    except InvalidSignature:
        return False
    except (TypeError, ValueError, UnsupportedAlgorithm) as e:
        raise SignatureError(f"No se pudo verificar la firma: {e}") from e



#  VERIFICACIÓN DE OBJETOS X.509

def _rsa_padding(obj):
    # PSS o PKCS1v15 para firmas RSA; ECDSA o None para el resto
    params = getattr(obj, "signature_algorithm_parameters", None)
    return params if isinstance(params, padding.AsymmetricPadding) else None


def verify_certificate_signature(cert: x509.Certificate, issuer_public_key) -> bool:
    """
    Comprueba que 'cert' fue firmado con la clave privada del emisor.
    """
    return verify_signature(
        issuer_public_key,
        cert.tbs_certificate_bytes,
        cert.signature,
        cert.signature_hash_algorithm,
        _rsa_padding(cert),
    )


def verify_csr(csr: x509.CertificateSigningRequest, public_key=None) -> bool:
    """
    Verifica la autofirma de un CSR (prueba de posesión).

    Argumentos:
        csr: Certificate Signing Request
        public_key: Si se indica, además debe coincidir con la clave del CSR

    Returns:
        True si la firma es válida (y la clave coincide)
    """
    if public_key is not None and (
        serialize_public_key(csr.public_key()) != serialize_public_key(public_key)
    ):
        return False
    return verify_signature(
        public_key if public_key is not None else csr.public_key(),
        csr.tbs_certrequest_bytes,
        csr.signature,
        csr.signature_hash_algorithm,
        _rsa_padding(csr),
    )


def verify_crl_signature(crl: x509.CertificateRevocationList, issuer_public_key) -> bool:
    try:
        return crl.is_signature_valid(issuer_public_key)
    except (TypeError, ValueError, UnsupportedAlgorithm) as e:
        raise SignatureError(f"No se pudo verificar la CRL: {e}") from e
