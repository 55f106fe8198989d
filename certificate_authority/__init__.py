"""
Librería de soporte para una autoridad de certificación propia.

Genera material de claves y artefactos X.509, firma CSRs, emite CRLs y
prepara KeyStore/TrustStore/SSLContext en memoria a partir de PEMs.
"""

import logging

from .core.errors import (
    PKIError,
    FormatError,
    TypeMismatchError,
    CardinalityError,
    UnknownObjectTypeError,
    UnsupportedTypeError,
    AttributeNotFoundError,
    SignatureError,
    MissingCertificateError,
    DuplicateAliasError,
    KeyStoreAccessError,
    ContextInitError,
)
from .core.models import KeyPair, ObjectKind, PKIObject
from .core.classifier import classify, obj_to_private_key
from .core.pem import (
    pem_to_objects,
    pem_to_certs,
    pem_to_private_keys,
    pem_to_private_key,
    pem_to_public_keys,
    pem_to_csr,
    pem_to_crl,
    obj_to_pem,
    obj_to_pem_bytes,
    objs_to_pem,
    key_to_pem,
)
from .core.pki import (
    generate_key_pair,
    generate_x500_name,
    x500_name_to_cn,
    generate_certificate_request,
    sign_certificate_request,
    generate_crl,
)
from .core.keystore import (
    KeyStore,
    TrustStore,
    KeyAndTrustStores,
    new_keystore,
    new_truststore,
    assoc_cert,
    assoc_certs_from_source,
    assoc_certs_from_file,
    assoc_private_key,
    assoc_private_key_from_sources,
    assoc_private_key_file,
    pems_to_key_and_trust_stores,
)
from .core.ssl_context import (
    get_key_manager_factory,
    get_trust_manager_factory,
    build_ssl_context,
    pems_to_ssl_context,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
