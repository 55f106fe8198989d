"""
Fixtures compartidas para los tests.

Generar claves RSA es lento, así que la CA y el certificado de hoja se
crean una sola vez por sesión.
"""

import pytest

from certificate_authority.core.pem import obj_to_pem_bytes
from certificate_authority.core.pki import (
    generate_key_pair,
    generate_x500_name,
    generate_certificate_request,
    sign_certificate_request,
    generate_crl,
)

CA_SERIAL = 1000
LEAF_SERIAL = 1


# ==============================
#  FIXTURES: CA
# ==============================
@pytest.fixture(scope="session")
def ca_key_pair():
    """Par de claves de la CA de pruebas."""
    return generate_key_pair()


@pytest.fixture(scope="session")
def ca_name():
    return generate_x500_name("Test CA")


@pytest.fixture(scope="session")
def ca_cert(ca_key_pair, ca_name):
    """Certificado autofirmado de la CA."""
    csr = generate_certificate_request(ca_key_pair, ca_name)
    return sign_certificate_request(csr, ca_name, CA_SERIAL, ca_key_pair.private_key)


@pytest.fixture(scope="session")
def ca_crl(ca_key_pair, ca_name):
    return generate_crl(ca_name, ca_key_pair.private_key)


# ==============================
#  FIXTURES: HOJA
# ==============================
@pytest.fixture(scope="session")
def leaf_key_pair():
    return generate_key_pair()


@pytest.fixture(scope="session")
def leaf_name():
    return generate_x500_name("localhost")


@pytest.fixture(scope="session")
def leaf_csr(leaf_key_pair, leaf_name):
    return generate_certificate_request(leaf_key_pair, leaf_name)


@pytest.fixture(scope="session")
def leaf_cert(leaf_csr, ca_name, ca_key_pair):
    """Certificado de hoja firmado por la CA con serial 1."""
    return sign_certificate_request(leaf_csr, ca_name, LEAF_SERIAL, ca_key_pair.private_key)


@pytest.fixture(scope="session")
def other_key_pair():
    """Par de claves sin relación con ningún certificado."""
    return generate_key_pair()


# ==============================
#  FIXTURES: PEM
# ==============================
@pytest.fixture(scope="session")
def ca_cert_pem(ca_cert):
    return obj_to_pem_bytes(ca_cert)


@pytest.fixture(scope="session")
def leaf_cert_pem(leaf_cert):
    return obj_to_pem_bytes(leaf_cert)


@pytest.fixture(scope="session")
def leaf_key_pem(leaf_key_pair):
    """Clave privada de la hoja en PKCS8."""
    return obj_to_pem_bytes(leaf_key_pair.private_key)
