"""
Tests unitarios para el módulo ssl_context.py
"""

import ssl

import pytest

from certificate_authority.core.errors import ContextInitError, KeyStoreAccessError
from certificate_authority.core.keystore import pems_to_key_and_trust_stores
from certificate_authority.core.pem import obj_to_pem_bytes
from certificate_authority.core.ssl_context import (
    build_ssl_context,
    get_key_manager_factory,
    get_trust_manager_factory,
    pems_to_ssl_context,
)


@pytest.fixture(scope="module")
def stores(leaf_cert_pem, leaf_key_pem, ca_cert_pem):
    return pems_to_key_and_trust_stores(leaf_cert_pem, leaf_key_pem, ca_cert_pem)


def memory_handshake(server_ctx, client_ctx, rounds=10):
    """Handshake TLS completo sobre MemoryBIO, sin sockets."""
    s_in, s_out = ssl.MemoryBIO(), ssl.MemoryBIO()
    c_in, c_out = ssl.MemoryBIO(), ssl.MemoryBIO()
    server = server_ctx.wrap_bio(s_in, s_out, server_side=True)
    client = client_ctx.wrap_bio(c_in, c_out, server_side=False, server_hostname="localhost")

    pending = [client, server]
    for _ in range(rounds):
        for side in list(pending):
            try:
                side.do_handshake()
                pending.remove(side)
            except ssl.SSLWantReadError:
                pass
        s_in.write(c_out.read())
        c_in.write(s_out.read())
        if not pending:
            break
    assert not pending, "El handshake no terminó"
    return server, client


# ==============================
#  TEST: FACTORIES
# ==============================
def test_key_manager_factory(stores, leaf_cert):
    kmf = get_key_manager_factory(stores.keystore, stores.keystore_pw)

    [manager] = kmf.key_managers
    assert manager.alias == "private-key"
    assert manager.certificate_chain == (leaf_cert,)


def test_key_manager_factory_from_assembled_stores(stores):
    assert len(get_key_manager_factory(stores).key_managers) == 1


def test_key_manager_factory_wrong_password(stores):
    with pytest.raises(KeyStoreAccessError):
        get_key_manager_factory(stores.keystore, "contraseña-incorrecta")


def test_key_manager_factory_requires_password(stores):
    with pytest.raises(ValueError):
        get_key_manager_factory(stores.keystore)


def test_trust_manager_factory(stores, ca_cert, ca_cert_pem):
    tmf = get_trust_manager_factory(stores.truststore)

    assert tmf.certificates == [ca_cert]
    assert tmf.cadata.encode("ascii") == ca_cert_pem
    assert get_trust_manager_factory(stores).certificates == [ca_cert]


# ==============================
#  TEST: CONTEXTO TLS
# ==============================
def test_pems_to_ssl_context(leaf_cert_pem, leaf_key_pem, ca_cert_pem):
    ctx = pems_to_ssl_context(leaf_cert_pem, leaf_key_pem, ca_cert_pem)

    assert isinstance(ctx, ssl.SSLContext)
    assert len(ctx.get_ca_certs()) == 1


def test_client_context(leaf_cert_pem, leaf_key_pem, ca_cert_pem):
    ctx = pems_to_ssl_context(leaf_cert_pem, leaf_key_pem, ca_cert_pem, server_side=False)

    assert ctx.verify_mode == ssl.CERT_REQUIRED


def test_require_client_cert(stores):
    ctx = build_ssl_context(get_key_manager_factory(stores), get_trust_manager_factory(stores),
                            require_client_cert=True)

    assert ctx.verify_mode == ssl.CERT_REQUIRED


def test_mismatched_key_fails(leaf_cert_pem, other_key_pair, ca_cert_pem):
    """Test: una clave que no es la del certificado la rechaza el proveedor."""
    other_key_pem = obj_to_pem_bytes(other_key_pair.private_key)

    with pytest.raises(ContextInitError):
        pems_to_ssl_context(leaf_cert_pem, other_key_pem, ca_cert_pem)


def test_handshake_between_contexts(leaf_cert_pem, leaf_key_pem, ca_cert_pem):
    """Test: servidor y cliente construidos con los mismos PEMs se entienden."""
    server_ctx = pems_to_ssl_context(leaf_cert_pem, leaf_key_pem, ca_cert_pem)
    client_ctx = pems_to_ssl_context(leaf_cert_pem, leaf_key_pem, ca_cert_pem,
                                     server_side=False)
    client_ctx.check_hostname = False

    _, client = memory_handshake(server_ctx, client_ctx)

    subject = dict(item[0] for item in client.getpeercert()["subject"])
    assert subject["commonName"] == "localhost"
