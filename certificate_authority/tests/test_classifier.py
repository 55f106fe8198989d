"""
Tests unitarios para el módulo classifier.py
"""

import pytest

from certificate_authority.core.classifier import classify, obj_to_private_key
from certificate_authority.core.errors import TypeMismatchError, UnknownObjectTypeError
from certificate_authority.core.models import ObjectKind, PKIObject


@pytest.mark.parametrize("fixture_name, kind", [
    ("ca_cert", ObjectKind.CERTIFICATE),
    ("leaf_csr", ObjectKind.CERTIFICATE_REQUEST),
    ("ca_crl", ObjectKind.CRL),
    ("leaf_key_pair", ObjectKind.KEY_PAIR),
])
def test_classify_native_objects(request, fixture_name, kind):
    obj = request.getfixturevalue(fixture_name)

    result = classify(obj)

    assert result == PKIObject(kind, obj)


def test_classify_keys(leaf_key_pair):
    assert classify(leaf_key_pair.private_key).kind is ObjectKind.PRIVATE_KEY
    assert classify(leaf_key_pair.public_key).kind is ObjectKind.PUBLIC_KEY


def test_classify_is_idempotent(leaf_cert):
    once = classify(leaf_cert)

    assert classify(once) is once


def test_mismatched_tuple_is_not_a_key_pair(leaf_key_pair, other_key_pair):
    with pytest.raises(UnknownObjectTypeError):
        classify((leaf_key_pair.private_key, other_key_pair.public_key))


@pytest.mark.parametrize("obj", ["texto", 42, b"bytes", None, object()])
def test_classify_unknown_objects(obj):
    with pytest.raises(UnknownObjectTypeError, match="desconocido"):
        classify(obj)


def test_obj_to_private_key(leaf_key_pair):
    assert obj_to_private_key(leaf_key_pair) is leaf_key_pair.private_key
    assert obj_to_private_key(leaf_key_pair.private_key) is leaf_key_pair.private_key
    assert obj_to_private_key(classify(leaf_key_pair)) is leaf_key_pair.private_key


def test_obj_to_private_key_rejects_other_kinds(leaf_cert, leaf_key_pair):
    with pytest.raises(TypeMismatchError):
        obj_to_private_key(leaf_cert)
    with pytest.raises(TypeMismatchError):
        obj_to_private_key(leaf_key_pair.public_key)
