"""
Jerarquía de errores de la autoridad de certificación.

Todas las operaciones propagan el error de forma síncrona al llamador;
ninguna lo registra y continúa.
"""


class PKIError(Exception):
    """Error base de la librería."""


#  ERRORES DE FORMATO Y TIPO

class FormatError(PKIError, ValueError):
    """Bloque PEM o estructura ASN.1 mal formada, o cabecera PEM desconocida."""


class TypeMismatchError(PKIError, ValueError):
    """El objeto decodificado no es del tipo esperado."""


class CardinalityError(PKIError, ValueError):
    """Número incorrecto de objetos (cero o más de uno cuando se espera uno)."""

    def __init__(self, message: str, expected: int = 1, found: int = 0):
        super().__init__(message)
        self.expected = expected
        self.found = found


class UnknownObjectTypeError(PKIError, TypeError):
    """El proveedor devolvió un tipo nativo que no se puede clasificar."""


class UnsupportedTypeError(PKIError, ValueError):
    """El objeto no tiene codificación PEM definida."""


class AttributeNotFoundError(PKIError, ValueError):
    """Falta un atributo esperado (por ejemplo el Common Name)."""


#  ERRORES CRIPTOGRÁFICOS

class SignatureError(PKIError):
    """Fallo del proveedor al firmar o verificar."""


#  ERRORES DE ALMACENES

class MissingCertificateError(PKIError, ValueError):
    """Se intentó guardar una clave privada sin su certificado."""


class DuplicateAliasError(PKIError, ValueError):
    """El alias ya está ocupado por una entrada de otro tipo."""

    def __init__(self, alias: str, existing: str):
        super().__init__(
            f"El alias '{alias}' ya está en uso por una entrada de tipo '{existing}'"
        )
        self.alias = alias
        self.existing = existing


class KeyStoreAccessError(PKIError):
    """Contraseña incorrecta para una entrada del KeyStore."""


class ContextInitError(PKIError):
    """El proveedor TLS rechazó el material ensamblado."""
