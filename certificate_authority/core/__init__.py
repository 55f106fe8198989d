"""
Módulo core de la autoridad de certificación.

Módulos disponibles:
- errors: Jerarquía de errores
- models: KeyPair y unión etiquetada PKIObject
- crypto: Frontera con el proveedor criptográfico (claves, PBKDF2, contraseñas)
- sign: Verificación de firmas de certificados, CSRs y CRLs
- classifier: Clasificación de objetos nativos en variantes PKIObject
- pem: Codificación/decodificación PEM
- pki: Generación de claves, CSRs, certificados y CRLs
- keystore: KeyStore/TrustStore en memoria y su ensamblado
- ssl_context: KeyManager/TrustManager y contextos TLS
"""

# Importar módulos para facilitar el uso
from . import errors
from . import models
from . import crypto
from . import sign
from . import classifier
from . import pem
from . import pki
from . import keystore
from . import ssl_context

__all__ = ['errors', 'models', 'crypto', 'sign', 'classifier', 'pem', 'pki',
           'keystore', 'ssl_context']
