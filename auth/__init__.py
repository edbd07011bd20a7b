from auth.errors import (APIKeyError, AuthError, DuplicateHash, InvalidCredential,
                         MissingCredential, MissingPermission, PersistenceError,)
from auth.key_manager import APIKeyManager, generate_api_key, hash_api_key
from auth.key_store import APIKeyStore
from auth.schemas import (APIKeyRecord, APIKeySummary, AuthContext, IssuedKey,
                          ValidationResult,)

__all__ = ['APIKeyError', 'APIKeyManager', 'APIKeyRecord', 'APIKeyStore',
           'APIKeySummary', 'AuthContext', 'AuthError', 'DuplicateHash',
           'InvalidCredential', 'IssuedKey', 'MissingCredential',
           'MissingPermission', 'PersistenceError', 'ValidationResult',
           'generate_api_key', 'hash_api_key']
