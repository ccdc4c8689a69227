import copy
import os
from cryptography.fernet import Fernet

KEY_ENV_VAR = "DB2POOL_KEY"

def decrypt_password(token: str, key: str | None = None) -> str:
    """
    Decrypt a Fernet-encrypted password.

    The key defaults to the ``DB2POOL_KEY`` environment variable.
    """
    key = key or os.environ.get(KEY_ENV_VAR)
    if not key:
        raise ValueError(f"{KEY_ENV_VAR} is not set, cannot decrypt password")
    return Fernet(key.encode()).decrypt(token.encode()).decode()

def resolve_endpoint(endpoint, key: str | None = None):
    """
    Return ``endpoint`` with its password decrypted if it was stored encrypted.
    """
    if not endpoint.db_passwd_encrypted:
        return endpoint
    return endpoint.model_copy(update={
        "db_passwd": decrypt_password(endpoint.db_passwd, key),
        "db_passwd_encrypted": False,
    })

def sanitize_config(config):
    """
    Return a deep copy of the configuration with password fields masked.
    """
    def mask(item):
        if isinstance(item, dict):
            return {k: ('******' if 'pass' in k.lower() else mask(v)) for k, v in item.items()}
        if isinstance(item, list):
            return [mask(i) for i in item]
        return item

    return mask(copy.deepcopy(config))
