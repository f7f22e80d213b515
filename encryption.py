import os
import logging
from sqlalchemy.types import TypeDecorator, Text
from cryptography.fernet import Fernet, InvalidToken
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

_KEY = os.getenv("DB_ENCRYPTION_KEY")


def get_fernet():
    if not _KEY:
        return None
    return Fernet(_KEY)


class EncryptedString(TypeDecorator):
    """
    Encrypts values before they are written and decrypts them on load,
    so third-party credentials (Blogspot OAuth tokens) never sit in the
    database in clear text.
    """
    impl = Text  # ciphertext is longer than the plaintext
    cache_ok = True

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.fernet = get_fernet()
        if self.fernet is None:
            logger.warning("DB_ENCRYPTION_KEY is not set. Encrypted columns are stored as plain text.")

    def process_bind_param(self, value, dialect):
        if value is not None and self.fernet:
            if isinstance(value, str):
                value = value.encode("utf-8")
            return self.fernet.encrypt(value).decode("utf-8")
        return value

    def process_result_value(self, value, dialect):
        if value is not None and self.fernet:
            try:
                return self.fernet.decrypt(value.encode("utf-8")).decode("utf-8")
            except InvalidToken:
                # rows written before the key was configured
                logger.warning("Could not decrypt column value, returning it unchanged")
                return value
        return value
