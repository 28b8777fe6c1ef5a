"""
模块职能：
- 会话凭据加解密：SessionRecord 只保存密文，明文仅在一次自动化调用期间存在。
"""
import base64, json, os, hashlib
from functools import lru_cache
from typing import Dict
from cryptography.fernet import Fernet


def _derive_fernet_key(raw: str) -> bytes:
    h = hashlib.sha256(raw.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(h)


@lru_cache(maxsize=1)
def _fernet() -> Fernet:
    secret = os.getenv("SECRET_KEY") or Fernet.generate_key().decode()
    return Fernet(_derive_fernet_key(secret))


def seal_credentials(username: str, password: str) -> str:
    return _fernet().encrypt(json.dumps({"username": username, "password": password}).encode()).decode()


def open_credentials(token: str) -> Dict[str, str]:
    return json.loads(_fernet().decrypt(token.encode()).decode())
