from __future__ import annotations

import hashlib
import hmac
import secrets


def generate_code(digits: int = 6) -> str:
    # uniform over 000000..999999 for the default length
    return f"{secrets.randbelow(10 ** digits):0{digits}d}"


def hash_code(code: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), code.encode("utf-8"), hashlib.sha256).hexdigest()


def generate(digits: int, secret: str) -> tuple[str, str]:
    code = generate_code(digits)
    return code, hash_code(code, secret)


def codes_match(code: str, code_hash: str, secret: str) -> bool:
    return hmac.compare_digest(hash_code(code, secret), code_hash)
