from __future__ import annotations

import secrets
import string

import bcrypt

BCRYPT_PREFIX = "{bcrypt}"
BCRYPT_MIN_ROUNDS = 4
BCRYPT_MAX_ROUNDS = 31
SPECIAL_CHARS = "!@#$%&*()-_=+[]{}?"


class PasswordPolicyError(ValueError):
    pass


class BcryptPasswordEncoder:
    def __init__(self, rounds: int = 12) -> None:
        if not BCRYPT_MIN_ROUNDS <= int(rounds) <= BCRYPT_MAX_ROUNDS:
            raise ValueError(f"bcrypt rounds must be between {BCRYPT_MIN_ROUNDS} and {BCRYPT_MAX_ROUNDS}")
        self.rounds = int(rounds)

    def encode(self, raw_password: str) -> str:
        if not raw_password:
            raise ValueError("raw password is empty")
        hashed = bcrypt.hashpw(raw_password.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds))
        return BCRYPT_PREFIX + hashed.decode("ascii")

    def matches(self, encoded_password: str, raw_password: str) -> bool:
        if not encoded_password or not raw_password:
            return False
        if not encoded_password.startswith(BCRYPT_PREFIX):
            return False
        hashed = encoded_password[len(BCRYPT_PREFIX) :].encode("ascii")
        try:
            return bcrypt.checkpw(raw_password.encode("utf-8"), hashed)
        except ValueError:
            return False


class DefaultPasswordGenerator:
    def __init__(
        self,
        *,
        length: int = 16,
        min_special_chars: int = 2,
        min_numbers: int = 2,
        min_uppercase: int = 2,
    ) -> None:
        if min_special_chars + min_numbers + min_uppercase > length:
            raise ValueError("password policy minimums exceed the password length")
        self.length = length
        self.min_special_chars = min_special_chars
        self.min_numbers = min_numbers
        self.min_uppercase = min_uppercase

    def generate(self) -> str:
        chars = [secrets.choice(SPECIAL_CHARS) for _ in range(self.min_special_chars)]
        chars += [secrets.choice(string.digits) for _ in range(self.min_numbers)]
        chars += [secrets.choice(string.ascii_uppercase) for _ in range(self.min_uppercase)]
        alphabet = string.ascii_letters + string.digits + SPECIAL_CHARS
        chars += [secrets.choice(alphabet) for _ in range(self.length - len(chars))]
        secrets.SystemRandom().shuffle(chars)
        return "".join(chars)

    def validate(self, raw_password: str) -> None:
        if len(raw_password or "") < self.length:
            raise PasswordPolicyError(f"password must be at least {self.length} characters long")
        if sum(1 for c in raw_password if c in SPECIAL_CHARS) < self.min_special_chars:
            raise PasswordPolicyError(f"password must contain at least {self.min_special_chars} special characters")
        if sum(1 for c in raw_password if c.isdigit()) < self.min_numbers:
            raise PasswordPolicyError(f"password must contain at least {self.min_numbers} numbers")
        if sum(1 for c in raw_password if c.isupper()) < self.min_uppercase:
            raise PasswordPolicyError(f"password must contain at least {self.min_uppercase} uppercase letters")


class DefaultPasswordManager:
    def __init__(self, password_encoder: BcryptPasswordEncoder, password_generator: DefaultPasswordGenerator) -> None:
        self._encoder = password_encoder
        self._generator = password_generator

    def encode(self, raw_password: str) -> str:
        self._generator.validate(raw_password)
        return self._encoder.encode(raw_password)

    def matches(self, encoded_password: str, raw_password: str) -> bool:
        return self._encoder.matches(encoded_password, raw_password)

    def generate(self) -> str:
        return self._generator.generate()

    def validate(self, raw_password: str) -> None:
        self._generator.validate(raw_password)
