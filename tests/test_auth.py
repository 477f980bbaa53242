import os
import sys
import asyncio
import unittest
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException
from jose import jwt

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from auth import (
    ALGORITHM,
    Authenticator,
    hash_password,
    new_activation_token,
    verify_password,
)
from db import UserRepository
from settings_schema import SettingsSchema


class PasswordTestCase(unittest.TestCase):
    def test_hash_and_verify(self) -> None:
        hashed = hash_password("Password1")
        self.assertNotEqual(hashed, "Password1")
        self.assertTrue(verify_password("Password1", hashed))
        self.assertFalse(verify_password("Password2", hashed))
        self.assertFalse(verify_password("", hashed))
        self.assertFalse(verify_password("Password1", ""))
        with self.assertRaises(ValueError):
            hash_password("")

    def test_activation_tokens_are_unique(self) -> None:
        self.assertNotEqual(new_activation_token(), new_activation_token())


class AuthenticatorTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_auth.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.users = UserRepository(self.db_path)
        self.settings = SettingsSchema(secret_key="s3cret")
        self.auth = Authenticator(self.users, self.settings)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_token_round_trip(self) -> None:
        token = self.auth.create_token("a" * 32)
        self.assertEqual(self.auth.decode_token(token), "a" * 32)

    def test_rejects_foreign_and_expired_tokens(self) -> None:
        other = Authenticator(self.users, SettingsSchema(secret_key="other"))
        with self.assertRaises(ValueError):
            self.auth.decode_token(other.create_token("a" * 32))
        with self.assertRaises(ValueError):
            self.auth.decode_token("fdsafda")
        past = datetime.now(timezone.utc) - timedelta(minutes=5)
        expired = jwt.encode({"sub": "a" * 32, "exp": past}, "s3cret", algorithm=ALGORITHM)
        with self.assertRaises(ValueError):
            self.auth.decode_token(expired)

    def test_current_and_active_user(self) -> None:
        uid = asyncio.run(self.users.create("user1", "user1@mail.com", "hash", "tok"))
        token = self.auth.create_token(uid)

        user = asyncio.run(self.auth.current_user(token))
        self.assertEqual(user["id"], uid)

        with self.assertRaises(HTTPException) as ctx:
            asyncio.run(self.auth.active_user(token))
        self.assertEqual(ctx.exception.status_code, 403)
        self.assertEqual(ctx.exception.detail, "User inactive")

        asyncio.run(self.users.activate(uid, "tok"))
        self.assertEqual(asyncio.run(self.auth.active_user(token))["id"], uid)

    def test_missing_or_unknown_user(self) -> None:
        for token in (None, "garbage", self.auth.create_token("0" * 32)):
            with self.assertRaises(HTTPException) as ctx:
                asyncio.run(self.auth.current_user(token))
            self.assertEqual(ctx.exception.status_code, 401)
            self.assertEqual(ctx.exception.detail, "Not authenticated")


if __name__ == "__main__":
    unittest.main()
