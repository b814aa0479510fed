import unittest
from datetime import timedelta

from agap.auth import utils
from agap.auth.manager import MOBILE_BLOCKED_MESSAGE, client_refusal


class CredentialValidationTests(unittest.TestCase):
    def test_blank_fields(self):
        self.assertEqual(utils.validate_credentials("", "secret"), "Please fill in all fields")
        self.assertEqual(utils.validate_credentials("a@b.co", "   "), "Please fill in all fields")

    def test_bad_email(self):
        self.assertEqual(utils.validate_credentials("not-an-email", "secret"), "Please enter a valid email address")

    def test_valid_credentials(self):
        self.assertIsNone(utils.validate_credentials("juan@example.com", "secret"))

    def test_password_minimum_length(self):
        self.assertEqual(utils.validate_new_password("12345"), "Password must be at least 6 characters long")
        self.assertIsNone(utils.validate_new_password("123456"))


class TokenTests(unittest.TestCase):
    def test_access_token_round_trip(self):
        token = utils.create_access_token({"sub": "abc", "role": "responder"})
        payload = utils.decode_token(token)
        self.assertEqual(payload["sub"], "abc")
        self.assertEqual(payload["role"], "responder")

    def test_expired_token_is_rejected(self):
        token = utils.create_access_token({"sub": "abc"}, expires_delta=timedelta(seconds=-5))
        self.assertIsNone(utils.decode_token(token))

    def test_access_token_is_not_a_reset_token(self):
        token = utils.create_access_token({"sub": "abc"})
        self.assertIsNone(utils.verify_reset_token(token))
        reset = utils.create_reset_token_jwt("abc")
        self.assertEqual(utils.verify_reset_token(reset)["sub"], "abc")

    def test_password_hashing(self):
        hashed = utils.hash_password("secret1")
        self.assertTrue(utils.verify_password("secret1", hashed))
        self.assertFalse(utils.verify_password("secret2", hashed))


class ClientGateTests(unittest.TestCase):
    def test_mobile_is_for_citizens(self):
        self.assertIsNone(client_refusal("mobile", "user", None))
        self.assertEqual(client_refusal("mobile", "responder", "approved"), (MOBILE_BLOCKED_MESSAGE, 403))
        self.assertEqual(client_refusal("mobile", "admin", None)[1], 403)

    def test_web_refuses_citizens_and_unapproved_responders(self):
        self.assertEqual(client_refusal("web", "user", None)[1], 403)
        self.assertEqual(client_refusal("web", "responder", "pending")[1], 403)
        self.assertEqual(client_refusal("web", "responder", "rejected")[1], 403)
        self.assertIsNone(client_refusal("web", "responder", "approved"))
        self.assertIsNone(client_refusal("web", "admin", None))


if __name__ == "__main__":
    unittest.main()
