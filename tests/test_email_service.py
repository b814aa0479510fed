import smtplib
import unittest
from unittest.mock import MagicMock, patch

from agap.shared.email_service import EmailService


class EmailServiceTests(unittest.TestCase):
    def setUp(self):
        self.service = EmailService(server="smtp.test", port=587, username="agap@test.ph",
                                    password="secret", from_email="noreply@test.ph")

    def test_unconfigured_service_does_not_connect(self):
        service = EmailService(server="smtp.test", port=587)
        service.smtp_username = None
        with patch("agap.shared.email_service.smtplib.SMTP") as smtp:
            self.assertFalse(service.send("a@x.ph", "Hi", "Body"))
        smtp.assert_not_called()

    def test_reset_email_links_to_forgot_password_page(self):
        with patch("agap.shared.email_service.smtplib.SMTP") as smtp:
            server = smtp.return_value.__enter__.return_value
            self.assertTrue(self.service.send_password_reset_email("a@x.ph", "tok123", "Ana"))
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("agap@test.ph", "secret")
        msg = server.send_message.call_args.args[0]
        self.assertEqual(msg["To"], "a@x.ph")
        self.assertEqual(msg["From"], "noreply@test.ph")
        self.assertIn("/forgot-password?token=tok123", msg.get_content())
        self.assertIn("Hello Ana", msg.get_content())

    def test_smtp_failure_returns_false(self):
        with patch("agap.shared.email_service.smtplib.SMTP") as smtp:
            smtp.return_value.__enter__.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b"no")
            self.assertFalse(self.service.send("a@x.ph", "Hi", "Body"))

    def test_account_status_emails(self):
        self.service.send = MagicMock(return_value=True)
        self.assertTrue(self.service.send_account_status_email("a@x.ph", "Ana", "approved"))
        subject, text = self.service.send.call_args.args[1:]
        self.assertIn("approved", subject)
        self.assertIn("/login", text)
        self.assertFalse(self.service.send_account_status_email("a@x.ph", "Ana", "pending"))


if __name__ == "__main__":
    unittest.main()
