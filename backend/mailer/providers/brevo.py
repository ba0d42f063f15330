from mailer.providers.base import EmailMessage, EmailProvider


class BrevoProvider(EmailProvider):
    """Brevo (formerly Sendinblue) transactional email API."""

    name = "brevo"
    API_URL = "https://api.brevo.com/v3/smtp/email"

    def __init__(self, api_key: str, sender_name: str, sender_address: str):
        super().__init__(sender_name, sender_address)
        self._headers = {
            "api-key": api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def send(self, message: EmailMessage) -> None:
        payload = {
            "sender": {"name": self.sender_name, "email": self.sender_address},
            "to": [{"email": message.to}],
            "subject": message.subject,
            "htmlContent": message.html,
            "textContent": message.text,
        }
        await self._post_json(self.API_URL, self._headers, payload)
