from mailer.providers.base import EmailMessage, EmailProvider


class MailtrapProvider(EmailProvider):
    """Mailtrap sending API; mostly used for staging inboxes."""

    name = "mailtrap"
    API_URL = "https://send.api.mailtrap.io/api/send"

    def __init__(self, api_token: str, sender_name: str, sender_address: str):
        super().__init__(sender_name, sender_address)
        self._headers = {
            "Authorization": f"Bearer {api_token}",
            "Content-Type": "application/json",
        }

    async def send(self, message: EmailMessage) -> None:
        payload = {
            "from": {"email": self.sender_address, "name": self.sender_name},
            "to": [{"email": message.to}],
            "subject": message.subject,
            "text": message.text,
            "html": message.html,
            "category": "NutriEasy",
        }
        await self._post_json(self.API_URL, self._headers, payload)
