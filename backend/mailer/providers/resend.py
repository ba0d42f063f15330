from mailer.providers.base import EmailMessage, EmailProvider


class ResendProvider(EmailProvider):
    name = "resend"
    API_URL = "https://api.resend.com/emails"

    def __init__(self, api_key: str, sender_name: str, sender_address: str):
        super().__init__(sender_name, sender_address)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def send(self, message: EmailMessage) -> None:
        payload = {
            "from": f"{self.sender_name} <{self.sender_address}>",
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }
        await self._post_json(self.API_URL, self._headers, payload)
