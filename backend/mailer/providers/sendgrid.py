from mailer.providers.base import EmailMessage, EmailProvider


class SendGridProvider(EmailProvider):
    name = "sendgrid"
    API_URL = "https://api.sendgrid.com/v3/mail/send"

    def __init__(self, api_key: str, sender_name: str, sender_address: str):
        super().__init__(sender_name, sender_address)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def send(self, message: EmailMessage) -> None:
        payload = {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {"email": self.sender_address, "name": self.sender_name},
            "subject": message.subject,
            "content": [
                {"type": "text/plain", "value": message.text},
                {"type": "text/html", "value": message.html},
            ],
        }
        await self._post_json(self.API_URL, self._headers, payload, ok_statuses=(202,))
