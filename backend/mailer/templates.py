"""Subject, HTML and plain-text bodies for transactional emails."""
from html import escape

from config import settings
from mailer.providers.base import EmailMessage

_FOOTER = "Cordiali saluti,<br>Il Team di NutriEasy"


def _wrap(title: str, body: str) -> str:
    return (
        '<html><body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">'
        f'<h1 style="color: #4CAF50;">{title}</h1>{body}<p>{_FOOTER}</p>'
        "</body></html>"
    )


def _link(path: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}{path}"


def welcome_email(to: str, username: str) -> EmailMessage:
    name = escape(username)
    trial_days = settings.TRIAL_PERIOD_DAYS
    subject = f"Benvenuto su NutriEasy, {username}!"
    html = _wrap(
        f"Benvenuto su NutriEasy, {name}!",
        f"<p>Grazie per esserti registrato. La tua prova gratuita di {trial_days} giorni è iniziata.</p>"
        "<ul><li>Tracciare i tuoi pasti e la tua alimentazione</li>"
        "<li>Ricevere consigli nutrizionali personalizzati</li>"
        "<li>Monitorare i tuoi progressi</li>"
        "<li>Generare piani alimentari</li></ul>"
        f'<p>Per iniziare, <a href="{_link("/home")}">accedi alla tua dashboard</a> '
        "e crea il tuo primo obiettivo nutrizionale.</p>",
    )
    text = (
        f"Benvenuto su NutriEasy, {username}! Grazie per esserti registrato. "
        f"La tua prova gratuita di {trial_days} giorni è iniziata. Per iniziare, accedi alla tua "
        "dashboard e crea il tuo primo obiettivo nutrizionale. Cordiali saluti, Il Team di NutriEasy"
    )
    return EmailMessage(to=to, subject=subject, html=html, text=text)


def payment_confirmation_email(to: str, username: str, plan_name: str, amount: str, end_date: str) -> EmailMessage:
    subject = f"Conferma di pagamento - {plan_name}"
    html = _wrap(
        "Conferma di pagamento",
        f"<p>Ciao {escape(username)},</p><p>Grazie per il tuo abbonamento a NutriEasy!</p>"
        f"<p><strong>Piano:</strong> {escape(plan_name)}<br>"
        f"<strong>Importo:</strong> {escape(amount)}<br>"
        f"<strong>Valido fino al:</strong> {escape(end_date)}</p>"
        "<p>Ora hai accesso completo a tutte le funzionalità premium di NutriEasy.</p>",
    )
    text = (
        f"Conferma di pagamento - Ciao {username}, Grazie per il tuo abbonamento a NutriEasy! "
        f"Dettagli del pagamento: Piano: {plan_name}, Importo: {amount}, Valido fino al: {end_date}. "
        "Ora hai accesso completo a tutte le funzionalità premium di NutriEasy. "
        "Cordiali saluti, Il Team di NutriEasy"
    )
    return EmailMessage(to=to, subject=subject, html=html, text=text)


def trial_expiring_email(to: str, username: str, days_left: int) -> EmailMessage:
    subject = f"La tua prova gratuita di NutriEasy scadrà tra {days_left} giorni"
    html = _wrap(
        "La tua prova gratuita sta per scadere",
        f"<p>Ciao {escape(username)},</p>"
        f"<p>Ti ricordiamo che la tua prova gratuita di NutriEasy <strong>scadrà tra {days_left} giorni</strong>.</p>"
        "<p>Per continuare a utilizzare tutte le funzionalità, ti invitiamo a sottoscrivere un abbonamento.</p>"
        f'<p><a href="{_link("/pricing")}">RINNOVA ORA</a></p>',
    )
    text = (
        f"La tua prova gratuita sta per scadere - Ciao {username}, Ti ricordiamo che la tua prova "
        f"gratuita di NutriEasy scadrà tra {days_left} giorni. Per continuare a utilizzare tutte le "
        "funzionalità, ti invitiamo a sottoscrivere un abbonamento. Cordiali saluti, Il Team di NutriEasy"
    )
    return EmailMessage(to=to, subject=subject, html=html, text=text)


def subscription_ended_email(to: str, username: str) -> EmailMessage:
    subject = "Il tuo abbonamento a NutriEasy è terminato"
    html = _wrap(
        "Il tuo abbonamento è terminato",
        f"<p>Ciao {escape(username)},</p>"
        "<p>Ti informiamo che il tuo abbonamento a NutriEasy è terminato.</p>"
        f"<p>I tuoi dati restano conservati per {settings.GRACE_PERIOD_DAYS} giorni. "
        f'<a href="{_link("/pricing")}">Rinnova ora</a> per continuare.</p>',
    )
    text = (
        f"Il tuo abbonamento è terminato - Ciao {username}, Ti informiamo che il tuo abbonamento a "
        f"NutriEasy è terminato. I tuoi dati restano conservati per {settings.GRACE_PERIOD_DAYS} giorni. "
        "Cordiali saluti, Il Team di NutriEasy"
    )
    return EmailMessage(to=to, subject=subject, html=html, text=text)
