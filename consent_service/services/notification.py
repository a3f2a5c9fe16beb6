"""Verification messages sent when a participant adds an email address or phone number."""
from abc import ABC, abstractmethod
import logging

from sendgrid import sendgrid

from consent_service import config
from consent_service.participant_enums import VerificationChannel
from consent_service.provider import Provider


class Notifier(Provider, ABC):
    environment_variable_name = 'CONSENT_NOTIFIER'

    @abstractmethod
    def send_verification(self, account_id: str, channel: VerificationChannel, address: str):
        pass


class SendgridNotifier(Notifier):
    """Sends email verifications through SendGrid. Text messages are handled by an external gateway."""

    def send_verification(self, account_id: str, channel: VerificationChannel, address: str):
        if channel != VerificationChannel.EMAIL:
            logging.info(f'Phone verification for account {account_id} is delegated to the SMS gateway')
            return
        client = sendgrid.SendGridAPIClient(api_key=config.getSetting(config.SENDGRID_KEY))
        client.client.mail.send.post(request_body=self.verification_message(address))
        logging.info(f'Sent email verification for account {account_id}')

    @staticmethod
    def verification_message(address: str) -> dict:
        """The SendGrid v3 mail/send body for a verification email."""
        return {
            'personalizations': [
                {
                    'to': [{'email': address}],
                    'subject': config.getSettingJson(config.VERIFICATION_EMAIL_SUBJECT, 'Please verify your account')
                }
            ],
            'from': {
                'email': config.getSettingJson(config.SENDGRID_FROM_EMAIL)
            },
            'content': [
                {
                    'type': 'text/plain',
                    'value': config.getSettingJson(config.VERIFICATION_EMAIL_BODY, '')
                }
            ]
        }


def get_notifier() -> Notifier:
    provider_class = Notifier.get_provider(default=SendgridNotifier)
    return provider_class()


def dispatch_verification(notifier: Notifier, account_id: str, channel: VerificationChannel, address: str):
    """Requests a verification without letting a delivery failure reach the caller."""
    try:
        notifier.send_verification(account_id, channel, address)
    except Exception:  # pylint: disable=broad-except
        logging.error(f'Unable to send {channel} verification for account {account_id}', exc_info=True)
