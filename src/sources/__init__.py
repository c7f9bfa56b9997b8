"""Raw message sources for batch runs"""

from .sms_source import load_messages, read_inbox_export, SAMPLE_MESSAGES

__all__ = ['load_messages', 'read_inbox_export', 'SAMPLE_MESSAGES']
