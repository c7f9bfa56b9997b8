"""Custom exceptions for the spends parser"""


class SpendParserError(Exception):
    """Base exception for spends parser errors"""
    pass


class ExtractionError(SpendParserError):
    """Model output could not be turned into a transaction"""
    pass


class LLMError(SpendParserError):
    """LLM backend errors"""
    pass


class BackendNotReadyError(LLMError):
    """Text generation backend could not be initialized"""
    pass


class StoreError(SpendParserError):
    """Transaction store errors"""
    pass


class StateManagerError(SpendParserError):
    """Progress state errors"""
    pass


class ConfigurationError(SpendParserError):
    """Configuration loading errors"""
    pass
