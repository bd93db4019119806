"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the review pipeline.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # DynamoDB Tables
    PROBAD_TABLE = os.environ.get('PROBAD_TABLE', 'probad')
    EVAL_TABLE = os.environ.get('EVAL_TABLE', 'eval')
    ANALYTICS_TABLE = os.environ.get('ANALYTICS_TABLE', 'analytics')

    # DynamoDB Indexes (partition key in the name)
    STATUS_INDEX = os.environ.get('STATUS_INDEX', 'StatusIndex')
    LOCKED_BY_INDEX = os.environ.get('LOCKED_BY_INDEX', 'LockedByIndex')

    # Ledger documents inside the analytics table
    REVIEW_ANALYTICS_DOC_ID = os.environ.get('REVIEW_ANALYTICS_DOC_ID', 'review_analytics')
    EVAL_ANALYTICS_DOC_ID = os.environ.get('EVAL_ANALYTICS_DOC_ID', 'eval_analytics')

    # Lease Configuration
    CANDIDATE_SCAN_LIMIT = int(os.environ.get('CANDIDATE_SCAN_LIMIT', '50'))
    REVIEW_LOCK_TIMEOUT_HOURS = float(os.environ.get('REVIEW_LOCK_TIMEOUT_HOURS', '6'))
    EVAL_LOCK_TIMEOUT_HOURS = float(os.environ.get('EVAL_LOCK_TIMEOUT_HOURS', '24'))

    # Prediction API (OpenAI-compatible chat completions)
    PREDICTION_API_URL = os.environ.get('PREDICTION_API_URL', 'https://openrouter.ai/api/v1/chat/completions')
    PREDICTION_API_KEY = os.environ.get('PREDICTION_API_KEY', '')
    PREDICTION_MAX_TOKENS = int(os.environ.get('PREDICTION_MAX_TOKENS', '1000'))
    PREDICTION_TEMPERATURE = float(os.environ.get('PREDICTION_TEMPERATURE', '0.7'))
    PREDICTION_TIMEOUT_SECONDS = float(os.environ.get('PREDICTION_TIMEOUT_SECONDS', '60'))

    def table_for(self, collection: str) -> str:
        """Resolve a logical collection name to its DynamoDB table."""
        tables = {
            'probad': self.PROBAD_TABLE,
            'eval': self.EVAL_TABLE,
            'analytics': self.ANALYTICS_TABLE,
        }
        return tables.get(collection, collection)


config = Config()
