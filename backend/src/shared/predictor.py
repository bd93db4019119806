"""
Model prediction client.
Asks a model, through an OpenAI-compatible chat completions endpoint, how a
student would read a proverb.
"""
import json
import urllib.error
import urllib.request
from typing import Any, Dict, Optional

from .config import config
from .errors import PredictionError
from .logging import logger

PROMPT_TEMPLATE = (
    "ধর তুমি একজন বাংলাদেশী ছাত্র। নিচের শব্দগুচ্ছ শুনলে তুমি কী বুঝবে উদাহরণ সহ "
    "কি বুঝছ সর্বোচ্চ ৫ বাক্যের মধ্যে উত্তর দাও।\n\n"
    "শব্দগুচ্ছ : {text}\n\n"
    "অবস্যই ৫ বাক্যের কমে উত্তর দিবে। আজে বাজে কথা বলবে না।"
)


class ChatCompletionPredictor:
    """
    Callable predictor: `predictor(model_id, text) -> answer`.

    Raises:
        PredictionError: when no key is configured, the request fails or
            the response carries no choices
    """

    def __init__(
        self,
        api_url: str = None,
        api_key: str = None,
        max_tokens: int = None,
        temperature: float = None,
        timeout: float = None
    ):
        self.api_url = api_url or config.PREDICTION_API_URL
        self.api_key = api_key if api_key is not None else config.PREDICTION_API_KEY
        self.max_tokens = max_tokens or config.PREDICTION_MAX_TOKENS
        self.temperature = temperature if temperature is not None else config.PREDICTION_TEMPERATURE
        self.timeout = timeout or config.PREDICTION_TIMEOUT_SECONDS

    def build_request(self, model_id: str, text: str) -> urllib.request.Request:
        payload = {
            'model': model_id,
            'messages': [{'role': 'user', 'content': PROMPT_TEMPLATE.format(text=text)}],
            'max_tokens': self.max_tokens,
            'temperature': self.temperature,
        }
        return urllib.request.Request(
            self.api_url,
            data=json.dumps(payload).encode('utf-8'),
            headers={
                'Authorization': f"Bearer {self.api_key}",
                'Content-Type': 'application/json',
            },
            method='POST'
        )

    def __call__(self, model_id: str, text: Optional[str]) -> str:
        if not self.api_key:
            raise PredictionError('Prediction API key is not configured')
        if not text:
            raise PredictionError('Proverb text is required for a prediction')

        try:
            with urllib.request.urlopen(self.build_request(model_id, text), timeout=self.timeout) as response:
                data: Dict[str, Any] = json.loads(response.read().decode('utf-8'))
        except (urllib.error.URLError, ValueError) as e:
            logger.error(f"Prediction request to {model_id} failed: {e}")
            raise PredictionError(f"Prediction request to {model_id} failed: {e}") from e

        choices = data.get('choices') or []
        answer = (choices[0].get('message') or {}).get('content') if choices else None
        if not answer:
            raise PredictionError(f"No response from model {model_id}")
        return answer
