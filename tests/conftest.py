import pytest

from expertscope.services.providers import LLMProvider, ProviderError, ProviderReply


@pytest.fixture
def anyio_backend():
    return "asyncio"


VALID_REPLY = (
    '{"expertiseScore": 92, "personalizedInsight": "insight", "businessHint": "hint", '
    '"marketOpportunity": "market", "successProbability": "90%", '
    '"keyStrengths": ["a", "b"], "nextStepTeaser": "teaser", '
    '"exclusiveValue": "value", "urgencyFactor": "now"}'
)


class FakeProvider(LLMProvider):
    """Scripted provider: returns ``text`` or raises ``error``; records prompts."""

    def __init__(self, name, text=None, error=None, configured=True):
        super().__init__(http=None, timeout=1.0)
        self._name = name
        self._text = text
        self._error = error
        self._configured = configured
        self.prompts = []

    @property
    def name(self):
        return self._name

    @property
    def configured(self):
        return self._configured

    async def _send(self, prompt):
        self.prompts.append(prompt)
        if self._error is not None:
            raise self._error
        return ProviderReply(provider=self._name, text=self._text)


def failing(name, status=500):
    return FakeProvider(name, error=ProviderError(name, "Internal Server Error", status=status))
