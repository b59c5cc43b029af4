"""
Unit tests for SDK layer.

Tests the OpenAI provider's request shape and error mapping.
"""

from unittest.mock import Mock, patch

import pytest
from openai import APIConnectionError, BadRequestError, InternalServerError, RateLimitError

from tiered_answers.config.loader import ProviderConfig
from tiered_answers.core.errors import ProviderError
from tiered_answers.core.tiers import DEFAULT_TIER_TABLE, ModelTier
from tiered_answers.sdk.openai_client import ModelResponse, OpenAIModelProvider


def _completion(content="Reserve is 50 MW.", prompt_tokens=120, completion_tokens=30):
    response = Mock()
    response.choices = [Mock(message=Mock(content=content))]
    response.usage.prompt_tokens = prompt_tokens
    response.usage.completion_tokens = completion_tokens
    return response


def _status_error(cls, status_code):
    return cls("upstream said no", response=Mock(status_code=status_code, headers={}), body=None)


class TestOpenAIModelProvider:
    """Test OpenAIModelProvider."""

    @patch('tiered_answers.sdk.openai_client.OpenAI')
    def test_init_uses_configured_timeout(self, mock_openai_class):
        """Client is built with the timeout and no SDK-side retries."""
        OpenAIModelProvider(config=ProviderConfig(timeout_seconds=15))

        mock_openai_class.assert_called_once_with(timeout=15, max_retries=0)

    @patch('tiered_answers.sdk.openai_client.OpenAI')
    def test_invoke_model_success(self, mock_openai_class):
        """Test a successful call reports text and exact usage."""
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion()
        mock_openai_class.return_value = mock_client

        provider = OpenAIModelProvider()
        result = provider.invoke_model(ModelTier.MID, "SYSTEM", "What is the reserve?")

        spec = DEFAULT_TIER_TABLE.get_spec(ModelTier.MID)
        mock_client.chat.completions.create.assert_called_once_with(
            model=spec.model,
            messages=[
                {"role": "system", "content": "SYSTEM"},
                {"role": "user", "content": "What is the reserve?"},
            ],
            max_tokens=spec.max_tokens,
        )
        assert isinstance(result, ModelResponse)
        assert result.text == "Reserve is 50 MW."
        assert result.usage.input_tokens == 120
        assert result.usage.output_tokens == 30
        assert result.model_id == spec.model

    @patch('tiered_answers.sdk.openai_client.OpenAI')
    def test_each_tier_uses_its_model(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion()
        mock_openai_class.return_value = mock_client
        provider = OpenAIModelProvider()

        for tier in ModelTier:
            provider.invoke_model(tier, "SYSTEM", "Question")
            kwargs = mock_client.chat.completions.create.call_args.kwargs
            assert kwargs["model"] == DEFAULT_TIER_TABLE.get_spec(tier).model

    @patch('tiered_answers.sdk.openai_client.OpenAI')
    def test_empty_content_becomes_empty_text(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = _completion(content=None)
        mock_openai_class.return_value = mock_client

        result = OpenAIModelProvider().invoke_model(ModelTier.CHEAP, "SYSTEM", "Question")

        assert result.text == ""

    @patch('tiered_answers.sdk.openai_client.OpenAI')
    def test_missing_usage(self, mock_openai_class):
        """Test a response without usage is a provider failure."""
        response = _completion()
        response.usage = None
        mock_client = Mock()
        mock_client.chat.completions.create.return_value = response
        mock_openai_class.return_value = mock_client

        with pytest.raises(ProviderError, match="missing usage"):
            OpenAIModelProvider().invoke_model(ModelTier.CHEAP, "SYSTEM", "Question")

    @patch('tiered_answers.sdk.openai_client.OpenAI')
    def test_empty_question(self, mock_openai_class):
        mock_client = Mock()
        mock_openai_class.return_value = mock_client

        with pytest.raises(ValueError, match="user_question is required"):
            OpenAIModelProvider().invoke_model(ModelTier.CHEAP, "SYSTEM", "  ")

        mock_client.chat.completions.create.assert_not_called()


class TestErrorMapping:
    """Test translation of OpenAI errors into ProviderError."""

    @pytest.mark.parametrize("error", [
        APIConnectionError(request=Mock()),
        _status_error(RateLimitError, 429),
        _status_error(InternalServerError, 500),
    ])
    @patch('tiered_answers.sdk.openai_client.OpenAI')
    def test_transient_failures_are_retryable(self, mock_openai_class, error):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = error
        mock_openai_class.return_value = mock_client

        with pytest.raises(ProviderError) as exc_info:
            OpenAIModelProvider().invoke_model(ModelTier.PREMIUM, "SYSTEM", "Question")

        assert exc_info.value.retryable
        assert exc_info.value.tier == "premium"
        assert exc_info.value.__cause__ is error

    @patch('tiered_answers.sdk.openai_client.OpenAI')
    def test_bad_request_not_retryable(self, mock_openai_class):
        mock_client = Mock()
        mock_client.chat.completions.create.side_effect = _status_error(BadRequestError, 400)
        mock_openai_class.return_value = mock_client

        with pytest.raises(ProviderError) as exc_info:
            OpenAIModelProvider().invoke_model(ModelTier.MID, "SYSTEM", "Question")

        assert not exc_info.value.retryable
        assert exc_info.value.user_message == "The assistant is unavailable right now."
