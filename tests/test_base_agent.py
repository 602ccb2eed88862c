"""Unit tests for the base Agent interface and error taxonomy"""

import pytest
from src.agents.base import (
    API_KEY_EXPIRED_MESSAGE,
    Agent,
    AgentInput,
    AgentOutput,
    AgentExecutionError,
    ApiKeyExpiredError,
    ClientRequestError,
    GenerationError,
    NoImageReturnedError,
    RateLimitedError,
    RetryPolicy,
    BackoffStrategy,
    ServerFailureError,
    TransientUpstreamError,
    describe_error,
    error_from_status,
)


class MockInput(AgentInput):
    """Mock input for testing"""
    def __init__(self, value: str):
        self.value = value


class MockOutput(AgentOutput):
    """Mock output for testing"""
    def __init__(self, result: str):
        self.result = result


class MockAgent(Agent):
    """Mock agent implementation for testing"""

    def __init__(self, should_fail: bool = False):
        self.should_fail = should_fail
        self.execution_count = 0

    def execute(self, input_data: AgentInput) -> AgentOutput:
        self.execution_count += 1

        if not self.validate_input(input_data):
            raise AgentExecutionError(
                error_code="INVALID_INPUT",
                message="Input validation failed",
                context={"input": str(input_data)}
            )

        if self.should_fail:
            raise ServerFailureError("Mock agent configured to fail", status_code=503)

        return MockOutput(result=f"processed: {input_data.value}")

    def validate_input(self, input_data: AgentInput) -> bool:
        return isinstance(input_data, MockInput) and hasattr(input_data, 'value')

    def get_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=3,
            backoff_strategy=BackoffStrategy.EXPONENTIAL,
            base_delay_seconds=1.0
        )


class MinimalAgent(Agent):
    """Agent implementing only execute()"""

    def execute(self, input_data: AgentInput) -> AgentOutput:
        return MockOutput(result="ok")


class TestAgentInterface:
    """Test the Agent abstract interface"""

    def test_agent_cannot_be_instantiated_directly(self):
        with pytest.raises(TypeError):
            Agent()

    def test_successful_execution(self):
        agent = MockAgent()
        output = agent.execute(MockInput("page"))

        assert isinstance(output, MockOutput)
        assert output.result == "processed: page"
        assert agent.execution_count == 1

    def test_invalid_input_raises_execution_error(self):
        agent = MockAgent()

        with pytest.raises(AgentExecutionError) as exc_info:
            agent.execute("not an input")

        assert exc_info.value.error_code == "INVALID_INPUT"
        assert "Input validation failed" in str(exc_info.value)

    def test_configured_failure_raises_typed_error(self):
        agent = MockAgent(should_fail=True)

        with pytest.raises(ServerFailureError) as exc_info:
            agent.execute(MockInput("page"))

        assert exc_info.value.status_code == 503

    def test_default_validate_input_not_implemented(self):
        with pytest.raises(NotImplementedError):
            MinimalAgent().validate_input(MockInput("x"))

    def test_default_retry_policy_is_single_attempt(self):
        policy = MinimalAgent().get_retry_policy()
        assert policy.max_attempts == 1


class TestRetryPolicy:
    """Test RetryPolicy defaults and validation"""

    def test_defaults(self):
        policy = RetryPolicy()

        assert policy.max_attempts == 3
        assert policy.backoff_strategy == BackoffStrategy.EXPONENTIAL
        assert policy.base_delay_seconds == 1.0
        assert policy.max_delay_seconds == 60.0

    def test_zero_attempts_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


class TestAgentExecutionError:
    """Test AgentExecutionError formatting"""

    def test_error_attributes(self):
        error = AgentExecutionError("TEST_CODE", "Something broke", {"key": "value"})

        assert error.error_code == "TEST_CODE"
        assert error.message == "Something broke"
        assert error.context == {"key": "value"}
        assert str(error) == "[TEST_CODE] Something broke"

    def test_context_defaults_to_empty_dict(self):
        error = AgentExecutionError("TEST_CODE", "Something broke")
        assert error.context == {}


class TestGenerationErrors:
    """Test the generation error family"""

    def test_rate_limited_carries_429(self):
        error = RateLimitedError("slow down")

        assert error.status_code == 429
        assert error.error_code == "API_RATE_LIMIT"
        assert isinstance(error, TransientUpstreamError)

    def test_client_request_error_keeps_status(self):
        error = ClientRequestError("bad request", status_code=400)

        assert error.status_code == 400
        assert error.error_code == "CLIENT_ERROR"

    def test_no_image_returned_default_message(self):
        error = NoImageReturnedError()

        assert error.error_code == "NO_IMAGE_RETURNED"
        assert "No image data" in error.message

    def test_api_key_expired_is_distinct(self):
        error = ApiKeyExpiredError("Requested entity was not found.", status_code=404)

        assert error.error_code == "API_KEY_EXPIRED"
        assert not isinstance(error, ClientRequestError)
        assert isinstance(error, GenerationError)

    @pytest.mark.parametrize("status,expected_type", [
        (None, TransientUpstreamError),
        (429, RateLimitedError),
        (500, ServerFailureError),
        (503, ServerFailureError),
        (400, ClientRequestError),
        (404, ClientRequestError),
    ])
    def test_error_from_status(self, status, expected_type):
        error = error_from_status(status, "upstream message")

        assert type(error) is expected_type
        assert error.message == "upstream message"

    def test_error_from_status_keeps_server_status(self):
        error = error_from_status(502, "bad gateway")
        assert error.status_code == 502


class TestDescribeError:
    """Test human-readable error messages"""

    def test_api_key_expired_message(self):
        assert describe_error(ApiKeyExpiredError("not found")) == API_KEY_EXPIRED_MESSAGE

    def test_agent_error_uses_message(self):
        assert describe_error(ClientRequestError("Invalid image", status_code=400)) == "Invalid image"

    def test_rate_limit_message(self):
        assert "too many requests" in describe_error(RateLimitedError("429"))

    def test_plain_exception(self):
        assert describe_error(ValueError("boom")) == "boom"

    def test_empty_exception_has_fallback(self):
        assert describe_error(RuntimeError()) == "Something went wrong while generating the story."
