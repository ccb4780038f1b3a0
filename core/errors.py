"""Error taxonomy shared by the chat service, the tools and the API layer."""


class SupportAgentError(Exception):
    """Base class for every error raised on purpose by the agent."""


class AdmissionError(SupportAgentError):
    """Request rejected before any external call. The message is user-facing."""

    status_code = 400


class ValidationFailed(AdmissionError):
    status_code = 400


class RateLimitExceeded(AdmissionError):
    status_code = 429

    def __init__(self, message: str = "Too many messages. Please wait a moment."):
        super().__init__(message)


class ConversationNotFound(AdmissionError):
    status_code = 404

    def __init__(self, conversation_id: str):
        super().__init__("Conversation not found")
        self.conversation_id = conversation_id


class CredentialError(SupportAgentError):
    """The commerce backend credential could not be refreshed."""


class CommerceAPIError(SupportAgentError):
    """The commerce backend answered with a transport, HTTP or GraphQL error."""


class ReasoningUnavailable(SupportAgentError):
    """The reasoning model call failed. Fatal to the current turn."""

    user_message = "I'm having trouble right now. Please try again in a moment."
