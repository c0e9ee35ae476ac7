"""Client-side subscription agent and its foreground counterpart."""

from campus_push.client.agent import IdentityUnavailableError, PushUnsupportedError, SubscriptionAgent, SubscriptionStatus
from campus_push.client.api_client import PushServerClient, ServerRequestError
from campus_push.client.foreground import ForegroundContext
from campus_push.client.messaging import MessageChannel, MessageType

__all__ = ["ForegroundContext", "IdentityUnavailableError", "MessageChannel", "MessageType", "PushServerClient", "PushUnsupportedError", "ServerRequestError", "SubscriptionAgent", "SubscriptionStatus"]
