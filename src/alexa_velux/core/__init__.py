"""Core module - exports key classes and exceptions."""

from alexa_velux.core.actions import Action, HomeInfo, HomeStatus, RunScenario, build_request
from alexa_velux.core.client import VeluxSkillClient, create_store
from alexa_velux.core.credential_store import CredentialStore
from alexa_velux.core.exceptions import (
    AuthorizationFailure,
    AuthRequestError,
    ConditionalCheckFailedError,
    ConfigurationMissing,
    IncompleteSessionError,
    NetworkConnectionError,
    NetworkTimeoutError,
    PersistenceError,
    TransportError,
    VeluxError,
)
from alexa_velux.core.executor import AttemptResult, Outcome, RequestExecutor, classify_failure
from alexa_velux.core.models import (
    ErrorResponse,
    GrantType,
    Settings,
    SkillType,
    TokenData,
    TokenResponse,
    UserCredentials,
)
from alexa_velux.core.orchestrator import RetryOrchestrator, RetryState
from alexa_velux.core.session import SessionContext
from alexa_velux.core.store import InMemoryStore, JsonFileStore, KeyValueStore
from alexa_velux.core.token_manager import TokenManager
from alexa_velux.core.transport import HttpTransport

__all__ = [
    # Actions
    "Action",
    "RunScenario",
    "HomeInfo",
    "HomeStatus",
    "build_request",
    # Components
    "VeluxSkillClient",
    "create_store",
    "CredentialStore",
    "TokenManager",
    "RequestExecutor",
    "RetryOrchestrator",
    "RetryState",
    "HttpTransport",
    "SessionContext",
    # Stores
    "KeyValueStore",
    "InMemoryStore",
    "JsonFileStore",
    # Results
    "AttemptResult",
    "Outcome",
    "classify_failure",
    # Models
    "Settings",
    "UserCredentials",
    "TokenData",
    "TokenResponse",
    "ErrorResponse",
    "SkillType",
    "GrantType",
    # Exceptions
    "VeluxError",
    "ConfigurationMissing",
    "IncompleteSessionError",
    "AuthRequestError",
    "AuthorizationFailure",
    "PersistenceError",
    "ConditionalCheckFailedError",
    "TransportError",
    "NetworkTimeoutError",
    "NetworkConnectionError",
]
