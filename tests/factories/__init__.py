"""Test factories for generating test data.

Re-exports all factories for convenient imports:
    from tests.factories import UserFactory, OAuthTokenFactory, ...
"""

from tests.factories.base import BaseFactory, generate_uuid7, utc_now
from tests.factories.oauth import CloudflareChallengeFactory, OAuthTokenFactory
from tests.factories.reimbursement import ReimbursementRequestFactory
from tests.factories.user import UserFactory, UserRoleFactory

__all__ = [
    # Base
    "BaseFactory",
    "generate_uuid7",
    "utc_now",
    # Users
    "UserFactory",
    "UserRoleFactory",
    # Requests
    "ReimbursementRequestFactory",
    # OAuth
    "CloudflareChallengeFactory",
    "OAuthTokenFactory",
]
