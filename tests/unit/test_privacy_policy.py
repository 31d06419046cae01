"""Unit tests for the default privacy policy."""
import pytest

from tieredmemory.exceptions import InvalidMemoryContent
from tieredmemory.models import (
    DataCategory, MemoryCandidate, MemoryCategory, Namespace, Privacy, PrivacyLevel, RequestContext,
)
from tieredmemory.services.privacy.default import DefaultPrivacyPolicy


@pytest.fixture
def policy():
    return DefaultPrivacyPolicy(max_content_length=200)


class TestVisibility:

    def test_confidential_never_visible(self, policy, make_entry):
        entry = make_entry(user_id="u1")
        entry.privacy = Privacy(level=PrivacyLevel.CONFIDENTIAL, consent_granted=True)
        assert not policy.is_visible(entry, RequestContext(user_id="u1"))

    def test_other_users_hidden(self, policy, make_entry):
        assert not policy.is_visible(make_entry(user_id="u1"), RequestContext(user_id="u2"))

    def test_sensitive_requires_consent(self, policy, make_entry):
        entry = make_entry(user_id="u1")
        entry.privacy = Privacy(data_category=DataCategory.HEALTH)

        assert not policy.is_visible(entry, RequestContext(user_id="u1"))
        assert policy.is_visible(entry, RequestContext(user_id="u1", consented_categories={DataCategory.HEALTH}))

        entry.privacy.consent_granted = True
        assert policy.is_visible(entry, RequestContext(user_id="u1"))

    def test_namespace_filters(self, policy, make_entry):
        work = make_entry(user_id="u1", namespace=Namespace(category=MemoryCategory.WORK))
        hobby = make_entry(user_id="u1", namespace=Namespace(category=MemoryCategory.HOBBY))

        only_work = RequestContext(user_id="u1", include_categories={MemoryCategory.WORK})
        assert policy.filter([work, hobby], only_work) == [work]

        no_work = RequestContext(user_id="u1", exclude_categories={MemoryCategory.WORK})
        assert policy.filter([work, hobby], no_work) == [hobby]

    def test_consented_only(self, policy, make_entry):
        plain = make_entry(user_id="u1")
        consented = make_entry(user_id="u1")
        consented.privacy.consent_granted = True
        assert policy.filter([plain, consented], RequestContext(user_id="u1", consented_only=True)) == [consented]


class TestValidation:

    def test_accepts_plain_content(self, policy):
        policy.validate(MemoryCandidate(content="Prefers concise answers"))

    @pytest.mark.parametrize("content", [
        "My card is 4111 1111 1111 1111",
        "SSN 123-45-6789",
        "my password is hunter2",
        "use key sk-abcdefghijklmnop1234",
    ])
    def test_rejects_secrets(self, policy, content):
        with pytest.raises(InvalidMemoryContent, match="secret"):
            policy.validate(MemoryCandidate(content=content))

    def test_rejects_oversized(self, policy):
        with pytest.raises(InvalidMemoryContent, match="exceeds"):
            policy.validate(MemoryCandidate(content="x" * 201))

    def test_rejects_empty(self, policy):
        with pytest.raises(InvalidMemoryContent):
            policy.validate(MemoryCandidate(content="   "))

    def test_sensitive_needs_consent(self, policy):
        candidate = MemoryCandidate(content="Has asthma", privacy=Privacy(data_category=DataCategory.HEALTH))
        with pytest.raises(InvalidMemoryContent, match="consent"):
            policy.validate(candidate)

        candidate.privacy.consent_granted = True
        policy.validate(candidate)

    def test_confidential_rejected(self, policy):
        with pytest.raises(InvalidMemoryContent):
            policy.validate(MemoryCandidate(content="Internal note",
                                            privacy=Privacy(level=PrivacyLevel.CONFIDENTIAL)))
