"""
RegisterConfigurationService tests.

Covers:
- Create validation (name, starting number)
- Update: allowed keys, no retroactive renumbering, eager seeding on a
  switch to annual reset
- Delete: blocked by live documents, retire when only soft-deleted
  documents remain, hard delete when unreferenced
- Listing with parish scope and shared configurations
"""

from uuid import uuid4

import pytest

from registry_kernel.exceptions import (
    ConfigurationInUseError,
    ConfigurationNotFoundError,
    ValidationError,
)
from registry_kernel.models.register_configuration import RegisterConfiguration
from registry_kernel.services.register_configuration_service import DeletionOutcome
from registry_kernel.services.sequence_service import SequenceService


# =============================================================================
# Create
# =============================================================================


class TestCreate:
    def test_create_defaults(self, configuration_service, test_actor_id):
        config = configuration_service.create("  General register ", test_actor_id)

        assert config.id is not None
        assert config.name == "General register"
        assert config.parish_id is None
        assert config.resets_annually is True
        assert config.starting_number == 1
        assert config.retired_at is None

    @pytest.mark.parametrize("name", ["", "   ", None, "x" * 201])
    def test_rejects_bad_name(self, configuration_service, test_actor_id, name):
        with pytest.raises(ValidationError) as exc_info:
            configuration_service.create(name, test_actor_id)
        assert exc_info.value.field == "name"

    @pytest.mark.parametrize("start", [0, -1, True, "5", 1.5])
    def test_rejects_bad_starting_number(self, configuration_service, test_actor_id, start):
        with pytest.raises(ValidationError) as exc_info:
            configuration_service.create("Register", test_actor_id, starting_number=start)
        assert exc_info.value.field == "starting_number"


# =============================================================================
# Update
# =============================================================================


class TestUpdate:
    def test_update_fields(self, configuration_service, create_configuration, test_actor_id):
        config = create_configuration()

        updated = configuration_service.update(
            config.id, {"name": "Outgoing", "notes": "since 2024"}, test_actor_id,
        )

        assert updated.name == "Outgoing"
        assert updated.notes == "since 2024"
        assert updated.updated_by_id == test_actor_id

    @pytest.mark.parametrize("key", ["parish_id", "retired_at", "id", "colour"])
    def test_rejects_other_keys(self, configuration_service, create_configuration, test_actor_id, key):
        config = create_configuration()

        with pytest.raises(ValidationError) as exc_info:
            configuration_service.update(config.id, {key: None}, test_actor_id)
        assert exc_info.value.field == key

    def test_update_unknown(self, configuration_service, test_actor_id, db_engine):
        with pytest.raises(ConfigurationNotFoundError):
            configuration_service.update(uuid4(), {"name": "x"}, test_actor_id)

    def test_switch_to_annual_seeds_current_year(
        self, session, configuration_service, create_configuration, test_actor_id,
    ):
        config = create_configuration(resets_annually=False, starting_number=40)
        seq = SequenceService(session)
        assert seq.allocate(config.id, 2024) == 40

        configuration_service.update(config.id, {"resets_annually": True}, test_actor_id)

        # deterministic clock is in 2024
        assert seq.current_value(config.id, 2024) == 39
        assert seq.allocate(config.id, 2024) == 40

    def test_switch_to_annual_keeps_formatted_numbers(
        self, session, configuration_service, create_configuration, create_document,
        test_actor_id,
    ):
        config = create_configuration(resets_annually=False)
        first = create_document(config, register=True)
        assert first.formatted_number == "1"

        configuration_service.update(config.id, {"resets_annually": True}, test_actor_id)
        second = create_document(config, register=True)
        session.expire_all()

        assert session.get(type(first), first.id).formatted_number == "1"
        assert second.formatted_number == "1/2024"

    def test_switch_to_shared_continues_shared_counter(
        self, configuration_service, create_configuration, create_document, test_actor_id,
    ):
        config = create_configuration(resets_annually=False)
        create_document(config, register=True)
        create_document(config, register=True)
        configuration_service.update(config.id, {"resets_annually": True}, test_actor_id)
        create_document(config, register=True)
        configuration_service.update(config.id, {"resets_annually": False}, test_actor_id)

        doc = create_document(config, register=True)

        assert doc.formatted_number == "3"


# =============================================================================
# Delete
# =============================================================================


class TestDelete:
    def test_delete_unreferenced(self, session, configuration_service, create_configuration, test_actor_id):
        config = create_configuration()
        SequenceService(session).seed(config, 2024)

        outcome = configuration_service.delete(config.id, test_actor_id)

        assert outcome is DeletionOutcome.DELETED
        assert session.get(RegisterConfiguration, config.id) is None
        assert SequenceService(session).current_value(config.id, 2024) is None

    def test_delete_referenced_fails(
        self, configuration_service, create_configuration, create_document, test_actor_id,
    ):
        config = create_configuration()
        create_document(config, register=True)

        with pytest.raises(ConfigurationInUseError) as exc_info:
            configuration_service.delete(config.id, test_actor_id)
        assert exc_info.value.document_count == 1
        assert configuration_service.get(config.id).id == config.id

    def test_draft_reference_also_blocks(
        self, configuration_service, create_configuration, create_document, test_actor_id,
    ):
        config = create_configuration()
        create_document(config)

        with pytest.raises(ConfigurationInUseError):
            configuration_service.delete(config.id, test_actor_id)

    def test_delete_with_only_deleted_documents_retires(
        self, session, configuration_service, registry_service, create_configuration,
        create_document, test_actor_id,
    ):
        config = create_configuration()
        doc = create_document(config, register=True)
        registry_service.delete_document(doc.id, test_actor_id)

        outcome = configuration_service.delete(config.id, test_actor_id)

        assert outcome is DeletionOutcome.RETIRED
        row = session.get(RegisterConfiguration, config.id)
        assert row is not None and row.retired_at is not None
        with pytest.raises(ConfigurationNotFoundError):
            configuration_service.get(config.id)
        assert configuration_service.list_configurations() == []

    def test_delete_twice(self, configuration_service, create_configuration, test_actor_id):
        config = create_configuration()
        configuration_service.delete(config.id, test_actor_id)

        with pytest.raises(ConfigurationNotFoundError):
            configuration_service.delete(config.id, test_actor_id)


# =============================================================================
# Listing
# =============================================================================


class TestListing:
    def test_parish_scope(self, configuration_service, create_configuration):
        parish_a, parish_b = uuid4(), uuid4()
        shared = create_configuration(name="A shared")
        own = create_configuration(name="B parish a", parish_id=parish_a)
        create_configuration(name="C parish b", parish_id=parish_b)

        with_shared = configuration_service.list_configurations(parish_a)
        without_shared = configuration_service.list_configurations(parish_a, include_shared=False)

        assert [c.id for c in with_shared] == [shared.id, own.id]
        assert [c.id for c in without_shared] == [own.id]

    def test_all(self, configuration_service, create_configuration):
        create_configuration(name="b")
        create_configuration(name="a", parish_id=uuid4())

        names = [c.name for c in configuration_service.list_configurations()]

        assert names == ["a", "b"]
