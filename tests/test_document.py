"""Tests for document instances: field access, save, validate and remove."""

import asyncio
from datetime import datetime, timedelta

import pytest

from docknobs import (
    CastError,
    RequiredFieldError,
    SaveValidationError,
    Schema,
    UnknownFieldError,
)


class TestFieldAccess:

    @pytest.mark.asyncio
    async def test_attribute_and_key_access(self, user_model):
        user = user_model.create()
        user.name = "Ada"
        user["age"] = 36

        assert user.name == "Ada"
        assert user["age"] == 36
        assert user.get_field("name") == "Ada"
        assert "name" in user
        assert list(user) == ["name", "age", "active", "date"]

    @pytest.mark.asyncio
    async def test_default_produced_at_creation(self, user_model):
        before = datetime.now()
        user = user_model.create()
        assert isinstance(user.date, datetime)
        assert user.date >= before
        assert user.active is None

    @pytest.mark.asyncio
    async def test_unknown_field(self, user_model):
        user = user_model.create()
        with pytest.raises(UnknownFieldError) as exc_info:
            user.set_field("nickname", "x")
        assert exc_info.value.field_name == "nickname"
        with pytest.raises(KeyError):
            user["nickname"]
        with pytest.raises(AttributeError):
            user.nickname

    @pytest.mark.asyncio
    async def test_private_attributes_are_not_fields(self, user_model):
        user = user_model.create()
        user._scratch = 1
        assert user._scratch == 1
        assert "_scratch" not in user.to_dict()

    @pytest.mark.asyncio
    async def test_values_are_raw_until_saved(self, user_model):
        user = user_model.create(age="36")
        assert user.age == "36"

    @pytest.mark.asyncio
    async def test_create_with_unknown_field(self, user_model):
        with pytest.raises(UnknownFieldError):
            user_model.create(nickname="x")


class TestSave:

    @pytest.mark.asyncio
    async def test_blank_document_saves(self, user_model):
        user = user_model.create()

        saved = await user.save()

        assert saved is user
        assert user.id is not None
        assert user.is_persisted
        assert user.errors == {}
        assert isinstance(user.date, datetime)
        assert user.name is None

    @pytest.mark.asyncio
    async def test_save_coerces_values(self, user_model):
        user = user_model.create(name="Ada", age="36", active="true")
        await user.save()

        assert user.age == 36
        assert user.active is True
        stored = await user_model.connection.execute("lookup", "User", user.id)
        assert stored["age"] == 36
        assert stored["active"] is True

    @pytest.mark.asyncio
    async def test_cast_error(self, user_model):
        user = user_model.create()
        user.age = "this is not a number"

        with pytest.raises(SaveValidationError) as exc_info:
            await user.save()

        error = exc_info.value
        assert isinstance(error.errors["age"], CastError)
        assert error.errors["age"].message == (
            'Cast to Number failed for value "this is not a number" at path "age"'
        )
        assert set(user.errors) == set(error.errors) == {"age"}
        assert user.id is None
        assert not user.is_persisted

    @pytest.mark.asyncio
    async def test_failed_save_persists_nothing(self, user_model):
        user = user_model.create(age="old", active="maybe")
        with pytest.raises(SaveValidationError) as exc_info:
            await user.save()

        assert list(exc_info.value.errors) == ["age", "active"]
        assert await user_model.connection.store.count("User") == 0

    @pytest.mark.asyncio
    async def test_fixing_errors_clears_them(self, user_model):
        user = user_model.create(age="old")
        with pytest.raises(SaveValidationError):
            await user.save()

        user.age = 40
        await user.save()
        assert user.errors == {}
        assert user.age == 40

    @pytest.mark.asyncio
    async def test_resave_keeps_identity(self, user_model):
        user = user_model.create(name="Ada")
        await user.save()
        identity = user.id

        user.name = "Ada Lovelace"
        await user.save()

        assert user.id == identity
        assert await user_model.connection.store.count("User") == 1
        reloaded = await user_model.find_by_id(identity)
        assert reloaded.name == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_required_fields_are_independent(self, registry, connection):
        registry.register(
            "Contact",
            Schema("Contact").field("email", required=True).field("phone", required=True),
        )
        contact = connection.model("Contact", registry=registry).create(email="a@b.c")

        with pytest.raises(SaveValidationError) as exc_info:
            await contact.save()

        assert list(exc_info.value.errors) == ["phone"]
        assert isinstance(exc_info.value.errors["phone"], RequiredFieldError)
        assert exc_info.value.errors["phone"].message == "Path `phone` is required."

        contact.phone = "555-0100"
        await contact.save()

        assert contact.errors == {}
        assert contact.is_persisted
        assert contact.phone == "555-0100"

    @pytest.mark.asyncio
    async def test_required_default_of_none_is_reported(self, registry, connection):
        registry.register(
            "Ticket",
            Schema("Ticket").field("owner", required=True, default=lambda: None),
        )
        ticket = connection.model("Ticket", registry=registry).create()

        with pytest.raises(SaveValidationError) as exc_info:
            await ticket.save()

        assert isinstance(exc_info.value.errors["owner"], RequiredFieldError)
        ticket.owner = "ada"
        await ticket.save()
        assert ticket.is_persisted

    @pytest.mark.asyncio
    async def test_concurrent_saves_of_distinct_documents(self, user_model):
        users = [user_model.create(name=f"user-{i}", age=i) for i in range(5)]

        await asyncio.gather(*(user.save() for user in users))

        assert len({user.id for user in users}) == 5
        assert all(user.is_persisted for user in users)
        assert await user_model.connection.store.count("User") == 5

    @pytest.mark.asyncio
    async def test_aggregate_message_lists_paths(self, user_model):
        user = user_model.create(age="x")
        with pytest.raises(SaveValidationError, match="User validation failed: age: Cast to Number"):
            await user.save()


class TestCrossFieldValidation:

    @pytest.mark.asyncio
    async def test_end_before_start_fails(self, appointment_model):
        start = datetime(2024, 3, 10, 9, 0)
        appointment = appointment_model.create(start=start, end=start - timedelta(days=1))

        with pytest.raises(SaveValidationError) as exc_info:
            await appointment.save()

        assert list(exc_info.value.errors) == ["end"]
        assert "must be after the start date" in exc_info.value.errors["end"].message
        assert set(appointment.errors) == {"end"}

    @pytest.mark.asyncio
    async def test_end_after_start_saves(self, appointment_model):
        start = datetime(2024, 3, 10, 9, 0)
        appointment = appointment_model.create(start=start, end=start + timedelta(days=1))

        await appointment.save()

        assert appointment.is_persisted
        assert appointment.errors == {}

    @pytest.mark.asyncio
    async def test_string_dates_are_compared_after_coercion(self, appointment_model):
        appointment = appointment_model.create(start="2024-03-10T09:00:00", end="2024-03-09T09:00:00")
        with pytest.raises(SaveValidationError) as exc_info:
            await appointment.save()
        assert list(exc_info.value.errors) == ["end"]

    @pytest.mark.asyncio
    async def test_zulu_start_and_local_end_save(self, appointment_model):
        appointment = appointment_model.create(
            start="2024-03-10T09:00:00Z", end="2024-03-11T09:00:00"
        )

        await appointment.save()

        assert appointment.errors == {}
        assert appointment.end > appointment.start


class TestValidate:

    @pytest.mark.asyncio
    async def test_validate_without_saving(self, user_model):
        user = user_model.create(age="old")
        error = user.validate()
        assert isinstance(error, SaveValidationError)
        assert set(user.errors) == {"age"}
        assert not user.is_persisted

    @pytest.mark.asyncio
    async def test_validate_valid_document(self, user_model):
        user = user_model.create(age=3)
        assert user.validate() is None
        assert user.errors == {}


class TestRemove:

    @pytest.mark.asyncio
    async def test_remove_unsaved_is_noop(self, user_model):
        user = user_model.create()
        await user.remove()
        assert not user.is_persisted

    @pytest.mark.asyncio
    async def test_remove_deletes_from_store(self, user_model):
        user = user_model.create(name="Ada")
        await user.save()
        identity = user.id

        await user.remove()

        assert not user.is_persisted
        assert await user_model.find_by_id(identity) is None

    @pytest.mark.asyncio
    async def test_to_dict(self, user_model):
        user = user_model.create(name="Ada")
        data = user.to_dict()
        assert data["name"] == "Ada"
        assert "_id" not in data
        assert "date" in data
